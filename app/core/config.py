"""Configuration management for the guideline agent."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # OpenAI configuration (required)
    OPENAI_API_KEY: str = Field(..., description="OpenAI API key")

    # Environment
    AGENT_ENV: str = Field(default="dev", description="Environment: dev, staging, prod, test")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")
    EMBEDDING_TURN_POLICY: Literal["all", "user"] = Field(
        default="all",
        description="Which conversation turns feed the semantic search query",
    )

    # Agent (chat completion) configuration
    AGENT_MODEL: str = Field(default="gpt-4o", description="Model for filtering and replies")
    AGENT_MAX_TOKENS: int = Field(default=1000, description="Max completion tokens per call")
    AGENT_TEMPERATURE: float = Field(default=0.3, description="Sampling temperature")
    AGENT_TOP_P: float = Field(default=0.9, description="Nucleus sampling cutoff")

    # Guideline retrieval
    CONDITIONAL_GUIDELINES_MATCH_COUNT: int = Field(
        default=5, description="Conditional guidelines returned by similarity search"
    )

    # Chat history
    MESSAGE_HISTORY_LIMIT: int | None = Field(
        default=None,
        description="Max stored messages loaded as conversation context (None loads the full history)",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()

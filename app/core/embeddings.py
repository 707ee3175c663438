"""OpenAI embeddings generation with validation."""

import asyncio
import re

from openai import OpenAI

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


class EmbeddingError(RuntimeError):
    """Raised when text cannot be turned into an embedding vector."""


def normalize_text(text: str) -> str:
    """Trim, collapse internal whitespace, and lowercase text before embedding."""
    return _WHITESPACE_RE.sub(" ", text.strip()).lower()


def _get_client() -> OpenAI:
    """Get OpenAI client instance."""
    settings = get_settings()
    return OpenAI(api_key=settings.OPENAI_API_KEY)


class OpenAIEmbedder:
    """Embedding client handle shared by the agent and the guideline API.

    Args:
        client: OpenAI client (defaults to one built from settings on first use)
        model: Embedding model override
        dimensions: Expected vector dimension override
    """

    def __init__(
        self,
        client: OpenAI | None = None,
        model: str | None = None,
        dimensions: int | None = None,
    ):
        self._client = client
        self._model = model
        self._dimensions = dimensions

    @property
    def model(self) -> str:
        return self._model or get_settings().EMBEDDING_MODEL

    @property
    def dimensions(self) -> int:
        return self._dimensions or get_settings().EMBEDDING_DIM

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = _get_client()
        return self._client

    def embed(self, text: str) -> list[float]:
        """
        Generate an embedding for one piece of text.

        Args:
            text: Input text; normalized before it is sent

        Returns:
            Embedding vector

        Raises:
            EmbeddingError: On empty input, provider failure, missing data,
                or a dimension mismatch
        """
        clean_text = normalize_text(text or "")
        if not clean_text:
            raise EmbeddingError("Text input cannot be empty")

        try:
            response = self._get_client().embeddings.create(
                model=self.model,
                dimensions=self.dimensions,
                input=clean_text,
            )
        except Exception as e:
            logger.error(f"Failed to generate embedding: {e}")
            raise EmbeddingError(f"Embedding creation failed: {e}") from e

        if not response.data or not response.data[0].embedding:
            raise EmbeddingError("Failed to generate embedding: no embedding data returned")

        embedding = response.data[0].embedding
        if len(embedding) != self.dimensions:
            raise EmbeddingError(
                f"Embedding dimension mismatch: expected {self.dimensions}, got {len(embedding)}"
            )

        logger.debug(
            f"Generated embedding using {self.model}",
            extra={"extra_data": {"model": self.model, "chars": len(clean_text)}},
        )
        return embedding

    async def embed_async(self, text: str) -> list[float]:
        """Async wrapper around embed using thread pool."""
        return await asyncio.to_thread(self.embed, text)

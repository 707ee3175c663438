"""Reply generation with a fixed apology for every failure category."""

import asyncio
from enum import Enum

from openai import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    PermissionDeniedError,
    RateLimitError,
)
from pydantic import ValidationError

from app.core.llm import CompletionClient
from app.core.logging import get_logger
from app.core.schemas_chat import ConversationTurn

logger = get_logger(__name__)


class GenerationFailure(str, Enum):
    CONFIGURATION = "configuration"
    RATE_LIMIT = "rate_limit"
    CONNECTIVITY = "connectivity"
    UNKNOWN = "unknown"


FALLBACK_MESSAGES: dict[GenerationFailure, str] = {
    GenerationFailure.CONFIGURATION: (
        "I apologize, but the AI service is not properly configured. Please contact support."
    ),
    GenerationFailure.RATE_LIMIT: (
        "I'm experiencing high demand right now. Please try again in a moment."
    ),
    GenerationFailure.CONNECTIVITY: (
        "I'm having connectivity issues. Please try again shortly."
    ),
    GenerationFailure.UNKNOWN: (
        "I apologize, but I'm having trouble processing your request right now. "
        "Please try again in a moment."
    ),
}


class EmptyCompletionError(RuntimeError):
    """The model returned no text."""


def classify_generation_error(error: Exception) -> GenerationFailure:
    """Map a completion failure to its fallback category."""
    if isinstance(error, (AuthenticationError, PermissionDeniedError, ValidationError)):
        return GenerationFailure.CONFIGURATION
    if isinstance(error, RateLimitError):
        return GenerationFailure.RATE_LIMIT
    if isinstance(
        error,
        (APITimeoutError, APIConnectionError, asyncio.TimeoutError, TimeoutError, ConnectionError),
    ):
        return GenerationFailure.CONNECTIVITY

    message = str(error).lower()
    if "openai_api_key" in message:
        return GenerationFailure.CONFIGURATION
    if "rate limit" in message or "quota" in message:
        return GenerationFailure.RATE_LIMIT
    if "network" in message or "timeout" in message or "connection" in message:
        return GenerationFailure.CONNECTIVITY
    return GenerationFailure.UNKNOWN


async def generate_reply(
    system_prompt: str,
    conversation: list[ConversationTurn],
    llm: CompletionClient,
    model: str,
    temperature: float = 0.3,
    top_p: float = 0.9,
    max_tokens: int = 1000,
) -> str:
    """
    Generate the assistant's reply under the assembled system prompt.

    Args:
        system_prompt: Instruction block, sent as the leading system message
        conversation: Full conversation, oldest turn first
        llm: Chat completion client
        model: Model name

    Returns:
        Trimmed reply text, or the fallback message for the failure category
    """
    messages = [{"role": "system", "content": system_prompt}]
    messages.extend(turn.to_message() for turn in conversation)

    try:
        content = await llm.complete(
            model=model,
            messages=messages,
            temperature=temperature,
            top_p=top_p,
            max_tokens=max_tokens,
        )
        reply = (content or "").strip()
        if not reply:
            raise EmptyCompletionError("No response received from OpenAI")
        return reply
    except Exception as e:
        category = classify_generation_error(e)
        logger.error(
            f"LLM call failed ({category.value}): {e}",
            extra={"extra_data": {"failure": category.value}},
        )
        return FALLBACK_MESSAGES[category]

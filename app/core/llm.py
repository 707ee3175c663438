"""LLM client and structured-output parsing utilities."""

import json
import re
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from app.core.config import get_settings

T = TypeVar("T", bound=BaseModel)


class CompletionClient(Protocol):
    """Anything that can run a chat completion the way ChatClient does."""

    async def complete(
        self,
        model: str,
        messages: list[dict[str, str]],
        temperature: float,
        top_p: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> str | None: ...


class ChatClient:
    """Thin async wrapper over OpenAI chat completions.

    Constructed once and handed to the agent, so tests can pass a double
    instead of patching module globals.
    """

    def __init__(self, client: AsyncOpenAI | None = None):
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            settings = get_settings()
            self._client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        return self._client

    async def complete(
        self,
        model: str,
        messages: list[dict[str, str]],
        temperature: float,
        top_p: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> str | None:
        """
        Run one chat completion and return the first choice's text.

        Args:
            model: Model name
            messages: Chat messages (role/content dicts)
            temperature: Sampling temperature
            top_p: Nucleus sampling cutoff
            max_tokens: Max completion tokens
            json_mode: Request a JSON object response

        Returns:
            Message content, or None if the response carried no content
        """
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self._get_client().chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            top_p=top_p,
            max_tokens=max_tokens,
            **kwargs,
        )

        if not response.choices:
            return None
        return response.choices[0].message.content


def _strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_llm_json(raw_output: str, model: type[T]) -> T:
    """
    Parse LLM output as JSON and validate against a Pydantic model.

    Args:
        raw_output: Raw string from LLM response
        model: Pydantic model class to validate against

    Returns:
        Validated Pydantic model instance

    Raises:
        json.JSONDecodeError: If JSON parsing fails after cleanup
        pydantic.ValidationError: If parsed JSON doesn't match schema
    """
    cleaned = _strip_llm_fences(raw_output)
    parsed = json.loads(cleaned)
    return model.model_validate(parsed)


@dataclass(frozen=True)
class ParsedOutput(Generic[T]):
    """Structured output that validated against its schema."""

    value: T


@dataclass(frozen=True)
class ParseFailure:
    """Structured output that could not be parsed or validated."""

    error: str
    raw_output: str | None = None


def try_parse_llm_json(raw_output: str | None, model: type[T]) -> ParsedOutput[T] | ParseFailure:
    """
    Parse LLM output into a two-variant result instead of raising.

    Args:
        raw_output: Raw string from LLM response (None counts as a failure)
        model: Pydantic model class to validate against

    Returns:
        ParsedOutput with the validated model, or ParseFailure with the reason
    """
    if not raw_output or not raw_output.strip():
        return ParseFailure(error="empty output", raw_output=raw_output)

    try:
        return ParsedOutput(value=parse_llm_json(raw_output, model))
    except json.JSONDecodeError as e:
        return ParseFailure(error=f"invalid JSON: {e}", raw_output=raw_output)
    except ValidationError as e:
        return ParseFailure(
            error=f"schema mismatch: {e.error_count()} error(s)", raw_output=raw_output
        )

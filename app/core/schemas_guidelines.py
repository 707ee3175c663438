"""Pydantic schemas for guidelines, candidates, and filter selections."""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _parse_vector(value: Any) -> Any:
    """Accept pgvector's text form ("[0.1,0.2]") as well as a list."""
    if isinstance(value, str):
        return json.loads(value)
    return value


class Guideline(BaseModel):
    """A stored guideline row.

    The directive text lives in the ``guideline`` column; it is exposed here as
    ``directive``. Global guidelines never carry a condition or a vector;
    conditional guidelines always carry a condition.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int
    condition: str | None = None
    directive: str = Field(..., alias="guideline", min_length=1)
    is_global: bool = False
    is_disabled: bool = False
    condition_vector: list[float] | None = None
    created_at: datetime | None = None

    @field_validator("condition_vector", mode="before")
    @classmethod
    def parse_condition_vector(cls, value: Any) -> Any:
        return _parse_vector(value)

    @model_validator(mode="after")
    def check_scope(self) -> "Guideline":
        if self.is_global:
            if self.condition is not None or self.condition_vector is not None:
                raise ValueError("Global guidelines cannot have a condition or condition vector")
        elif self.condition is None:
            raise ValueError("Conditional guidelines require a condition")
        return self


class GuidelineCandidate(BaseModel):
    """A conditional guideline returned by similarity search."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    condition: str
    directive: str = Field(..., alias="guideline")
    similarity: float


class GuidelineSelection(BaseModel):
    """One guideline the relevance filter chose to keep."""

    id: int | str
    reason: str | None = None


class GuidelineSelectionResponse(BaseModel):
    """Structured output expected from the relevance filter call."""

    guidelines: list[GuidelineSelection]

    def selected_ids(self) -> set[str]:
        return {str(item.id) for item in self.guidelines}


# =============================================================================
# API schemas
# =============================================================================


class GuidelineCreate(BaseModel):
    directive: str = Field(..., alias="guideline", min_length=1)
    condition: str | None = None
    is_global: bool = False

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def check_condition(self) -> "GuidelineCreate":
        if self.is_global:
            self.condition = None
        elif not self.condition or not self.condition.strip():
            raise ValueError("Condition is required for conditional guidelines")
        return self


class GuidelineUpdate(BaseModel):
    directive: str | None = Field(None, alias="guideline", min_length=1)
    condition: str | None = Field(None, min_length=1)
    is_disabled: bool | None = None

    model_config = ConfigDict(populate_by_name=True)


class GuidelineResponse(BaseModel):
    """Guideline as returned over HTTP, without its condition vector."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    condition: str | None = None
    guideline: str
    is_global: bool
    is_disabled: bool
    created_at: datetime | None = None

    @classmethod
    def from_guideline(cls, guideline: Guideline) -> "GuidelineResponse":
        return cls(
            id=guideline.id,
            condition=guideline.condition,
            guideline=guideline.directive,
            is_global=guideline.is_global,
            is_disabled=guideline.is_disabled,
            created_at=guideline.created_at,
        )

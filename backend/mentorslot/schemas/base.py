"""Strict schema baselines and shared field coercion."""

from datetime import time
from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ..core.time_utils import parse_hhmm


class StrictModel(BaseModel):
    """Neutral strict base for response DTOs."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, str_strip_whitespace=True)


T = TypeVar("T")


class PaginatedResponse(StrictModel, Generic[T]):
    """Standard paginated envelope for list endpoints."""

    items: List[T] = Field(description="Items on this page")
    total: int = Field(description="Total number of matching items")
    page: int = Field(default=1, description="Current page number", ge=1)
    per_page: int = Field(default=10, description="Items per page", ge=1, le=100)
    has_next: bool = Field(description="Whether there's a next page")
    has_prev: bool = Field(description="Whether there's a previous page")


def coerce_hhmm(value: object) -> object:
    """Accept ``HH:MM`` strings for time fields; leave other input to pydantic."""
    if isinstance(value, str):
        return parse_hhmm(value)
    return value


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")

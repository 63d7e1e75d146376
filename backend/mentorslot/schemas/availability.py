"""Mentor availability template schemas."""

from datetime import date, time
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator

from ..models.availability import MentorAvailabilityWindow
from ..models.offering import MentorOffering, SessionType
from .base import StrictModel, StrictRequestModel, coerce_hhmm, format_hhmm


class AvailabilityWindowIn(StrictRequestModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0=Monday ... 6=Sunday")
    start_time: time
    end_time: time
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _parse_times(cls, v: object) -> object:
        return coerce_hhmm(v)


class AvailabilityWindowsReplace(StrictRequestModel):
    windows: List[AvailabilityWindowIn]


class OfferingIn(StrictRequestModel):
    session_type: SessionType
    duration_minutes: int = Field(..., ge=15)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)


class OfferingsReplace(StrictRequestModel):
    offerings: List[OfferingIn]


class AvailabilityWindowOut(StrictModel):
    day_of_week: int
    start_time: str
    end_time: str
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None

    @classmethod
    def from_model(cls, window: MentorAvailabilityWindow) -> "AvailabilityWindowOut":
        return cls(
            day_of_week=window.day_of_week,
            start_time=format_hhmm(window.start_time),
            end_time=format_hhmm(window.end_time),
            valid_from=window.valid_from,
            valid_until=window.valid_until,
        )


class OfferingOut(StrictModel):
    session_type: str
    duration_minutes: int
    price: float

    @classmethod
    def from_model(cls, offering: MentorOffering) -> "OfferingOut":
        return cls(
            session_type=offering.session_type,
            duration_minutes=offering.duration_minutes,
            price=float(offering.price),
        )


class AvailabilityTemplateResponse(StrictModel):
    mentor_id: str
    windows: List[AvailabilityWindowOut]
    offerings: List[OfferingOut]

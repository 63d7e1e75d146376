"""Slot listing responses."""

from datetime import date
from typing import List

from pydantic import Field

from ..services.slot_calculator import Slot
from .base import StrictModel, format_hhmm


class SlotResponse(StrictModel):
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM")
    available: bool

    @classmethod
    def from_slot(cls, slot: Slot) -> "SlotResponse":
        return cls(
            start_time=format_hhmm(slot.start_time),
            end_time=format_hhmm(slot.end_time),
            available=slot.available,
        )


class SlotsResponse(StrictModel):
    mentor_id: str
    slot_date: date
    slots: List[SlotResponse]


class ConsecutiveSlotsResponse(SlotsResponse):
    duration_minutes: int

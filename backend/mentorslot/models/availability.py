# backend/mentorslot/models/availability.py
"""
Mentor availability template.

A mentor publishes weekly windows (weekday + start/end time of day). The slot
calculator expands the windows that apply to a date into 15-minute cells.
Windows may be limited to a date range; outside it they do not apply.
"""

from datetime import date
from typing import Any, Dict

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Time,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base


class MentorAvailabilityWindow(Base):
    """One weekly (weekday, start, end) range in a mentor's template."""

    __tablename__ = "mentor_availability_windows"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    mentor_id = Column(String(64), nullable=False)
    # date.weekday(): Monday=0 ... Sunday=6
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    valid_from = Column(Date, nullable=True)
    valid_until = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_availability_windows_mentor_day", "mentor_id", "day_of_week"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_availability_window_order"),
    )

    def applies_to(self, day: date) -> bool:
        """Whether this window contributes slots on ``day``."""
        if not self.is_active or day.weekday() != self.day_of_week:
            return False
        if self.valid_from is not None and day < self.valid_from:
            return False
        if self.valid_until is not None and day > self.valid_until:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "mentor_id": self.mentor_id,
            "day_of_week": self.day_of_week,
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_until": self.valid_until.isoformat() if self.valid_until else None,
        }

    def __repr__(self) -> str:
        return (
            f"<MentorAvailabilityWindow {self.mentor_id} day={self.day_of_week} "
            f"{self.start_time}-{self.end_time}>"
        )

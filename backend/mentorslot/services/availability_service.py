# backend/mentorslot/services/availability_service.py
"""
Availability Service

Lets a mentor publish their weekly template and priced offerings. The
booking flow only reads these; edits never touch existing sessions.
"""

from datetime import date, time
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ValidationException
from ..core.time_utils import is_on_grid
from ..core.timezone_utils import Clock
from ..models.availability import MentorAvailabilityWindow
from ..models.offering import MentorOffering, SessionType
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class AvailabilityService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.availability_repository = RepositoryFactory.create_availability_repository(db)
        self.offering_repository = RepositoryFactory.create_offering_repository(db)

    @staticmethod
    def _validate_windows(windows: Sequence[Dict[str, Any]]) -> None:
        by_day: Dict[int, List[Dict[str, Any]]] = {}
        for window in windows:
            day = window["day_of_week"]
            start: time = window["start_time"]
            end: time = window["end_time"]
            if not 0 <= day <= 6:
                raise ValidationException(
                    "day_of_week must be between 0 (Monday) and 6 (Sunday)",
                    details={"day_of_week": day},
                )
            if not (is_on_grid(start) and is_on_grid(end)):
                raise ValidationException(
                    "Availability must start and end on 15-minute boundaries",
                    details={"start_time": str(start), "end_time": str(end)},
                )
            if start >= end:
                raise ValidationException(
                    "Availability window must end after it starts",
                    details={"start_time": str(start), "end_time": str(end)},
                )
            valid_from: Optional[date] = window.get("valid_from")
            valid_until: Optional[date] = window.get("valid_until")
            if valid_from and valid_until and valid_from > valid_until:
                raise ValidationException("valid_from must not be after valid_until")
            by_day.setdefault(day, []).append(window)

        # Windows on the same weekday may not overlap when their date ranges can coincide
        for day, day_windows in by_day.items():
            ordered = sorted(day_windows, key=lambda w: w["start_time"])
            for prev, cur in zip(ordered, ordered[1:]):
                if cur["start_time"] < prev["end_time"] and _ranges_intersect(prev, cur):
                    raise ValidationException(
                        "Availability windows overlap",
                        code="AVAILABILITY_OVERLAP",
                        details={
                            "day_of_week": day,
                            "first": f"{prev['start_time']:%H:%M}-{prev['end_time']:%H:%M}",
                            "second": f"{cur['start_time']:%H:%M}-{cur['end_time']:%H:%M}",
                        },
                    )

    @BaseService.measure_operation("replace_windows")
    def replace_windows(
        self, mentor_id: str, windows: Sequence[Dict[str, Any]]
    ) -> List[MentorAvailabilityWindow]:
        self._validate_windows(windows)
        with self.transaction():
            created = self.availability_repository.replace_windows(mentor_id, list(windows))
        self.log_operation("replace_windows", mentor_id=mentor_id, count=len(created))
        return created

    @BaseService.measure_operation("replace_offerings")
    def replace_offerings(
        self, mentor_id: str, offerings: Sequence[Dict[str, Any]]
    ) -> List[MentorOffering]:
        seen = set()
        normalized = []
        for offering in offerings:
            try:
                session_type = SessionType(offering["session_type"]).value
            except ValueError as exc:
                raise ValidationException(
                    f"Unknown session type {offering['session_type']!r}",
                    code="INVALID_SESSION_TYPE",
                ) from exc
            duration = offering["duration_minutes"]
            if duration not in settings.allowed_durations:
                raise ValidationException(
                    f"Duration must be one of {settings.allowed_durations} minutes",
                    code="INVALID_DURATION",
                    details={"duration_minutes": duration},
                )
            if offering["price"] < 0:
                raise ValidationException("Price cannot be negative", details={"price": offering["price"]})
            key = (session_type, duration)
            if key in seen:
                raise ValidationException(
                    "Duplicate offering", details={"session_type": session_type, "duration_minutes": duration}
                )
            seen.add(key)
            normalized.append(
                {"session_type": session_type, "duration_minutes": duration, "price": offering["price"]}
            )

        with self.transaction():
            created = self.offering_repository.replace_offerings(mentor_id, normalized)
        self.log_operation("replace_offerings", mentor_id=mentor_id, count=len(created))
        return created

    def get_template(self, mentor_id: str) -> Dict[str, Any]:
        return {
            "mentor_id": mentor_id,
            "windows": self.availability_repository.get_windows(mentor_id),
            "offerings": self.offering_repository.list_for_mentor(mentor_id),
        }


def _ranges_intersect(a: Dict[str, Any], b: Dict[str, Any]) -> bool:
    a_from, a_until = a.get("valid_from") or date.min, a.get("valid_until") or date.max
    b_from, b_until = b.get("valid_from") or date.min, b.get("valid_until") or date.max
    return a_from <= b_until and b_from <= a_until

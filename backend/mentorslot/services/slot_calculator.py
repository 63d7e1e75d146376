# backend/mentorslot/services/slot_calculator.py
"""
Slot Calculator

Expands a mentor's weekly availability template into 15-minute base slots
for a date, marks the ones occupied by active sessions, and enumerates the
consecutive windows a session of a given duration could occupy.

Pending sessions whose payment window has lapsed no longer occupy their
cells here, even before the expiry write lands.
"""

from dataclasses import dataclass
from datetime import date, time
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.constants import SLOT_GRANULARITY_MINUTES
from ..core.exceptions import ValidationException
from ..core.time_utils import minutes_to_time, time_to_minutes
from ..core.timezone_utils import Clock
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    start_time: time
    end_time: time
    available: bool


@dataclass(frozen=True)
class _Cell:
    start: int  # minutes since midnight
    end: int
    available: bool


def validate_duration(duration_minutes: int) -> None:
    if duration_minutes <= 0 or duration_minutes % SLOT_GRANULARITY_MINUTES != 0:
        raise ValidationException(
            f"Duration must be a positive multiple of {SLOT_GRANULARITY_MINUTES} minutes",
            code="INVALID_DURATION",
            details={"duration_minutes": duration_minutes},
        )


def cell_starts(start_time: time, duration_minutes: int) -> List[time]:
    """Start times of the base cells covered by [start_time, start_time + duration)."""
    start = time_to_minutes(start_time)
    return [
        minutes_to_time(m)
        for m in range(start, start + duration_minutes, SLOT_GRANULARITY_MINUTES)
    ]


class SlotCalculator(BaseService):
    """Computes bookable slots for a mentor on a date."""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.availability_repository = RepositoryFactory.create_availability_repository(db)
        self.session_repository = RepositoryFactory.create_session_repository(db)

    def _build_cells(self, mentor_id: str, day: date) -> List[_Cell]:
        windows = self.availability_repository.get_windows_for_date(mentor_id, day)
        if not windows:
            return []

        now = self.now()
        occupied = [
            (time_to_minutes(s.start_time), time_to_minutes(s.end_time, is_end_time=True))
            for s in self.session_repository.get_active_sessions(mentor_id, day)
            if not s.is_logically_expired(now)
        ]

        cells: Dict[int, _Cell] = {}
        for window in windows:
            current = time_to_minutes(window.start_time)
            window_end = time_to_minutes(window.end_time, is_end_time=True)
            while current + SLOT_GRANULARITY_MINUTES <= window_end:
                cell_end = current + SLOT_GRANULARITY_MINUTES
                taken = any(current < o_end and cell_end > o_start for o_start, o_end in occupied)
                cells[current] = _Cell(current, cell_end, not taken)
                current = cell_end
        return [cells[k] for k in sorted(cells)]

    @staticmethod
    def _to_slot(start: int, end: int, available: bool) -> Slot:
        return Slot(minutes_to_time(start), minutes_to_time(end), available)

    @BaseService.measure_operation("get_slots")
    def get_slots(self, mentor_id: str, day: date) -> List[Slot]:
        """
        Base slots at 15-minute granularity for every availability window on
        ``day``. Empty when the mentor has no template for that weekday.
        """
        return [self._to_slot(c.start, c.end, c.available) for c in self._build_cells(mentor_id, day)]

    @BaseService.measure_operation("get_consecutive_slots")
    def get_consecutive_slots(
        self, mentor_id: str, day: date, duration_minutes: int
    ) -> List[Slot]:
        """
        Every window of exactly ``duration_minutes`` lying inside the base
        grid, stepped at 15 minutes.

        A window is listed only if all of its cells exist and are contiguous,
        so windows running past the end of availability are excluded while one
        ending exactly at it is kept. It is available iff every cell is free.
        """
        validate_duration(duration_minutes)
        cells = self._build_cells(mentor_id, day)
        return self._consecutive_from_cells(cells, duration_minutes)

    def _consecutive_from_cells(self, cells: Sequence[_Cell], duration_minutes: int) -> List[Slot]:
        needed = duration_minutes // SLOT_GRANULARITY_MINUTES
        windows: List[Slot] = []
        for i in range(len(cells) - needed + 1):
            run = cells[i : i + needed]
            contiguous = all(run[j].end == run[j + 1].start for j in range(len(run) - 1))
            if not contiguous:
                continue
            windows.append(
                self._to_slot(run[0].start, run[-1].end, all(c.available for c in run))
            )
        return windows

    def find_window(
        self, mentor_id: str, day: date, start_time: time, duration_minutes: int
    ) -> Optional[Slot]:
        """The consecutive window starting at ``start_time``, or None if the template lacks it."""
        validate_duration(duration_minutes)
        cells = self._build_cells(mentor_id, day)
        target = time_to_minutes(start_time)
        for window in self._consecutive_from_cells(cells, duration_minutes):
            if time_to_minutes(window.start_time) == target:
                return window
        return None

    def is_window_available(
        self, mentor_id: str, day: date, start_time: time, duration_minutes: int
    ) -> bool:
        window = self.find_window(mentor_id, day, start_time, duration_minutes)
        return window is not None and window.available


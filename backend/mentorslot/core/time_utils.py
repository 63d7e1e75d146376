from __future__ import annotations

from datetime import time

from .constants import MINUTES_PER_DAY, SLOT_GRANULARITY_MINUTES


def time_to_minutes(t: time, *, is_end_time: bool = False) -> int:
    """
    Convert time to minutes since midnight.

    Args:
        t: Time object.
        is_end_time: If True, treat time(0, 0) as 1440 (end of day).

    Returns:
        Minutes since midnight (0-1440).
    """
    minutes = t.hour * 60 + t.minute
    if is_end_time and minutes == 0:
        return MINUTES_PER_DAY
    return minutes


def minutes_to_time(minutes: int) -> time:
    """Inverse of time_to_minutes; 1440 maps back to midnight."""
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"minutes out of range: {minutes}")
    if minutes == MINUTES_PER_DAY:
        return time(0, 0)
    return time(minutes // 60, minutes % 60)


def parse_hhmm(value: str) -> time:
    """Parse a strict ``HH:MM`` string."""
    parts = value.split(":")
    if len(parts) != 2 or not all(p.isdigit() and len(p) == 2 for p in parts):
        raise ValueError(f"Invalid time format '{value}', expected HH:MM")
    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time '{value}'")
    return time(hour, minute)


def is_on_grid(t: time) -> bool:
    return t.second == 0 and t.microsecond == 0 and t.minute % SLOT_GRANULARITY_MINUTES == 0

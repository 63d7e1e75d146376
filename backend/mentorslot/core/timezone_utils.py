"""
Clock and timezone helpers for the reservation engine.

Deadlines are absolute UTC instants. Session dates and times are wall-clock
values in the business timezone configured in settings.
"""

from datetime import date, datetime, time, timezone
from typing import Callable

import pytz

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values (as returned by SQLite) are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def get_business_timezone(tz_name: str) -> pytz.BaseTzInfo:
    return pytz.timezone(tz_name)


def local_to_utc(tz_name: str, day: date, at: time) -> datetime:
    """Convert a wall-clock date/time in ``tz_name`` to aware UTC."""
    tz = get_business_timezone(tz_name)
    return tz.localize(datetime.combine(day, at)).astimezone(timezone.utc)

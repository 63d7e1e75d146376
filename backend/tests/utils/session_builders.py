"""Shared identities, dates and a controllable clock for reservation tests."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Dict

MENTOR_ID = "mentor-ada"
CLIENT_ID = "client-bob"
OTHER_CLIENT_ID = "client-cat"

# Saturday; the clock starts an hour before the mentor's first window.
BOOKING_DATE = date(2024, 6, 1)
CLOCK_START = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock whose time only moves when a test says so."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> datetime:
        self.current = self.current + timedelta(seconds=seconds)
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value


def weekly_windows(*ranges: tuple) -> list:
    """The same (start, end) windows on every weekday."""
    return [
        {"day_of_week": day, "start_time": start, "end_time": end}
        for day in range(7)
        for start, end in ranges
    ]


def session_payload(start: str = "10:00", duration: int = 30, **overrides) -> Dict:
    payload = {
        "mentor_id": MENTOR_ID,
        "session_type": "video",
        "duration_minutes": duration,
        "scheduled_date": BOOKING_DATE.isoformat(),
        "start_time": start,
    }
    payload.update(overrides)
    return payload


MORNING = (time(9, 0), time(12, 0))
AFTERNOON = (time(13, 0), time(17, 0))

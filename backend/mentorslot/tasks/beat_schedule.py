# backend/mentorslot/tasks/beat_schedule.py
"""
Celery Beat schedule.

Expiry is decided by the clock; this schedule only bounds how long a lapsed
session can sit in the soft-expired state before the sweep persists it.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

from mentorslot.core.config import settings


def get_beat_schedule(interval_seconds: Optional[int] = None) -> Dict[str, Dict[str, Any]]:
    interval = interval_seconds or settings.expiry_sweep_interval_seconds
    return {
        "sweep-expired-sessions": {
            "task": "booking_timeouts.sweep_expired_sessions",
            "schedule": timedelta(seconds=interval),
            "options": {
                "queue": "bookings",
                # A sweep that could not start before the next one is redundant.
                "expires": interval,
            },
        },
    }

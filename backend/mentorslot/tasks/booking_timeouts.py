# backend/mentorslot/tasks/booking_timeouts.py
"""
Periodic expiry of lapsed pending sessions.

The sweep goes through the same idempotent cancel path as the API, so it
can overlap with client-triggered checks without double effects.
"""

import logging
from typing import Any, Callable, ContextManager, Dict, TypeVar, cast

from celery import shared_task
from sqlalchemy.orm import Session

from mentorslot.database import get_db_session
from mentorslot.services.timeout_engine import TimeoutEngine

logger = logging.getLogger(__name__)

_TaskFunc = TypeVar("_TaskFunc", bound=Callable[..., Any])

# Swapped in tests to point at a test database.
session_factory: Callable[[], ContextManager[Session]] = get_db_session


def _typed_shared_task(*args: Any, **kwargs: Any) -> Callable[[_TaskFunc], _TaskFunc]:
    """Typed wrapper for Celery's shared_task decorator."""
    return cast(Callable[[_TaskFunc], _TaskFunc], shared_task(*args, **kwargs))


@_typed_shared_task(name="booking_timeouts.sweep_expired_sessions", ignore_result=True)
def sweep_expired_sessions() -> Dict[str, Any]:
    """Expire every pending session whose payment window has passed."""
    with session_factory() as db:
        expired = TimeoutEngine(db).sweep_expired(trigger="scheduled")
        session_ids = [s.id for s in expired]
    if session_ids:
        logger.info("[BOOKING-TIMEOUTS] Expired %d session(s)", len(session_ids))
    return {"expired_count": len(session_ids), "session_ids": session_ids}

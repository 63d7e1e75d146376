"""
Per-mentor booking mutex backed by Redis.

Serializes the check-then-insert of createSession for one mentor/date across
API workers. It is an optimization in front of the slot-hold unique
constraint, so every failure mode fails open with a warning.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
import logging
import threading
import time
from typing import Iterator, Optional

from redis import Redis

from mentorslot.core.config import settings
from mentorslot.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def _lock_key(mentor_id: str, day: date) -> str:
    return f"mentorslot:lock:mentor:{mentor_id}:{day.isoformat()}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if not settings.redis_url:
        return None
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("slot_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def acquire_slot_lock(mentor_id: str, day: date, ttl_s: int) -> bool:
    if not settings.redis_url:
        return True
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_slot_lock("acquire", "redis_unavailable")
        return True
    try:
        acquired = bool(client.set(_lock_key(mentor_id, day), str(time.time()), nx=True, ex=ttl_s))
    except Exception as exc:
        prometheus_metrics.record_slot_lock("acquire", "error")
        logger.warning(
            "slot_lock_acquire_failed",
            extra={
                "mentor_id": mentor_id,
                "date": day.isoformat(),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return True
    prometheus_metrics.record_slot_lock("acquire", "success" if acquired else "blocked")
    return acquired


def release_slot_lock(mentor_id: str, day: date) -> None:
    client = _get_sync_redis()
    if client is None:
        return
    try:
        deleted = client.delete(_lock_key(mentor_id, day))
        prometheus_metrics.record_slot_lock("release", "success" if deleted else "not_found")
    except Exception as exc:
        prometheus_metrics.record_slot_lock("release", "error")
        logger.warning(
            "slot_lock_release_failed",
            extra={
                "mentor_id": mentor_id,
                "date": day.isoformat(),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )


@contextmanager
def mentor_slot_lock(
    mentor_id: str,
    day: date,
    ttl_s: Optional[int] = None,
    wait_s: float = 2.0,
    poll_s: float = 0.05,
) -> Iterator[bool]:
    """
    Hold the mentor/date mutex for the duration of the block.

    Waits up to ``wait_s`` for a contended lock, then proceeds without it
    (yielding False); the database constraint still rejects overlaps.
    """
    ttl = ttl_s if ttl_s is not None else settings.slot_lock_ttl_seconds
    deadline = time.monotonic() + wait_s
    acquired = acquire_slot_lock(mentor_id, day, ttl)
    while not acquired and time.monotonic() < deadline:
        time.sleep(poll_s)
        acquired = acquire_slot_lock(mentor_id, day, ttl)
    if not acquired:
        logger.warning(
            "slot_lock_wait_exhausted",
            extra={"mentor_id": mentor_id, "date": day.isoformat()},
        )
    try:
        yield acquired
    finally:
        if acquired and _get_sync_redis() is not None:
            release_slot_lock(mentor_id, day)

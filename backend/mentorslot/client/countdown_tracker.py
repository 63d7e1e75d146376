"""
Client-side payment countdown tracker.

A best-effort rendering cache of pending sessions' payment deadlines. It
recomputes every countdown from the wall clock, so a paused loop simply
catches up on the next tick. It never decides expiry for the server: when a
countdown hits zero it marks the session locally and asks the API to
reconcile.

Resolved session keys go into a persistent "handled" map, stamped with the
time they were resolved, so a late add_timeout() for the same session (a
stale re-render, another code path) cannot re-arm a timer. Handled keys and
resolved records are forgotten once they are older than ``handled_ttl``; by
then the server-side deadline is long gone and add_timeout() refuses the
session anyway.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
import math
from typing import Any, Callable, Dict, Iterable, List, Optional

from mentorslot.core.constants import (
    HANDLED_EXPIRY_STORAGE_KEY,
    HANDLED_EXPIRY_TTL_SECONDS,
    TIMEOUT_STORAGE_KEY,
)
from mentorslot.core.timezone_utils import Clock, ensure_utc, utc_now

from .api_client import TimeoutApiClient, TimeoutApiError
from .storage import InMemoryTimeoutStorage, TimeoutStorage

logger = logging.getLogger(__name__)

ACTIVE = "active"
EXPIRED = "expired"


@dataclass
class TimeoutRecord:
    booking_id: str
    session_id: str
    timeout_at: datetime
    status: str = ACTIVE
    countdown: int = 0
    resolved_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return session_key(self.booking_id, self.session_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "booking_id": self.booking_id,
            "session_id": self.session_id,
            "timeout_at": self.timeout_at.isoformat(),
            "status": self.status,
            "countdown": self.countdown,
            "resolved_at": None if self.resolved_at is None else self.resolved_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeoutRecord":
        return cls(
            booking_id=str(data["booking_id"]),
            session_id=str(data["session_id"]),
            timeout_at=ensure_utc(datetime.fromisoformat(data["timeout_at"])),
            status=str(data.get("status", ACTIVE)),
            countdown=int(data.get("countdown", 0)),
            resolved_at=_parse_optional(data.get("resolved_at")),
        )


def session_key(booking_id: str, session_id: str) -> str:
    return f"{booking_id}_{session_id}"


def seconds_left(timeout_at: datetime, now: datetime) -> int:
    return max(0, math.floor((ensure_utc(timeout_at) - ensure_utc(now)).total_seconds()))


def format_countdown(seconds: int) -> str:
    """Render seconds as m:ss."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def _parse_optional(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return ensure_utc(datetime.fromisoformat(value))


class ClientCountdownTracker:
    def __init__(
        self,
        storage: Optional[TimeoutStorage] = None,
        api_client: Optional[TimeoutApiClient] = None,
        clock: Optional[Clock] = None,
        on_expired: Optional[Callable[[TimeoutRecord], None]] = None,
        handled_ttl: timedelta = timedelta(seconds=HANDLED_EXPIRY_TTL_SECONDS),
    ) -> None:
        self.storage: TimeoutStorage = storage or InMemoryTimeoutStorage()
        self.api_client = api_client
        self.clock: Clock = clock or utc_now
        self.on_expired = on_expired
        self.handled_ttl = handled_ttl
        self.records: Dict[str, TimeoutRecord] = {}
        # session key -> when it was resolved
        self.handled: Dict[str, datetime] = {}
        self.load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        now = self.clock()
        self.records = {}
        for key, raw in (self.storage.get(TIMEOUT_STORAGE_KEY) or {}).items():
            try:
                record = TimeoutRecord.from_dict(raw)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Dropping unreadable timeout record %s: %s", key, exc)
                continue
            if record.status != ACTIVE and record.resolved_at is None:
                record.resolved_at = now
            self.records[key] = record

        self.handled = {}
        stored = self.storage.get(HANDLED_EXPIRY_STORAGE_KEY) or {}
        if isinstance(stored, list):
            # Older snapshots kept bare keys
            stored = {key: now.isoformat() for key in stored}
        for key, resolved_at in stored.items():
            try:
                self.handled[key] = ensure_utc(datetime.fromisoformat(resolved_at))
            except (TypeError, ValueError) as exc:
                logger.warning("Dropping unreadable handled entry %s: %s", key, exc)

        if self.prune(now):
            self.persist()

    def persist(self) -> None:
        self.storage.set(TIMEOUT_STORAGE_KEY, {k: r.to_dict() for k, r in self.records.items()})
        self.storage.set(
            HANDLED_EXPIRY_STORAGE_KEY,
            {k: self.handled[k].isoformat() for k in sorted(self.handled)},
        )

    def clear(self) -> None:
        self.records.clear()
        self.handled.clear()
        self.storage.remove(TIMEOUT_STORAGE_KEY)
        self.storage.remove(HANDLED_EXPIRY_STORAGE_KEY)

    def prune(self, now: Optional[datetime] = None) -> int:
        """Forget handled keys and resolved records older than ``handled_ttl``."""
        cutoff = (now or self.clock()) - self.handled_ttl
        stale_handled = [k for k, resolved_at in self.handled.items() if resolved_at <= cutoff]
        stale_records = [
            k
            for k, r in self.records.items()
            if r.resolved_at is not None and r.resolved_at <= cutoff
        ]
        for key in stale_handled:
            del self.handled[key]
        for key in stale_records:
            del self.records[key]
        return len(stale_handled) + len(stale_records)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_timeout(self, booking_id: str, session_id: str, timeout_at: datetime) -> bool:
        """
        Start tracking a session's payment deadline.

        No-op (returns False) when the session is already tracked, already
        resolved, or its deadline has already passed.
        """
        key = session_key(booking_id, session_id)
        if key in self.handled or key in self.records:
            return False
        countdown = seconds_left(timeout_at, self.clock())
        if countdown <= 0:
            return False
        self.records[key] = TimeoutRecord(
            booking_id=booking_id,
            session_id=session_id,
            timeout_at=ensure_utc(timeout_at),
            countdown=countdown,
        )
        self.persist()
        return True

    def update_status(self, booking_id: str, session_id: str, status: str) -> None:
        """Record a status for a session; anything but active resolves it."""
        key = session_key(booking_id, session_id)
        now = self.clock()
        record = self.records.get(key)
        if record is not None:
            record.status = status
            if status != ACTIVE:
                record.countdown = 0
                record.resolved_at = record.resolved_at or now
        if status != ACTIVE:
            self.handled.setdefault(key, now)
        self.persist()

    def remove_timeout(self, booking_id: str, session_id: str) -> None:
        """Stop tracking; a handled key is kept until it ages out."""
        if self.records.pop(session_key(booking_id, session_id), None) is not None:
            self.persist()

    def tick(self, now: Optional[datetime] = None) -> List[TimeoutRecord]:
        """Recompute countdowns from the clock; returns sessions that just hit zero."""
        now = now or self.clock()
        self.prune(now)
        newly_expired: List[TimeoutRecord] = []
        for record in self.records.values():
            if record.status != ACTIVE:
                continue
            record.countdown = seconds_left(record.timeout_at, now)
            if record.countdown <= 0:
                record.status = EXPIRED
                record.resolved_at = now
                self.handled[record.key] = now
                newly_expired.append(record)
        self.persist()
        for record in newly_expired:
            if self.on_expired is not None:
                self.on_expired(record)
        return newly_expired

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def active_timeouts(self) -> List[TimeoutRecord]:
        return [r for r in self.records.values() if r.status == ACTIVE]

    def get(self, booking_id: str, session_id: str) -> Optional[TimeoutRecord]:
        return self.records.get(session_key(booking_id, session_id))

    def is_handled(self, booking_id: str, session_id: str) -> bool:
        return session_key(booking_id, session_id) in self.handled

    def formatted_countdown(self, booking_id: str, session_id: str) -> Optional[str]:
        record = self.get(booking_id, session_id)
        return None if record is None else format_countdown(record.countdown)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def apply_sync_result(self, expired_sessions: Iterable[Dict[str, Any]]) -> int:
        """
        Apply authoritative corrections from the server.

        A ``pending`` entry carries the server's deadline, which replaces the
        local one; any other status resolves the session locally.
        """
        applied = 0
        now = self.clock()
        for entry in expired_sessions:
            booking_id, session_id = entry["booking_id"], entry["session_id"]
            status = entry["status"]
            if status == "pending":
                record = self.get(booking_id, session_id)
                if record is None or entry.get("timeout_at") is None:
                    continue
                timeout_at = entry["timeout_at"]
                if isinstance(timeout_at, str):
                    timeout_at = datetime.fromisoformat(timeout_at.replace("Z", "+00:00"))
                record.timeout_at = ensure_utc(timeout_at)
                record.countdown = seconds_left(record.timeout_at, now)
                self.persist()
            else:
                self.update_status(booking_id, session_id, status)
            applied += 1
        return applied

    def sync(self, extra: Iterable[TimeoutRecord] = ()) -> int:
        """
        Report active timeouts (plus ``extra``) to the server and apply the reply.

        Returns the number of corrections applied.
        """
        if self.api_client is None:
            return 0
        to_report = {r.key: r for r in [*self.active_timeouts(), *extra]}
        if not to_report:
            return 0
        corrections = self.api_client.sync_timeout_state([r.to_dict() for r in to_report.values()])
        return self.apply_sync_result(corrections)

    async def run(
        self,
        stop_event: asyncio.Event,
        tick_interval: float = 1.0,
        sync_interval: float = 30.0,
    ) -> None:
        """
        Tick every ``tick_interval`` seconds and reconcile on start, every
        ``sync_interval`` seconds, and whenever a countdown reaches zero.
        """
        loop = asyncio.get_running_loop()
        next_sync = loop.time()
        while not stop_event.is_set():
            newly_expired = self.tick()
            if newly_expired or loop.time() >= next_sync:
                try:
                    await asyncio.to_thread(self.sync, newly_expired)
                except TimeoutApiError as exc:
                    logger.warning("Timeout sync failed, will retry: %s", exc)
                next_sync = loop.time() + sync_interval
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=tick_interval)
            except asyncio.TimeoutError:
                pass

# backend/mentorslot/services/timeout_engine.py
"""
Timeout Engine

Owns the payment-window policy: stamping a deadline on a new session,
deciding whether a session has lapsed, and sweeping lapsed sessions into
the expired state. Expiry is judged from the clock alone; the sweep only
makes that judgement durable.
"""

from datetime import datetime, timedelta
import logging
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import TIMEOUT_REASON
from ..core.timezone_utils import Clock, ensure_utc
from ..models.booking import BookingSession, CancelledBy, SessionStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

if TYPE_CHECKING:
    from .reservation_service import ReservationService

logger = logging.getLogger(__name__)


class TimeoutEngine(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        payment_window_seconds: Optional[int] = None,
        reservation_service: Optional["ReservationService"] = None,
    ):
        super().__init__(db, clock)
        self.payment_window = timedelta(
            seconds=payment_window_seconds or settings.payment_window_seconds
        )
        self.session_repository = RepositoryFactory.create_session_repository(db)
        self._reservation_service = reservation_service

    @property
    def reservation_service(self) -> "ReservationService":
        if self._reservation_service is None:
            from .reservation_service import ReservationService

            self._reservation_service = ReservationService(
                self.db, clock=self.clock, timeout_engine=self
            )
        return self._reservation_service

    def assign_deadline(self, creation_time: datetime) -> datetime:
        """Deadline for a session created at ``creation_time``."""
        return ensure_utc(creation_time) + self.payment_window

    @staticmethod
    def is_expired(session: BookingSession, now: datetime) -> bool:
        """Logical expiry: still pending and strictly past its deadline."""
        return session.status == SessionStatus.PENDING.value and ensure_utc(now) > ensure_utc(
            session.timeout_at
        )

    @BaseService.measure_operation("sweep_expired")
    def sweep_expired(
        self,
        mentor_id: Optional[str] = None,
        *,
        party_id: Optional[str] = None,
        trigger: str = "scheduled",
    ) -> List[BookingSession]:
        """
        Expire every lapsed pending session in scope.

        Scope is all mentors by default, one mentor with ``mentor_id``, or the
        sessions a user takes part in with ``party_id``. Safe to run from
        several triggers at once: each session goes through the idempotent
        cancel, and only sessions this call actually transitioned are returned.
        """
        now = self.now()
        candidates = self.session_repository.find_expired_pending(
            now, mentor_id=mentor_id, party_id=party_id
        )
        expired: List[BookingSession] = []
        for candidate in candidates:
            if not self.is_expired(candidate, now):
                continue
            session, changed = self.reservation_service.cancel_session(
                candidate.booking_id,
                candidate.id,
                reason=TIMEOUT_REASON,
                cancelled_by=CancelledBy.SYSTEM,
            )
            if changed:
                expired.append(session)

        prometheus_metrics.record_sweep(trigger, len(expired))
        if expired:
            logger.info(
                f"Expired {len(expired)} session(s) past their payment window",
                extra={
                    "trigger": trigger,
                    "mentor_id": mentor_id,
                    "session_ids": [s.id for s in expired],
                },
            )
        return expired

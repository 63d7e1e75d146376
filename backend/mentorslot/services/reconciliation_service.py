# backend/mentorslot/services/reconciliation_service.py
"""
Reconciliation Service

Corrects client-side countdown state against the authoritative session
records. Clients report what they are counting down; the reply lists only
the sessions whose server state differs from that picture, so a tab can
stop timers that another device already resolved.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.constants import TIMEOUT_REASON
from ..core.timezone_utils import Clock, ensure_utc
from ..models.booking import BookingSession, CancelledBy, SessionStatus
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .timeout_engine import TimeoutEngine

logger = logging.getLogger(__name__)

# Client-reported deadlines within this many seconds of the server's are treated as equal.
DEADLINE_TOLERANCE_SECONDS = 1.0

NOT_FOUND_STATUS = "not_found"


@dataclass(frozen=True)
class ClientTimeout:
    booking_id: str
    session_id: str
    timeout_at: datetime


class ReconciliationService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        timeout_engine: Optional[TimeoutEngine] = None,
    ):
        super().__init__(db, clock)
        self.timeout_engine = timeout_engine or TimeoutEngine(db, clock=self.clock)
        self.session_repository = RepositoryFactory.create_session_repository(db)

    @staticmethod
    def _entry(
        booking_id: str,
        session_id: str,
        status: str,
        reason: Optional[str],
        timeout_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        return {
            "booking_id": booking_id,
            "session_id": session_id,
            "status": status,
            "reason": reason,
            "timeout_at": ensure_utc(timeout_at) if timeout_at is not None else None,
        }

    @BaseService.measure_operation("sync_timeout_state")
    def sync_timeout_state(
        self,
        client_timeouts: Sequence[ClientTimeout],
        actor_id: Optional[str] = None,
    ) -> Dict[str, List[Dict[str, Any]]]:
        """
        Reconcile client-tracked timeouts with server truth.

        For each reported session:
        - lapsed but still pending: expire it now and report ``expired``
        - already terminal: report the terminal status and reason
        - missing, or not one of the actor's sessions: report ``not_found``
        - still pending with a different deadline: report ``pending`` with
          the authoritative deadline
        Sessions that match the client's view are omitted.
        """
        now = self.now()
        reported = {t.session_id: t for t in client_timeouts}
        sessions = {s.id: s for s in self.session_repository.get_sessions_by_ids(reported)}
        expired_sessions: List[Dict[str, Any]] = []

        for session_id, client_timeout in reported.items():
            session: Optional[BookingSession] = sessions.get(session_id)
            if (
                session is None
                or session.booking_id != client_timeout.booking_id
                or (actor_id is not None and actor_id not in (session.client_id, session.mentor_id))
            ):
                expired_sessions.append(
                    self._entry(client_timeout.booking_id, session_id, NOT_FOUND_STATUS, None)
                )
                continue

            if self.timeout_engine.is_expired(session, now):
                session, _ = self.timeout_engine.reservation_service.cancel_session(
                    session.booking_id,
                    session.id,
                    reason=TIMEOUT_REASON,
                    cancelled_by=CancelledBy.SYSTEM,
                )

            if session.is_terminal():
                expired_sessions.append(
                    self._entry(
                        session.booking_id,
                        session.id,
                        str(session.status),
                        session.cancellation_reason
                        or ("paid" if session.status == SessionStatus.PAID.value else None),
                        session.timeout_at,
                    )
                )
                continue

            drift = abs(
                (ensure_utc(client_timeout.timeout_at) - session.timeout_at_utc).total_seconds()
            )
            if drift > DEADLINE_TOLERANCE_SECONDS:
                expired_sessions.append(
                    self._entry(
                        session.booking_id,
                        session.id,
                        SessionStatus.PENDING.value,
                        "deadline_mismatch",
                        session.timeout_at,
                    )
                )

        if expired_sessions:
            logger.info(
                f"Timeout sync corrected {len(expired_sessions)} of {len(reported)} session(s)",
                extra={"actor_id": actor_id},
            )
        return {"expired_sessions": expired_sessions}

    @BaseService.measure_operation("get_timeout_status")
    def get_timeout_status(
        self, session_ids: Sequence[str], actor_id: Optional[str] = None
    ) -> Dict[str, str]:
        """
        Read-only batch lookup of effective status per session.

        Lapsed pending sessions read as ``expired`` even though nothing is
        written. Unknown ids (and other users' sessions) are omitted.
        """
        now = self.now()
        result: Dict[str, str] = {}
        for session in self.session_repository.get_sessions_by_ids(session_ids):
            if actor_id is not None and actor_id not in (session.client_id, session.mentor_id):
                continue
            result[session.id] = session.effective_status(now)
        return result

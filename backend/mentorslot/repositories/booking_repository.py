# backend/mentorslot/repositories/booking_repository.py
"""
Booking and session data access.

Status transitions away from pending are conditional UPDATEs guarded by the
current status, so concurrent payment and expiry attempts cannot both win.
Slot holds are written and released in the same transaction as the session
change they belong to.
"""

from datetime import date, datetime, time
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.booking import ACTIVE_STATUSES, Booking, BookingSession, SessionStatus
from ..models.slot_hold import SessionSlotHold
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def find_for_pair(self, client_id: str, mentor_id: str) -> Optional[Booking]:
        """Earliest booking between this client and mentor, if any."""
        try:
            return (
                self.db.query(Booking)
                .filter(Booking.client_id == client_id, Booking.mentor_id == mentor_id)
                .order_by(Booking.id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding booking for {client_id}/{mentor_id}: {str(e)}")
            raise RepositoryException(f"Failed to find booking: {str(e)}")

    def get_with_sessions(self, booking_id: str) -> Optional[Booking]:
        try:
            return (
                self.db.query(Booking)
                .options(selectinload(Booking.sessions))
                .filter(Booking.id == booking_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to load booking: {str(e)}")

    def list_for_party(
        self,
        party_id: str,
        *,
        status: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Booking], int]:
        """
        One page of bookings where ``party_id`` is the client or the mentor,
        newest first, plus the total matching count.

        ``status`` keeps bookings that have at least one session in that status.
        """
        try:
            query = self.db.query(Booking).filter(
                or_(Booking.client_id == party_id, Booking.mentor_id == party_id)
            )
            if status is not None:
                query = query.filter(Booking.sessions.any(BookingSession.status == status))
            total = query.count()
            bookings = (
                query.options(selectinload(Booking.sessions))
                .populate_existing()
                .order_by(Booking.created_at.desc(), Booking.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return bookings, total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for {party_id}: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")


class SessionRepository(BaseRepository[BookingSession]):
    def __init__(self, db: Session):
        super().__init__(db, BookingSession)

    def get_session(self, session_id: str, *, refresh: bool = False) -> Optional[BookingSession]:
        """Load a session; ``refresh`` bypasses the identity map after a bulk UPDATE."""
        try:
            query = self.db.query(BookingSession)
            if refresh:
                query = query.populate_existing()
            return query.filter(BookingSession.id == session_id).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting session {session_id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve session: {str(e)}")

    def get_sessions_by_ids(self, session_ids: Iterable[str]) -> List[BookingSession]:
        ids = list(dict.fromkeys(session_ids))
        if not ids:
            return []
        try:
            return (
                self.db.query(BookingSession)
                .populate_existing()
                .filter(BookingSession.id.in_(ids))
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading sessions {ids}: {str(e)}")
            raise RepositoryException(f"Failed to load sessions: {str(e)}")

    def get_active_sessions(self, mentor_id: str, day: date) -> List[BookingSession]:
        """Pending and paid sessions for a mentor on a date, ordered by start."""
        try:
            return (
                self.db.query(BookingSession)
                .filter(
                    BookingSession.mentor_id == mentor_id,
                    BookingSession.scheduled_date == day,
                    BookingSession.status.in_([s.value for s in ACTIVE_STATUSES]),
                )
                .order_by(BookingSession.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading active sessions for {mentor_id} on {day}: {str(e)}")
            raise RepositoryException(f"Failed to load active sessions: {str(e)}")

    def find_overlapping_active(
        self, mentor_id: str, day: date, start_time: time, end_time: time
    ) -> List[BookingSession]:
        """
        Active sessions intersecting [start_time, end_time).

        Database errors surface as RepositoryException from get_active_sessions.
        """
        return [
            s
            for s in self.get_active_sessions(mentor_id, day)
            if start_time < s.end_time and end_time > s.start_time
        ]

    def find_expired_pending(
        self,
        now: datetime,
        *,
        mentor_id: Optional[str] = None,
        party_id: Optional[str] = None,
        session_ids: Optional[Sequence[str]] = None,
    ) -> List[BookingSession]:
        """Pending sessions whose deadline lies strictly before ``now``."""
        try:
            query = self.db.query(BookingSession).filter(
                BookingSession.status == SessionStatus.PENDING.value,
                BookingSession.timeout_at < now,
            )
            if mentor_id is not None:
                query = query.filter(BookingSession.mentor_id == mentor_id)
            if party_id is not None:
                query = query.filter(
                    (BookingSession.client_id == party_id) | (BookingSession.mentor_id == party_id)
                )
            if session_ids is not None:
                query = query.filter(BookingSession.id.in_(list(session_ids)))
            return query.order_by(BookingSession.timeout_at).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding expired sessions: {str(e)}")
            raise RepositoryException(f"Failed to find expired sessions: {str(e)}")

    def add_slot_holds(
        self, session: BookingSession, cell_starts: Sequence[time]
    ) -> List[SessionSlotHold]:
        """
        Claim every cell the session covers.

        IntegrityError from the unique constraint is left to the caller, which
        maps it to a slot conflict; other database errors become
        RepositoryException.
        """
        holds = [
            SessionSlotHold(
                mentor_id=session.mentor_id,
                slot_date=session.scheduled_date,
                slot_start=cell,
                session_id=session.id,
            )
            for cell in cell_starts
        ]
        try:
            self.db.add_all(holds)
            self.db.flush()
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error claiming slots for session {session.id}: {str(e)}")
            raise RepositoryException(f"Failed to claim slot holds: {str(e)}")
        return holds

    def release_slot_holds(self, session_id: str) -> int:
        try:
            return (
                self.db.query(SessionSlotHold)
                .filter(SessionSlotHold.session_id == session_id)
                .delete(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error releasing holds for session {session_id}: {str(e)}")
            raise RepositoryException(f"Failed to release slot holds: {str(e)}")

    def transition_from_pending(
        self,
        session_id: str,
        values: Dict[str, Any],
        *,
        deadline_not_before: Optional[datetime] = None,
    ) -> bool:
        """
        Atomically apply ``values`` only while the session is still pending.

        When ``deadline_not_before`` is given the update also requires
        ``timeout_at >= deadline_not_before``. Returns True if this call won.
        """
        try:
            query = self.db.query(BookingSession).filter(
                BookingSession.id == session_id,
                BookingSession.status == SessionStatus.PENDING.value,
            )
            if deadline_not_before is not None:
                query = query.filter(BookingSession.timeout_at >= deadline_not_before)
            updated = query.update(values, synchronize_session=False)
        except SQLAlchemyError as e:
            self.logger.error(f"Error transitioning session {session_id}: {str(e)}")
            raise RepositoryException(f"Failed to update session: {str(e)}")
        return updated == 1

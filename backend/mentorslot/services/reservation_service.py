# backend/mentorslot/services/reservation_service.py
"""
Reservation Service

The authoritative store for bookings and their sessions, and the owner of
the session state machine:

    pending -> paid | cancelled | expired

Terminal states are never left. Creation claims the session's 15-minute
cells in session_slot_holds, whose unique constraint rejects any overlapping
claim, so two concurrent bookings of intersecting windows cannot both
commit. Every transition away from pending is a conditional UPDATE, so a
payment and an expiry racing on the same session resolve to exactly one
winner.
"""

from datetime import date, time
from decimal import Decimal
import logging
from typing import TYPE_CHECKING, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import TIMEOUT_REASON, TIMEOUT_REASON_MESSAGE, USER_CANCEL_REASON
from ..core.exceptions import (
    AlreadyTerminalException,
    ForbiddenException,
    NotFoundException,
    SessionNotFoundException,
    SlotConflictException,
    TimeoutExceededException,
    ValidationException,
)
from ..core.slot_lock import mentor_slot_lock
from ..core.time_utils import is_on_grid, minutes_to_time, time_to_minutes
from ..core.timezone_utils import Clock, local_to_utc
from ..events import SessionCancelled, SessionCreated, SessionPaid, session_hooks
from ..events.hooks import SessionEventHooks
from ..models.booking import (
    Booking,
    BookingSession,
    CancelledBy,
    PaymentStatus,
    SessionStatus,
    TimeoutStatus,
)
from ..models.offering import SessionType
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .slot_calculator import SlotCalculator, cell_starts

if TYPE_CHECKING:
    from .timeout_engine import TimeoutEngine

logger = logging.getLogger(__name__)


class ReservationService(BaseService):
    """Creates sessions and drives them through their lifecycle."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        timeout_engine: Optional["TimeoutEngine"] = None,
        slot_calculator: Optional[SlotCalculator] = None,
        hooks: Optional[SessionEventHooks] = None,
    ):
        super().__init__(db, clock)
        if timeout_engine is None:
            from .timeout_engine import TimeoutEngine

            timeout_engine = TimeoutEngine(db, clock=self.clock, reservation_service=self)
        self.timeout_engine = timeout_engine
        self.slot_calculator = slot_calculator or SlotCalculator(db, clock=self.clock)
        self.hooks = hooks or session_hooks
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.session_repository = RepositoryFactory.create_session_repository(db)
        self.offering_repository = RepositoryFactory.create_offering_repository(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_session(self, session_id: str, actor_id: Optional[str] = None) -> BookingSession:
        session = self.session_repository.get_session(session_id, refresh=True)
        if session is None:
            raise SessionNotFoundException(session_id)
        if actor_id is not None:
            self._ensure_party(session, actor_id)
        return session

    def get_booking(self, booking_id: str, actor_id: Optional[str] = None) -> Booking:
        booking = self.booking_repository.get_with_sessions(booking_id)
        if booking is None:
            raise NotFoundException(
                f"Booking {booking_id} not found",
                code="BOOKING_NOT_FOUND",
                details={"booking_id": booking_id},
            )
        if actor_id is not None and actor_id not in (booking.client_id, booking.mentor_id):
            raise ForbiddenException("You are not a participant in this booking")
        return booking

    @BaseService.measure_operation("list_bookings")
    def list_bookings(
        self,
        actor_id: str,
        *,
        status: Optional[Union[SessionStatus, str]] = None,
        page: int = 1,
        per_page: int = 10,
    ) -> Tuple[List[Booking], int]:
        """
        Page through the bookings the actor takes part in, as client or mentor.

        The actor's lapsed pending sessions are expired first, so a status
        filter sees the same state the responses report.
        """
        if page < 1 or per_page < 1:
            raise ValidationException(
                "page and per_page must be positive",
                code="INVALID_PAGINATION",
                details={"page": page, "per_page": per_page},
            )
        if status is not None:
            try:
                status = SessionStatus(status).value
            except ValueError as exc:
                raise ValidationException(
                    f"Unknown session status {status!r}",
                    code="INVALID_STATUS",
                    details={"allowed": [s.value for s in SessionStatus]},
                ) from exc
        self.timeout_engine.sweep_expired(party_id=actor_id, trigger="list_bookings")
        return self.booking_repository.list_for_party(
            actor_id, status=status, offset=(page - 1) * per_page, limit=per_page
        )

    # ------------------------------------------------------------------
    # createSession
    # ------------------------------------------------------------------

    def _validate_request(
        self,
        mentor_id: str,
        client_id: str,
        scheduled_date: date,
        start_time: time,
        duration_minutes: int,
    ) -> time:
        if duration_minutes not in settings.allowed_durations:
            raise ValidationException(
                f"Duration must be one of {settings.allowed_durations} minutes",
                code="INVALID_DURATION",
                details={"duration_minutes": duration_minutes},
            )
        if not is_on_grid(start_time):
            raise ValidationException(
                "Start time must fall on a 15-minute boundary",
                code="INVALID_START_TIME",
                details={"start_time": start_time.strftime("%H:%M:%S")},
            )
        end_minutes = time_to_minutes(start_time) + duration_minutes
        if end_minutes >= 24 * 60:
            raise ValidationException(
                "Session must end before midnight",
                code="INVALID_START_TIME",
                details={"start_time": start_time.strftime("%H:%M")},
            )
        if mentor_id == client_id:
            raise ValidationException("You cannot book a session with yourself", code="SELF_BOOKING")
        starts_at = local_to_utc(settings.business_timezone, scheduled_date, start_time)
        if starts_at <= self.now():
            raise ValidationException(
                "Cannot book a session in the past",
                code="SESSION_IN_PAST",
                details={
                    "scheduled_date": scheduled_date.isoformat(),
                    "start_time": start_time.strftime("%H:%M"),
                },
            )
        return minutes_to_time(end_minutes)

    def _resolve_price(self, mentor_id: str, session_type: str, duration_minutes: int) -> Decimal:
        offering = self.offering_repository.get_active_offering(
            mentor_id, session_type, duration_minutes
        )
        if offering is None:
            raise ValidationException(
                f"Mentor does not offer {duration_minutes}-minute {session_type} sessions",
                code="OFFERING_NOT_FOUND",
                details={"session_type": session_type, "duration_minutes": duration_minutes},
            )
        return Decimal(offering.price)

    @BaseService.measure_operation("create_session")
    def create_session(
        self,
        mentor_id: str,
        client_id: str,
        scheduled_date: date,
        start_time: time,
        duration_minutes: int,
        session_type: Union[SessionType, str] = SessionType.VIDEO,
        notes: Optional[str] = None,
    ) -> Tuple[Booking, BookingSession]:
        """
        Reserve [start_time, start_time + duration) with a mentor.

        Returns the (possibly pre-existing) booking for this client/mentor
        pair and the new pending session, whose deadline is now plus the
        payment window.

        Raises:
            ValidationException: malformed duration/start, self-booking, past
                date, or no matching offering
            SlotConflictException: window outside availability or overlapping
                an active session
        """
        try:
            session_type = SessionType(session_type).value
        except ValueError as exc:
            raise ValidationException(
                f"Unknown session type {session_type!r}",
                code="INVALID_SESSION_TYPE",
                details={"allowed": [t.value for t in SessionType]},
            ) from exc
        end_time = self._validate_request(
            mentor_id, client_id, scheduled_date, start_time, duration_minutes
        )
        price = self._resolve_price(mentor_id, session_type, duration_minutes)
        conflict_details = {
            "mentor_id": mentor_id,
            "scheduled_date": scheduled_date.isoformat(),
            "start_time": start_time.strftime("%H:%M"),
            "end_time": end_time.strftime("%H:%M"),
        }
        released: List[SessionCancelled] = []

        with mentor_slot_lock(mentor_id, scheduled_date):
            with self.transaction():
                now = self.now()
                # Lapsed pending sessions still hold their cells until expired.
                for stale in self.session_repository.find_overlapping_active(
                    mentor_id, scheduled_date, start_time, end_time
                ):
                    if self.timeout_engine.is_expired(stale, now):
                        event = self._apply_cancel(
                            stale, TIMEOUT_REASON, CancelledBy.SYSTEM, SessionStatus.EXPIRED
                        )
                        if event is not None:
                            released.append(event)

                window = self.slot_calculator.find_window(
                    mentor_id, scheduled_date, start_time, duration_minutes
                )
                if window is None:
                    prometheus_metrics.record_slot_conflict("precheck")
                    raise SlotConflictException(
                        "The requested time is outside the mentor's availability",
                        details={**conflict_details, "reason": "outside_availability"},
                    )
                if not window.available:
                    prometheus_metrics.record_slot_conflict("precheck")
                    raise SlotConflictException(
                        details={**conflict_details, "reason": "overlapping_session"}
                    )

                booking = self.booking_repository.find_for_pair(client_id, mentor_id)
                if booking is None:
                    booking = self.booking_repository.create(
                        client_id=client_id, mentor_id=mentor_id, created_at=now
                    )

                session = self.session_repository.create(
                    booking_id=booking.id,
                    mentor_id=mentor_id,
                    client_id=client_id,
                    session_type=session_type,
                    scheduled_date=scheduled_date,
                    start_time=start_time,
                    end_time=end_time,
                    duration_minutes=duration_minutes,
                    notes=notes,
                    status=SessionStatus.PENDING.value,
                    payment_status=PaymentStatus.UNPAID.value,
                    timeout_at=self.timeout_engine.assign_deadline(now),
                    timeout_status=TimeoutStatus.ACTIVE.value,
                    price=price,
                    created_at=now,
                )
                try:
                    self.session_repository.add_slot_holds(
                        session, cell_starts(start_time, duration_minutes)
                    )
                except IntegrityError as exc:
                    prometheus_metrics.record_slot_conflict("constraint")
                    raise SlotConflictException(
                        details={**conflict_details, "reason": "concurrent_reservation"}
                    ) from exc

        self.db.expire(booking, ["sessions"])
        for event in released:
            self.hooks.publish(event)
        prometheus_metrics.record_session_transition("none", SessionStatus.PENDING.value)
        logger.info(
            f"Session {session.id} reserved for mentor {mentor_id} on {scheduled_date} "
            f"{start_time:%H:%M}-{end_time:%H:%M}",
            extra={
                "session_id": session.id,
                "booking_id": booking.id,
                "client_id": client_id,
                "timeout_at": session.timeout_at.isoformat(),
            },
        )
        self.hooks.publish(
            SessionCreated(
                session_id=session.id,
                booking_id=booking.id,
                mentor_id=mentor_id,
                client_id=client_id,
                timeout_at=session.timeout_at,
            )
        )
        return booking, session

    # ------------------------------------------------------------------
    # completePayment
    # ------------------------------------------------------------------

    @BaseService.measure_operation("complete_payment")
    def complete_payment(
        self,
        session_id: str,
        payment_method: str,
        loyalty_points_used: int = 0,
        payment_reference: Optional[str] = None,
        actor_id: Optional[str] = None,
        booking_id: Optional[str] = None,
    ) -> BookingSession:
        """
        Move a pending session to paid.

        Raises:
            SessionNotFoundException: unknown session
            AlreadyTerminalException: session is no longer pending
            TimeoutExceededException: payment arrived after the deadline; the
                caller is expected to void/refund with the provider
            ValidationException: loyalty points negative or above the price
        """
        with self.transaction():
            session = self.get_session(session_id, actor_id)
            if booking_id is not None and session.booking_id != booking_id:
                raise SessionNotFoundException(session_id, booking_id)
            if session.is_terminal():
                raise AlreadyTerminalException(session.id, str(session.status))

            now = self.now()
            if self.timeout_engine.is_expired(session, now):
                raise TimeoutExceededException(session.id, session.timeout_at_utc)

            price = Decimal(session.price)
            if loyalty_points_used < 0 or Decimal(loyalty_points_used) > price:
                raise ValidationException(
                    "Loyalty points must be between 0 and the session price",
                    code="INVALID_LOYALTY_POINTS",
                    details={"loyalty_points_used": loyalty_points_used, "price": float(price)},
                )
            final_amount = max(Decimal(0), price - Decimal(loyalty_points_used))

            won = self.session_repository.transition_from_pending(
                session.id,
                {
                    "status": SessionStatus.PAID.value,
                    "payment_status": PaymentStatus.PAID.value,
                    "timeout_status": TimeoutStatus.COMPLETED.value,
                    "payment_method": payment_method,
                    "payment_reference": payment_reference,
                    "loyalty_points_used": loyalty_points_used,
                    "final_amount": final_amount,
                    "payment_completed_at": now,
                    "updated_at": now,
                },
                deadline_not_before=now,
            )
            session = self.get_session(session_id)
            if not won:
                if session.is_terminal():
                    raise AlreadyTerminalException(session.id, str(session.status))
                raise TimeoutExceededException(session.id, session.timeout_at_utc)

        prometheus_metrics.record_session_transition(
            SessionStatus.PENDING.value, SessionStatus.PAID.value
        )
        logger.info(
            f"Session {session.id} paid via {payment_method}",
            extra={"session_id": session.id, "final_amount": str(final_amount)},
        )
        self.hooks.publish(
            SessionPaid(
                session_id=session.id,
                booking_id=session.booking_id,
                mentor_id=session.mentor_id,
                client_id=session.client_id,
                payment_method=payment_method,
                final_amount=float(final_amount),
                paid_at=now,
            )
        )
        return session

    # ------------------------------------------------------------------
    # cancelExpiredSession / explicit cancel
    # ------------------------------------------------------------------

    def _apply_cancel(
        self,
        session: BookingSession,
        reason: str,
        cancelled_by: CancelledBy,
        target: SessionStatus,
    ) -> Optional[SessionCancelled]:
        """
        Conditionally move ``session`` out of pending inside the caller's
        transaction and release its cells. Returns the event to publish after
        commit, or None when another writer got there first.
        """
        now = self.now()
        won = self.session_repository.transition_from_pending(
            session.id,
            {
                "status": target.value,
                "payment_status": PaymentStatus.FAILED.value,
                "timeout_status": (
                    TimeoutStatus.EXPIRED.value
                    if target == SessionStatus.EXPIRED
                    else TimeoutStatus.COMPLETED.value
                ),
                "cancellation_reason": (
                    TIMEOUT_REASON_MESSAGE if reason == TIMEOUT_REASON else reason
                ),
                "cancelled_by": cancelled_by.value,
                "cancelled_at": now,
                "updated_at": now,
            },
        )
        if not won:
            return None
        self.session_repository.release_slot_holds(session.id)
        prometheus_metrics.record_session_transition(SessionStatus.PENDING.value, target.value)
        return SessionCancelled(
            session_id=session.id,
            booking_id=session.booking_id,
            status=target.value,
            cancelled_by=cancelled_by.value,
            reason=reason,
            cancelled_at=now,
        )

    def cancel_session(
        self,
        booking_id: str,
        session_id: str,
        reason: Optional[str] = None,
        *,
        cancelled_by: Optional[CancelledBy] = None,
        actor_id: Optional[str] = None,
        explicit: bool = False,
    ) -> Tuple[BookingSession, bool]:
        """
        Idempotent move out of pending. Returns (session, changed).

        A terminal session is returned unchanged. Otherwise the target is
        ``cancelled`` for an explicit user action, ``expired`` once the
        deadline has passed, and ``cancelled`` for a user abandoning the
        payment window early.
        """
        with self.transaction():
            session = self.get_session(session_id)
            if session.booking_id != booking_id:
                raise SessionNotFoundException(session_id, booking_id)
            if actor_id is not None:
                self._ensure_party(session, actor_id)
            if session.is_terminal():
                return session, False

            lapsed = self.timeout_engine.is_expired(session, self.now())
            target = SessionStatus.EXPIRED if lapsed and not explicit else SessionStatus.CANCELLED
            if cancelled_by is None:
                cancelled_by = (
                    CancelledBy.SYSTEM
                    if target == SessionStatus.EXPIRED
                    else self._role_of(session, actor_id)
                )
            if reason is None:
                reason = TIMEOUT_REASON if target == SessionStatus.EXPIRED else USER_CANCEL_REASON

            event = self._apply_cancel(session, reason, cancelled_by, target)
            session = self.get_session(session_id)

        if event is not None:
            logger.info(
                f"Session {session.id} {event.status} ({reason})",
                extra={"session_id": session.id, "cancelled_by": event.cancelled_by},
            )
            self.hooks.publish(event)
        return session, event is not None

    @BaseService.measure_operation("cancel_expired_session")
    def cancel_expired_session(
        self,
        booking_id: str,
        session_id: str,
        reason: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> BookingSession:
        """Release a session whose payment window ran out; no-op if already terminal."""
        session, _ = self.cancel_session(booking_id, session_id, reason, actor_id=actor_id)
        return session

    @BaseService.measure_operation("cancel_session_by_user")
    def cancel_session_by_user(
        self,
        booking_id: str,
        session_id: str,
        actor_id: str,
        reason: Optional[str] = None,
    ) -> BookingSession:
        """Explicit cancellation by the client or mentor; no-op if already terminal."""
        session, _ = self.cancel_session(
            booking_id, session_id, reason, actor_id=actor_id, explicit=True
        )
        return session

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _ensure_party(session: BookingSession, actor_id: str) -> None:
        if actor_id not in (session.client_id, session.mentor_id):
            raise ForbiddenException(
                "You are not a participant in this session",
                details={"session_id": session.id},
            )

    @staticmethod
    def _role_of(session: BookingSession, actor_id: Optional[str]) -> CancelledBy:
        if actor_id is not None and actor_id == session.mentor_id:
            return CancelledBy.MENTOR
        if actor_id is not None and actor_id == session.client_id:
            return CancelledBy.CLIENT
        return CancelledBy.SYSTEM


# backend/mentorslot/models/booking.py
"""
Booking and session models for the reservation engine.

A Booking groups the sessions one client holds with one mentor. Each
BookingSession is an independently addressable reservation of mentor time
that moves through pending -> paid | cancelled | expired. Sessions are never
deleted; terminal rows are kept for history.

Architecture: the payment deadline (timeout_at) is stamped once at creation.
Whether a pending session has lapsed is a function of the clock, so readers
use effective_status() rather than the stored status alone.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
import logging
from typing import Any, Dict, Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.timezone_utils import ensure_utc
from ..database import Base

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    """Session lifecycle statuses."""

    PENDING = "pending"  # Slot held, awaiting payment
    PAID = "paid"
    CANCELLED = "cancelled"  # Explicit cancel by a party
    EXPIRED = "expired"  # Payment window elapsed


TERMINAL_STATUSES = frozenset({SessionStatus.PAID, SessionStatus.CANCELLED, SessionStatus.EXPIRED})
ACTIVE_STATUSES = frozenset({SessionStatus.PENDING, SessionStatus.PAID})


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    FAILED = "failed"


class TimeoutStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    COMPLETED = "completed"


class CancelledBy(str, Enum):
    CLIENT = "client"
    MENTOR = "mentor"
    SYSTEM = "system"


class Booking(Base):
    """Aggregate of sessions between one client and one mentor."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    client_id = Column(String(64), nullable=False)
    mentor_id = Column(String(64), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    sessions = relationship(
        "BookingSession",
        back_populates="booking",
        order_by="BookingSession.created_at",
    )

    __table_args__ = (Index("ix_bookings_client_mentor", "client_id", "mentor_id"),)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "mentor_id": self.mentor_id,
            "session_ids": [s.id for s in self.sessions],
        }

    def __repr__(self) -> str:
        return f"<Booking {self.id}: client {self.client_id} with mentor {self.mentor_id}>"


class BookingSession(Base):
    """
    One reservation of mentor time.

    scheduled_date/start_time/end_time are wall-clock values; timeout_at and the
    other *_at stamps are UTC instants.
    """

    __tablename__ = "booking_sessions"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    mentor_id = Column(String(64), nullable=False)
    client_id = Column(String(64), nullable=False, index=True)
    session_type = Column(String(20), nullable=False)

    scheduled_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=SessionStatus.PENDING.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.UNPAID.value)
    timeout_at = Column(DateTime(timezone=True), nullable=False)
    timeout_status = Column(String(20), nullable=False, default=TimeoutStatus.ACTIVE.value)

    # Set only on transition to cancelled/expired
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(String(20), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Set only on payment completion
    price = Column(Numeric(10, 2), nullable=False)
    final_amount = Column(Numeric(10, 2), nullable=True)
    loyalty_points_used = Column(Integer, nullable=True)
    payment_method = Column(String(50), nullable=True)
    payment_reference = Column(String(255), nullable=True)
    payment_completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    booking = relationship("Booking", back_populates="sessions")

    __table_args__ = (
        Index("ix_booking_sessions_mentor_date", "mentor_id", "scheduled_date"),
        Index("ix_booking_sessions_status_timeout", "status", "timeout_at"),
        CheckConstraint("start_time < end_time", name="ck_session_time_order"),
        CheckConstraint("duration_minutes > 0", name="ck_session_duration_positive"),
        CheckConstraint(
            "status IN ('pending', 'paid', 'cancelled', 'expired')",
            name="ck_session_status",
        ),
        CheckConstraint(
            "payment_status IN ('unpaid', 'paid', 'failed')",
            name="ck_session_payment_status",
        ),
    )

    @property
    def timeout_at_utc(self) -> datetime:
        return ensure_utc(self.timeout_at)

    def is_terminal(self) -> bool:
        return self.status in {s.value for s in TERMINAL_STATUSES}

    def is_logically_expired(self, now: datetime) -> bool:
        """Pending and past its deadline, whether or not the expiry write has landed."""
        return self.status == SessionStatus.PENDING.value and ensure_utc(now) > self.timeout_at_utc

    def effective_status(self, now: datetime) -> str:
        if self.is_logically_expired(now):
            return SessionStatus.EXPIRED.value
        return str(self.status)

    def seconds_remaining(self, now: datetime) -> int:
        if self.status != SessionStatus.PENDING.value:
            return 0
        delta = (self.timeout_at_utc - ensure_utc(now)).total_seconds()
        return max(0, int(delta))

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "booking_id": self.booking_id,
            "mentor_id": self.mentor_id,
            "client_id": self.client_id,
            "session_type": self.session_type,
            "scheduled_date": self.scheduled_date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "duration_minutes": self.duration_minutes,
            "status": self.status,
            "payment_status": self.payment_status,
            "timeout_at": self.timeout_at_utc.isoformat(),
            "timeout_status": self.timeout_status,
            "price": float(self.price) if isinstance(self.price, Decimal) else self.price,
        }
        if now is not None:
            data["effective_status"] = self.effective_status(now)
        return data

    def __repr__(self) -> str:
        return (
            f"<BookingSession {self.id}: mentor {self.mentor_id} on {self.scheduled_date} "
            f"{self.start_time}-{self.end_time} ({self.status})>"
        )

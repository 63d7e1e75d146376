"""
Booking and session request/response schemas.

Times are exchanged as HH:MM strings; deadlines as ISO-8601 UTC instants.
"""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import Field, field_validator

from ..core.timezone_utils import ensure_utc
from ..models.booking import Booking, BookingSession
from ..models.offering import SessionType
from .base import StrictModel, StrictRequestModel, coerce_hhmm, format_hhmm


class SessionCreateRequest(StrictRequestModel):
    """
    Reserve a session with a mentor.

    The end time is derived from start_time + duration_minutes.
    """

    mentor_id: str = Field(..., min_length=1, max_length=64)
    session_type: SessionType = Field(SessionType.VIDEO, description="Kind of session being booked")
    duration_minutes: int = Field(..., ge=15, le=720)
    scheduled_date: date
    start_time: time = Field(..., description="Start time, HH:MM")
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_start_time(cls, v: object) -> object:
        return coerce_hhmm(v)


class SessionResponse(StrictModel):
    id: str
    booking_id: str
    mentor_id: str
    client_id: str
    session_type: str
    scheduled_date: date
    start_time: str
    end_time: str
    duration_minutes: int
    notes: Optional[str] = None
    status: str
    effective_status: str = Field(
        ..., description="'expired' once a pending session is past its deadline"
    )
    payment_status: str
    timeout_at: datetime
    timeout_status: str
    seconds_remaining: int
    is_expired: bool
    price: float
    final_amount: Optional[float] = None
    loyalty_points_used: Optional[int] = None
    payment_method: Optional[str] = None
    payment_completed_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_session(cls, session: BookingSession, now: datetime) -> "SessionResponse":
        return cls(
            id=session.id,
            booking_id=session.booking_id,
            mentor_id=session.mentor_id,
            client_id=session.client_id,
            session_type=session.session_type,
            scheduled_date=session.scheduled_date,
            start_time=format_hhmm(session.start_time),
            end_time=format_hhmm(session.end_time),
            duration_minutes=session.duration_minutes,
            notes=session.notes,
            status=session.status,
            effective_status=session.effective_status(now),
            payment_status=session.payment_status,
            timeout_at=session.timeout_at_utc,
            timeout_status=session.timeout_status,
            seconds_remaining=session.seconds_remaining(now),
            is_expired=session.is_logically_expired(now),
            price=float(session.price),
            final_amount=float(session.final_amount) if session.final_amount is not None else None,
            loyalty_points_used=session.loyalty_points_used,
            payment_method=session.payment_method,
            payment_completed_at=(
                ensure_utc(session.payment_completed_at) if session.payment_completed_at else None
            ),
            cancellation_reason=session.cancellation_reason,
            cancelled_by=session.cancelled_by,
            cancelled_at=ensure_utc(session.cancelled_at) if session.cancelled_at else None,
        )


class BookingResponse(StrictModel):
    id: str
    client_id: str
    mentor_id: str
    sessions: List[SessionResponse]

    @classmethod
    def from_booking(cls, booking: Booking, now: datetime) -> "BookingResponse":
        return cls(
            id=booking.id,
            client_id=booking.client_id,
            mentor_id=booking.mentor_id,
            sessions=[SessionResponse.from_session(s, now) for s in booking.sessions],
        )


class BookingCreateResponse(StrictModel):
    booking: BookingResponse
    session: SessionResponse


class CompletePaymentRequest(StrictRequestModel):
    session_id: str = Field(..., min_length=1)
    payment_method: str = Field(..., min_length=1, max_length=50)
    loyalty_points_used: int = Field(0, ge=0)
    payment_reference: Optional[str] = Field(
        None, max_length=255, description="Opaque confirmation from the payment provider"
    )


class CancelSessionRequest(StrictRequestModel):
    session_id: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500)


class ExpiredCheckResponse(StrictModel):
    expired_count: int
    sessions: List[SessionResponse]

"""
Database models for the reservation engine.

- Availability: weekly windows a mentor can be booked in
- Offerings: priced session types per mentor
- Bookings: client/mentor aggregates and their sessions
- Slot holds: per-cell uniqueness guard for active sessions
"""

from .availability import MentorAvailabilityWindow
from .booking import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Booking,
    BookingSession,
    CancelledBy,
    PaymentStatus,
    SessionStatus,
    TimeoutStatus,
)
from .offering import MentorOffering, SessionType
from .slot_hold import SessionSlotHold

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Booking",
    "BookingSession",
    "CancelledBy",
    "MentorAvailabilityWindow",
    "MentorOffering",
    "PaymentStatus",
    "SessionSlotHold",
    "SessionStatus",
    "SessionType",
    "TimeoutStatus",
]

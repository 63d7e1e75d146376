"""Pydantic schemas for the reservation API."""

from .base import PaginatedResponse
from .availability import (
    AvailabilityTemplateResponse,
    AvailabilityWindowIn,
    AvailabilityWindowsReplace,
    OfferingIn,
    OfferingsReplace,
)
from .booking import (
    BookingCreateResponse,
    BookingResponse,
    CancelSessionRequest,
    CompletePaymentRequest,
    ExpiredCheckResponse,
    SessionCreateRequest,
    SessionResponse,
)
from .slots import ConsecutiveSlotsResponse, SlotResponse, SlotsResponse
from .timeout import (
    ClientTimeoutEntry,
    ExpiredSessionEntry,
    TimeoutStatusRequest,
    TimeoutStatusResponse,
    TimeoutSyncRequest,
    TimeoutSyncResponse,
)

__all__ = [
    "PaginatedResponse",
    "AvailabilityTemplateResponse",
    "AvailabilityWindowIn",
    "AvailabilityWindowsReplace",
    "BookingCreateResponse",
    "BookingResponse",
    "CancelSessionRequest",
    "ClientTimeoutEntry",
    "CompletePaymentRequest",
    "ConsecutiveSlotsResponse",
    "ExpiredCheckResponse",
    "ExpiredSessionEntry",
    "OfferingIn",
    "OfferingsReplace",
    "SessionCreateRequest",
    "SessionResponse",
    "SlotResponse",
    "SlotsResponse",
    "TimeoutStatusRequest",
    "TimeoutStatusResponse",
    "TimeoutSyncRequest",
    "TimeoutSyncResponse",
]

# backend/mentorslot/routes/v1/bookings.py
"""
Booking routes - API v1

Session reservation, payment completion, expiry and timeout reconciliation.
All business logic delegated to ReservationService, TimeoutEngine and
ReconciliationService.

Endpoints:
    POST / - Reserve a session (201 with booking and session, 409 on slot conflict)
    GET / - The caller's bookings, paginated, optionally filtered by session status
    GET /expired/check - Expire the caller's lapsed pending sessions
    POST /timeout/sync - Reconcile client countdowns with server state
    POST /timeout/status - Read-only status lookup for sessions
    GET /{booking_id} - Booking with its sessions
    PUT /{booking_id}/complete-payment - Mark a pending session paid
    PUT /{booking_id}/cancel-expired-session - Release a session whose window ran out
    PUT /{booking_id}/cancel - Explicitly cancel a pending session
"""

import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.params import Path

from ...api.dependencies import (
    get_current_user_id,
    get_reconciliation_service,
    get_reservation_service,
    get_timeout_engine,
)
from ...core.exceptions import DomainException
from ...models.booking import SessionStatus
from ...schemas.base import PaginatedResponse
from ...schemas.booking import (
    BookingCreateResponse,
    BookingResponse,
    CancelSessionRequest,
    CompletePaymentRequest,
    ExpiredCheckResponse,
    SessionCreateRequest,
    SessionResponse,
)
from ...schemas.timeout import (
    ExpiredSessionEntry,
    TimeoutStatusRequest,
    TimeoutStatusResponse,
    TimeoutSyncRequest,
    TimeoutSyncResponse,
)
from ...services.reconciliation_service import ClientTimeout, ReconciliationService
from ...services.reservation_service import ReservationService
from ...services.timeout_engine import TimeoutEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.post("", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: SessionCreateRequest,
    current_user_id: str = Depends(get_current_user_id),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> BookingCreateResponse:
    """
    Reserve a session and start its payment window.

    The caller is the client. Returns 409 when the window is no longer free;
    the client should re-fetch slots.
    """
    try:
        booking, session = reservation_service.create_session(
            mentor_id=payload.mentor_id,
            client_id=current_user_id,
            scheduled_date=payload.scheduled_date,
            start_time=payload.start_time,
            duration_minutes=payload.duration_minutes,
            session_type=payload.session_type,
            notes=payload.notes,
        )
    except DomainException as e:
        handle_domain_exception(e)
    now = reservation_service.now()
    return BookingCreateResponse(
        booking=BookingResponse.from_booking(booking, now),
        session=SessionResponse.from_session(session, now),
    )


@router.get("", response_model=PaginatedResponse[BookingResponse])
def list_bookings(
    status_filter: Optional[SessionStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user_id: str = Depends(get_current_user_id),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> PaginatedResponse[BookingResponse]:
    """
    Bookings the caller takes part in, as client or mentor, newest first.

    Loading the list expires the caller's lapsed pending sessions, so it
    doubles as the payments view's reconciliation point.
    """
    try:
        bookings, total = reservation_service.list_bookings(
            current_user_id, status=status_filter, page=page, per_page=limit
        )
    except DomainException as e:
        handle_domain_exception(e)
    now = reservation_service.now()
    return PaginatedResponse[BookingResponse](
        items=[BookingResponse.from_booking(b, now) for b in bookings],
        total=total,
        page=page,
        per_page=limit,
        has_next=page * limit < total,
        has_prev=page > 1,
    )


@router.get("/expired/check", response_model=ExpiredCheckResponse)
def check_expired_sessions(
    current_user_id: str = Depends(get_current_user_id),
    timeout_engine: TimeoutEngine = Depends(get_timeout_engine),
) -> ExpiredCheckResponse:
    """Lazily run the expiry sweep over the caller's sessions."""
    try:
        expired = timeout_engine.sweep_expired(party_id=current_user_id, trigger="client_check")
    except DomainException as e:
        handle_domain_exception(e)
    now = timeout_engine.now()
    return ExpiredCheckResponse(
        expired_count=len(expired),
        sessions=[SessionResponse.from_session(s, now) for s in expired],
    )


@router.post("/timeout/sync", response_model=TimeoutSyncResponse)
def sync_timeout_state(
    payload: TimeoutSyncRequest,
    current_user_id: str = Depends(get_current_user_id),
    reconciliation_service: ReconciliationService = Depends(get_reconciliation_service),
) -> TimeoutSyncResponse:
    try:
        result = reconciliation_service.sync_timeout_state(
            [
                ClientTimeout(
                    booking_id=t.booking_id, session_id=t.session_id, timeout_at=t.timeout_at
                )
                for t in payload.timeouts
            ],
            actor_id=current_user_id,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return TimeoutSyncResponse(
        expired_sessions=[ExpiredSessionEntry(**entry) for entry in result["expired_sessions"]]
    )


@router.post("/timeout/status", response_model=TimeoutStatusResponse)
def get_timeout_status(
    payload: TimeoutStatusRequest,
    current_user_id: str = Depends(get_current_user_id),
    reconciliation_service: ReconciliationService = Depends(get_reconciliation_service),
) -> TimeoutStatusResponse:
    try:
        statuses = reconciliation_service.get_timeout_status(
            payload.session_ids, actor_id=current_user_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return TimeoutStatusResponse(statuses=statuses)


# ============================================================================
# SECTION 2: Routes with a booking id
# ============================================================================


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str = Path(..., min_length=1),
    current_user_id: str = Depends(get_current_user_id),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> BookingResponse:
    try:
        booking = reservation_service.get_booking(booking_id, actor_id=current_user_id)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.from_booking(booking, reservation_service.now())


@router.put("/{booking_id}/complete-payment", response_model=SessionResponse)
def complete_payment(
    payload: CompletePaymentRequest,
    booking_id: str = Path(..., min_length=1),
    current_user_id: str = Depends(get_current_user_id),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> SessionResponse:
    """
    Record a successful provider payment.

    409 when the session is already terminal or its payment window elapsed;
    in the latter case the caller must void/refund with the provider.
    """
    try:
        session = reservation_service.complete_payment(
            payload.session_id,
            payment_method=payload.payment_method,
            loyalty_points_used=payload.loyalty_points_used,
            payment_reference=payload.payment_reference,
            actor_id=current_user_id,
            booking_id=booking_id,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return SessionResponse.from_session(session, reservation_service.now())


@router.put("/{booking_id}/cancel-expired-session", response_model=SessionResponse)
def cancel_expired_session(
    payload: CancelSessionRequest,
    booking_id: str = Path(..., min_length=1),
    current_user_id: str = Depends(get_current_user_id),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> SessionResponse:
    """Idempotent: a session that is already terminal is returned unchanged with 200."""
    try:
        session = reservation_service.cancel_expired_session(
            booking_id, payload.session_id, payload.reason, actor_id=current_user_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return SessionResponse.from_session(session, reservation_service.now())


@router.put("/{booking_id}/cancel", response_model=SessionResponse)
def cancel_session(
    payload: CancelSessionRequest,
    booking_id: str = Path(..., min_length=1),
    current_user_id: str = Depends(get_current_user_id),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> SessionResponse:
    try:
        session = reservation_service.cancel_session_by_user(
            booking_id, payload.session_id, actor_id=current_user_id, reason=payload.reason
        )
    except DomainException as e:
        handle_domain_exception(e)
    return SessionResponse.from_session(session, reservation_service.now())

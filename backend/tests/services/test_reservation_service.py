from __future__ import annotations

from datetime import date, time, timedelta
from decimal import Decimal

import pytest

from mentorslot.core.constants import TIMEOUT_REASON_MESSAGE, USER_CANCEL_REASON
from mentorslot.core.exceptions import (
    AlreadyTerminalException,
    ForbiddenException,
    SessionNotFoundException,
    SlotConflictException,
    TimeoutExceededException,
    ValidationException,
)
from mentorslot.events import SessionCancelled, SessionCreated, SessionPaid
from mentorslot.models.slot_hold import SessionSlotHold
from tests.utils.session_builders import (
    BOOKING_DATE,
    CLIENT_ID,
    CLOCK_START,
    MENTOR_ID,
    OTHER_CLIENT_ID,
)


def _book(service, client_id=CLIENT_ID, start=time(10, 0), duration=30, **kwargs):
    return service.create_session(
        mentor_id=MENTOR_ID,
        client_id=client_id,
        scheduled_date=kwargs.pop("scheduled_date", BOOKING_DATE),
        start_time=start,
        duration_minutes=duration,
        **kwargs,
    )


def _holds(db, session_id):
    return db.query(SessionSlotHold).filter(SessionSlotHold.session_id == session_id).count()


# ============================================================================
# createSession
# ============================================================================


def test_create_session_starts_payment_window(db, reservation_service, pending_session) -> None:
    booking, session = pending_session

    assert session.status == "pending"
    assert session.payment_status == "unpaid"
    assert session.timeout_status == "active"
    assert session.timeout_at_utc == CLOCK_START + timedelta(seconds=300)
    assert session.end_time == time(10, 30)
    assert Decimal(session.price) == Decimal("50.00")
    assert booking.client_id == CLIENT_ID
    assert booking.mentor_id == MENTOR_ID
    assert _holds(db, session.id) == 2


def test_sessions_for_the_same_pair_share_a_booking(reservation_service, pending_session) -> None:
    booking, first = pending_session
    again, second = _book(reservation_service, start=time(13, 0), duration=60)

    assert again.id == booking.id
    assert second.id != first.id
    assert {s.id for s in reservation_service.get_booking(booking.id).sessions} == {
        first.id,
        second.id,
    }


def test_overlapping_request_conflicts(reservation_service, pending_session) -> None:
    with pytest.raises(SlotConflictException) as exc_info:
        _book(reservation_service, client_id=OTHER_CLIENT_ID, start=time(9, 45), duration=30)
    assert exc_info.value.details["reason"] == "overlapping_session"


def test_adjacent_request_succeeds(reservation_service, pending_session) -> None:
    _, session = _book(reservation_service, client_id=OTHER_CLIENT_ID, start=time(10, 30))
    assert session.status == "pending"


def test_window_outside_availability_conflicts(reservation_service, mentor) -> None:
    with pytest.raises(SlotConflictException) as exc_info:
        _book(reservation_service, start=time(11, 45), duration=30)
    assert exc_info.value.details["reason"] == "outside_availability"


@pytest.mark.parametrize(
    "kwargs, code",
    [
        ({"duration": 45}, "INVALID_DURATION"),
        ({"duration": 90}, "INVALID_DURATION"),
        ({"start": time(10, 10)}, "INVALID_START_TIME"),
        ({"client_id": MENTOR_ID}, "SELF_BOOKING"),
        ({"scheduled_date": date(2024, 5, 31)}, "SESSION_IN_PAST"),
        ({"start": time(7, 45)}, "SESSION_IN_PAST"),
        ({"session_type": "hologram"}, "INVALID_SESSION_TYPE"),
        ({"session_type": "audio", "duration": 60}, "OFFERING_NOT_FOUND"),
    ],
)
def test_create_session_validation(reservation_service, mentor, kwargs, code) -> None:
    with pytest.raises(ValidationException) as exc_info:
        _book(reservation_service, **kwargs)
    assert exc_info.value.code == code


def test_expired_window_can_be_rebooked(db, clock, reservation_service, pending_session) -> None:
    _, first = pending_session

    with pytest.raises(SlotConflictException):
        _book(reservation_service, client_id=OTHER_CLIENT_ID)

    clock.advance(301)
    _, second = _book(reservation_service, client_id=OTHER_CLIENT_ID)

    stale = reservation_service.get_session(first.id)
    assert second.status == "pending"
    assert stale.status == "expired"
    assert stale.cancelled_by == "system"
    assert _holds(db, first.id) == 0
    assert _holds(db, second.id) == 2


# ============================================================================
# completePayment
# ============================================================================


def test_complete_payment_applies_loyalty_points(reservation_service, pending_session) -> None:
    booking, session = pending_session

    paid = reservation_service.complete_payment(
        session.id,
        payment_method="card",
        loyalty_points_used=10,
        payment_reference="pi_123",
        booking_id=booking.id,
    )

    assert paid.status == "paid"
    assert paid.payment_status == "paid"
    assert paid.timeout_status == "completed"
    assert Decimal(paid.final_amount) == Decimal("40.00")
    assert paid.loyalty_points_used == 10
    assert paid.payment_reference == "pi_123"
    assert paid.payment_completed_at is not None


def test_points_cannot_push_below_zero(reservation_service, pending_session) -> None:
    _, session = pending_session
    with pytest.raises(ValidationException):
        reservation_service.complete_payment(session.id, "card", loyalty_points_used=51)
    assert reservation_service.get_session(session.id).status == "pending"


def test_full_points_payment_is_free(reservation_service, pending_session) -> None:
    _, session = pending_session
    paid = reservation_service.complete_payment(session.id, "points", loyalty_points_used=50)
    assert Decimal(paid.final_amount) == Decimal("0")


def test_payment_at_the_deadline_succeeds(clock, reservation_service, pending_session) -> None:
    _, session = pending_session
    clock.advance(300)
    assert reservation_service.complete_payment(session.id, "card").status == "paid"


def test_late_payment_then_expiry(clock, reservation_service, pending_session) -> None:
    booking, session = pending_session
    clock.advance(301)

    with pytest.raises(TimeoutExceededException) as exc_info:
        reservation_service.complete_payment(session.id, "card")
    assert exc_info.value.code == "TIMEOUT_EXCEEDED"
    assert reservation_service.get_session(session.id).status == "pending"

    expired = reservation_service.cancel_expired_session(booking.id, session.id, "timeout")
    assert expired.status == "expired"
    assert expired.payment_status == "failed"
    assert expired.timeout_status == "expired"
    assert expired.cancellation_reason == TIMEOUT_REASON_MESSAGE
    assert expired.cancelled_by == "system"


def test_paying_twice_is_rejected(reservation_service, pending_session) -> None:
    _, session = pending_session
    reservation_service.complete_payment(session.id, "card")
    with pytest.raises(AlreadyTerminalException):
        reservation_service.complete_payment(session.id, "card")


def test_payment_for_unknown_or_mismatched_session(reservation_service, pending_session) -> None:
    _, session = pending_session
    with pytest.raises(SessionNotFoundException):
        reservation_service.complete_payment("01HXXXXXXXXXXXXXXXXXXXXXXX", "card")
    with pytest.raises(SessionNotFoundException):
        reservation_service.complete_payment(session.id, "card", booking_id="another-booking")


def test_payment_by_a_stranger_is_forbidden(reservation_service, pending_session) -> None:
    _, session = pending_session
    with pytest.raises(ForbiddenException):
        reservation_service.complete_payment(session.id, "card", actor_id="someone-else")


# ============================================================================
# Cancellation
# ============================================================================


def test_cancel_expired_session_is_idempotent(clock, reservation_service, pending_session) -> None:
    booking, session = pending_session
    clock.advance(400)

    first, changed = reservation_service.cancel_session(booking.id, session.id)
    cancelled_at = first.cancelled_at
    second, changed_again = reservation_service.cancel_session(booking.id, session.id)

    assert changed is True
    assert changed_again is False
    assert second.status == "expired"
    assert second.cancelled_at == cancelled_at


def test_early_abandon_is_a_cancellation(reservation_service, pending_session) -> None:
    booking, session = pending_session
    cancelled = reservation_service.cancel_expired_session(
        booking.id, session.id, actor_id=CLIENT_ID
    )
    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_by == "client"
    assert cancelled.cancellation_reason == USER_CANCEL_REASON


def test_mentor_cancellation_releases_the_slot(db, reservation_service, pending_session) -> None:
    booking, session = pending_session
    cancelled = reservation_service.cancel_session_by_user(
        booking.id, session.id, actor_id=MENTOR_ID, reason="Conflict came up"
    )

    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_by == "mentor"
    assert cancelled.timeout_status == "completed"
    assert cancelled.cancellation_reason == "Conflict came up"
    assert _holds(db, session.id) == 0
    _, replacement = _book(reservation_service, client_id=OTHER_CLIENT_ID)
    assert replacement.status == "pending"


def test_explicit_cancel_after_deadline_is_still_a_cancellation(
    clock, reservation_service, pending_session
) -> None:
    booking, session = pending_session
    clock.advance(600)
    cancelled = reservation_service.cancel_session_by_user(booking.id, session.id, actor_id=CLIENT_ID)
    assert cancelled.status == "cancelled"


def test_cancel_never_leaves_a_terminal_state(clock, reservation_service, pending_session) -> None:
    booking, session = pending_session
    reservation_service.complete_payment(session.id, "card")
    clock.advance(3600)

    after = reservation_service.cancel_expired_session(booking.id, session.id)
    assert after.status == "paid"
    after = reservation_service.cancel_session_by_user(booking.id, session.id, actor_id=CLIENT_ID)
    assert after.status == "paid"
    with pytest.raises(AlreadyTerminalException):
        reservation_service.complete_payment(session.id, "card")


def test_cancel_by_stranger_is_forbidden(reservation_service, pending_session) -> None:
    booking, session = pending_session
    with pytest.raises(ForbiddenException):
        reservation_service.cancel_session_by_user(booking.id, session.id, actor_id="intruder")


def test_cancel_with_wrong_booking_is_not_found(reservation_service, pending_session) -> None:
    _, session = pending_session
    with pytest.raises(SessionNotFoundException):
        reservation_service.cancel_expired_session("wrong-booking", session.id)


def test_deadline_is_never_rewritten(clock, reservation_service, pending_session) -> None:
    booking, session = pending_session
    deadline = session.timeout_at_utc

    clock.advance(100)
    assert reservation_service.get_session(session.id).timeout_at_utc == deadline
    clock.advance(500)
    expired = reservation_service.cancel_expired_session(booking.id, session.id)
    assert expired.timeout_at_utc == deadline


# ============================================================================
# Events
# ============================================================================


def test_lifecycle_events_are_published(hooks, clock, reservation_service, mentor) -> None:
    received = []
    for event_type in (SessionCreated, SessionPaid, SessionCancelled):
        hooks.subscribe(event_type, received.append)

    _, paid = _book(reservation_service)
    reservation_service.complete_payment(paid.id, "card")
    booking, lapsed = _book(reservation_service, start=time(13, 0))
    clock.advance(301)
    reservation_service.cancel_expired_session(booking.id, lapsed.id)

    assert [type(e) for e in received] == [SessionCreated, SessionPaid, SessionCreated, SessionCancelled]
    assert received[-1].status == "expired"
    assert received[-1].cancelled_by == "system"


def test_failing_subscriber_does_not_break_booking(hooks, reservation_service, mentor) -> None:
    def explode(event):
        raise RuntimeError("notification provider down")

    hooks.subscribe(SessionCreated, explode)
    _, session = _book(reservation_service)
    assert session.status == "pending"


# ============================================================================
# Listing
# ============================================================================


def test_list_bookings_covers_client_and_mentor_side(
    clock, reservation_service, pending_session
) -> None:
    first_booking, _ = pending_session
    clock.advance(10)
    second_booking, _ = _book(reservation_service, client_id=OTHER_CLIENT_ID, start=time(11, 0))

    mentor_view, mentor_total = reservation_service.list_bookings(MENTOR_ID)
    client_view, client_total = reservation_service.list_bookings(CLIENT_ID)

    assert mentor_total == 2
    assert [b.id for b in mentor_view] == [second_booking.id, first_booking.id]
    assert client_total == 1
    assert [b.id for b in client_view] == [first_booking.id]
    assert reservation_service.list_bookings("nobody") == ([], 0)


def test_list_bookings_expires_lapsed_sessions_before_filtering(
    clock, reservation_service, pending_session
) -> None:
    clock.advance(301)

    assert reservation_service.list_bookings(CLIENT_ID, status="pending") == ([], 0)
    expired, total = reservation_service.list_bookings(CLIENT_ID, status="expired")

    assert total == 1
    assert [s.status for s in expired[0].sessions] == ["expired"]
    assert expired[0].sessions[0].cancelled_by == "system"


def test_list_bookings_filters_by_session_status(reservation_service, pending_session) -> None:
    booking, session = pending_session
    reservation_service.complete_payment(session.id, payment_method="card", booking_id=booking.id)

    assert reservation_service.list_bookings(CLIENT_ID, status="paid")[1] == 1
    assert reservation_service.list_bookings(CLIENT_ID, status="cancelled")[1] == 0


def test_list_bookings_pages_newest_first(clock, reservation_service, mentor) -> None:
    booking_ids = []
    for i, start in enumerate([time(9, 0), time(10, 0), time(13, 0)]):
        clock.advance(5)
        booking, _ = _book(reservation_service, client_id=f"client-{i}", start=start)
        booking_ids.append(booking.id)

    page_one, total = reservation_service.list_bookings(MENTOR_ID, page=1, per_page=2)
    page_two, _ = reservation_service.list_bookings(MENTOR_ID, page=2, per_page=2)

    assert total == 3
    assert len(page_one) == 2
    assert [b.id for b in page_one + page_two] == list(reversed(booking_ids))


@pytest.mark.parametrize("kwargs", [{"page": 0}, {"per_page": 0}, {"status": "bogus"}])
def test_list_bookings_rejects_bad_arguments(reservation_service, kwargs) -> None:
    with pytest.raises(ValidationException):
        reservation_service.list_bookings(CLIENT_ID, **kwargs)

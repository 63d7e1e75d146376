from __future__ import annotations

from datetime import time, timedelta

from mentorslot.events import SessionCancelled
from mentorslot.events.hooks import SessionEventHooks
from mentorslot.services.reservation_service import ReservationService
from mentorslot.services.timeout_engine import TimeoutEngine
from tests.utils.session_builders import BOOKING_DATE, CLIENT_ID, CLOCK_START, MENTOR_ID, OTHER_CLIENT_ID


def _book(service, client_id, start):
    return service.create_session(
        mentor_id=MENTOR_ID,
        client_id=client_id,
        scheduled_date=BOOKING_DATE,
        start_time=start,
        duration_minutes=30,
    )


def test_assign_deadline_uses_the_payment_window(db, clock) -> None:
    assert TimeoutEngine(db, clock=clock).assign_deadline(CLOCK_START) == CLOCK_START + timedelta(
        seconds=300
    )
    short = TimeoutEngine(db, clock=clock, payment_window_seconds=60)
    assert short.assign_deadline(CLOCK_START) == CLOCK_START + timedelta(seconds=60)


def test_is_expired_is_strict_and_pending_only(reservation_service, pending_session) -> None:
    _, session = pending_session
    deadline = session.timeout_at_utc

    assert not TimeoutEngine.is_expired(session, deadline - timedelta(seconds=1))
    assert not TimeoutEngine.is_expired(session, deadline)
    assert TimeoutEngine.is_expired(session, deadline + timedelta(microseconds=1))

    paid = reservation_service.complete_payment(session.id, "card")
    assert not TimeoutEngine.is_expired(paid, deadline + timedelta(days=1))


def test_sweep_expires_only_lapsed_sessions(db, clock, reservation_service, mentor) -> None:
    _, early = _book(reservation_service, CLIENT_ID, time(9, 0))
    clock.advance(120)
    _, late = _book(reservation_service, OTHER_CLIENT_ID, time(13, 0))
    clock.advance(200)  # early is 320s old, late 200s

    engine = reservation_service.timeout_engine
    expired = engine.sweep_expired()

    assert [s.id for s in expired] == [early.id]
    assert reservation_service.get_session(early.id).status == "expired"
    assert reservation_service.get_session(late.id).status == "pending"


def test_sweep_is_reentrant(db, session_factory, clock, reservation_service, mentor) -> None:
    _book(reservation_service, CLIENT_ID, time(9, 0))
    _book(reservation_service, OTHER_CLIENT_ID, time(13, 0))
    clock.advance(301)

    first = reservation_service.timeout_engine.sweep_expired(trigger="scheduled")
    db.commit()

    other_db = session_factory()
    try:
        other_engine = TimeoutEngine(other_db, clock=clock)
        second = other_engine.sweep_expired(trigger="client_check")
    finally:
        other_db.close()

    assert len(first) == 2
    assert second == []


def test_sweep_scopes(db, clock, reservation_service, mentor) -> None:
    _, mine = _book(reservation_service, CLIENT_ID, time(9, 0))
    _, theirs = _book(reservation_service, OTHER_CLIENT_ID, time(13, 0))
    clock.advance(301)
    engine = reservation_service.timeout_engine

    assert engine.sweep_expired(mentor_id="mentor-nobody") == []
    assert [s.id for s in engine.sweep_expired(party_id=CLIENT_ID)] == [mine.id]
    assert reservation_service.get_session(theirs.id).status == "pending"
    assert [s.id for s in engine.sweep_expired(mentor_id=MENTOR_ID)] == [theirs.id]


def test_engine_builds_its_own_reservation_service(db, clock, pending_session) -> None:
    clock.advance(301)
    engine = TimeoutEngine(db, clock=clock)

    expired = engine.sweep_expired()

    assert len(expired) == 1
    assert isinstance(engine.reservation_service, ReservationService)
    assert engine.reservation_service.timeout_engine is engine


def test_sweep_publishes_expiry_events(db, clock, mentor) -> None:
    hooks = SessionEventHooks()
    received = []
    hooks.subscribe(SessionCancelled, received.append)
    service = ReservationService(db, clock=clock, hooks=hooks)
    _, session = _book(service, CLIENT_ID, time(9, 0))
    clock.advance(301)

    service.timeout_engine.sweep_expired()

    assert [(e.session_id, e.status, e.cancelled_by) for e in received] == [
        (session.id, "expired", "system")
    ]

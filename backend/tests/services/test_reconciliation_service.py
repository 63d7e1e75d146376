from __future__ import annotations

from datetime import time, timedelta

from mentorslot.core.constants import TIMEOUT_REASON_MESSAGE
from mentorslot.services.reconciliation_service import ClientTimeout, ReconciliationService
from tests.utils.session_builders import CLIENT_ID, OTHER_CLIENT_ID


def _service(db, clock, reservation_service):
    return ReconciliationService(
        db, clock=clock, timeout_engine=reservation_service.timeout_engine
    )


def _reported(booking, session, drift_seconds=0):
    return ClientTimeout(
        booking_id=booking.id,
        session_id=session.id,
        timeout_at=session.timeout_at_utc + timedelta(seconds=drift_seconds),
    )


def test_matching_pending_session_is_omitted(db, clock, reservation_service, pending_session) -> None:
    booking, session = pending_session
    result = _service(db, clock, reservation_service).sync_timeout_state(
        [_reported(booking, session)], actor_id=CLIENT_ID
    )
    assert result == {"expired_sessions": []}


def test_paid_elsewhere_is_reported(db, clock, reservation_service, pending_session) -> None:
    booking, session = pending_session
    reservation_service.complete_payment(session.id, "card")

    result = _service(db, clock, reservation_service).sync_timeout_state(
        [_reported(booking, session)], actor_id=CLIENT_ID
    )

    [entry] = result["expired_sessions"]
    assert entry["session_id"] == session.id
    assert entry["status"] == "paid"
    assert entry["reason"] == "paid"


def test_lapsed_session_is_expired_during_sync(db, clock, reservation_service, pending_session) -> None:
    booking, session = pending_session
    clock.advance(301)

    result = _service(db, clock, reservation_service).sync_timeout_state(
        [_reported(booking, session)], actor_id=CLIENT_ID
    )

    [entry] = result["expired_sessions"]
    assert entry["status"] == "expired"
    assert entry["reason"] == TIMEOUT_REASON_MESSAGE
    assert reservation_service.get_session(session.id).status == "expired"


def test_sync_converges_after_one_call(db, clock, reservation_service, pending_session) -> None:
    booking, session = pending_session
    service = _service(db, clock, reservation_service)
    reservation_service.complete_payment(session.id, "card")

    first = service.sync_timeout_state([_reported(booking, session)])
    second = service.sync_timeout_state([_reported(booking, session)])

    assert first == second
    assert first["expired_sessions"][0]["status"] == "paid"


def test_deadline_drift_returns_authoritative_deadline(
    db, clock, reservation_service, pending_session
) -> None:
    booking, session = pending_session
    service = _service(db, clock, reservation_service)

    within = service.sync_timeout_state([_reported(booking, session, drift_seconds=0.5)])
    assert within["expired_sessions"] == []

    result = service.sync_timeout_state([_reported(booking, session, drift_seconds=90)])
    [entry] = result["expired_sessions"]
    assert entry["status"] == "pending"
    assert entry["reason"] == "deadline_mismatch"
    assert entry["timeout_at"] == session.timeout_at_utc


def test_unknown_and_foreign_sessions_are_not_found(
    db, clock, reservation_service, pending_session
) -> None:
    booking, session = pending_session
    service = _service(db, clock, reservation_service)
    ghost = ClientTimeout(
        booking_id=booking.id, session_id="01HGHOSTGHOSTGHOSTGHOSTGHO", timeout_at=clock()
    )

    result = service.sync_timeout_state(
        [ghost, _reported(booking, session)], actor_id=OTHER_CLIENT_ID
    )

    assert [(e["session_id"], e["status"]) for e in result["expired_sessions"]] == [
        (ghost.session_id, "not_found"),
        (session.id, "not_found"),
    ]


def test_timeout_status_reports_soft_expiry_without_writing(
    db, clock, reservation_service, pending_session, mentor
) -> None:
    booking, session = pending_session
    _, paid = reservation_service.create_session(
        mentor_id=mentor,
        client_id=CLIENT_ID,
        scheduled_date=session.scheduled_date,
        start_time=time(14, 0),
        duration_minutes=30,
    )
    reservation_service.complete_payment(paid.id, "card")
    service = _service(db, clock, reservation_service)

    assert service.get_timeout_status([session.id, paid.id]) == {
        session.id: "pending",
        paid.id: "paid",
    }

    clock.advance(301)
    statuses = service.get_timeout_status([session.id, paid.id, "missing"], actor_id=CLIENT_ID)

    assert statuses == {session.id: "expired", paid.id: "paid"}
    assert reservation_service.get_session(session.id).status == "pending"
    assert service.get_timeout_status([session.id], actor_id=OTHER_CLIENT_ID) == {}

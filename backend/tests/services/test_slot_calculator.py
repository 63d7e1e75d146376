from __future__ import annotations

from datetime import date, time

import pytest

from mentorslot.core.exceptions import ValidationException
from mentorslot.services.availability_service import AvailabilityService
from mentorslot.services.slot_calculator import SlotCalculator, cell_starts
from tests.utils.session_builders import BOOKING_DATE, CLIENT_ID, OTHER_CLIENT_ID


def _starts(slots, available=None):
    return [
        s.start_time.strftime("%H:%M")
        for s in slots
        if available is None or s.available is available
    ]


def test_base_slots_cover_every_window(db, clock, mentor) -> None:
    slots = SlotCalculator(db, clock=clock).get_slots(mentor, BOOKING_DATE)

    # 09:00-12:00 and 13:00-17:00 at 15-minute granularity
    assert len(slots) == 12 + 16
    assert slots[0].start_time == time(9, 0)
    assert slots[0].end_time == time(9, 15)
    assert slots[11].end_time == time(12, 0)
    assert slots[12].start_time == time(13, 0)
    assert slots[-1].end_time == time(17, 0)
    assert all(s.available for s in slots)


def test_no_template_means_no_slots(db, clock, mentor) -> None:
    assert SlotCalculator(db, clock=clock).get_slots("mentor-unknown", BOOKING_DATE) == []


def test_consecutive_windows_stop_at_availability_edges(db, clock, mentor) -> None:
    windows = SlotCalculator(db, clock=clock).get_consecutive_slots(mentor, BOOKING_DATE, 30)
    starts = _starts(windows)

    assert starts[0] == "09:00"
    # Ending exactly at the window edge is fine, crossing it is not
    assert "11:30" in starts
    assert "11:45" not in starts
    assert "12:45" not in starts
    assert "16:30" in starts
    assert "16:45" not in starts
    assert len(windows) == 11 + 15
    assert all(w.available for w in windows)


def test_consecutive_windows_never_bridge_a_gap(db, clock) -> None:
    AvailabilityService(db).replace_windows(
        "mentor-gap",
        [
            {"day_of_week": BOOKING_DATE.weekday(), "start_time": time(9, 0), "end_time": time(9, 30)},
            {"day_of_week": BOOKING_DATE.weekday(), "start_time": time(9, 45), "end_time": time(10, 15)},
        ],
    )
    windows = SlotCalculator(db, clock=clock).get_consecutive_slots("mentor-gap", BOOKING_DATE, 30)

    assert _starts(windows) == ["09:00", "09:45"]


def test_active_session_blocks_overlapping_windows(db, clock, mentor, pending_session) -> None:
    calculator = SlotCalculator(db, clock=clock)

    base = calculator.get_slots(mentor, BOOKING_DATE)
    assert _starts(base, available=False) == ["10:00", "10:15"]

    hour_windows = calculator.get_consecutive_slots(mentor, BOOKING_DATE, 60)
    by_start = {w.start_time.strftime("%H:%M"): w.available for w in hour_windows}
    assert by_start["09:00"] is True
    assert by_start["09:15"] is False
    assert by_start["09:45"] is False
    assert by_start["10:15"] is False
    assert by_start["10:30"] is True


def test_lapsed_pending_session_stops_blocking_before_sweep(db, clock, mentor, pending_session) -> None:
    _, session = pending_session
    calculator = SlotCalculator(db, clock=clock)

    clock.advance(300)
    assert not calculator.is_window_available(mentor, BOOKING_DATE, time(10, 0), 30)

    clock.advance(1)
    assert calculator.is_window_available(mentor, BOOKING_DATE, time(10, 0), 30)
    # Nothing was written; the session is still stored as pending
    db.refresh(session)
    assert session.status == "pending"


def test_paid_session_keeps_blocking_after_deadline(
    db, clock, mentor, reservation_service, pending_session
) -> None:
    _, session = pending_session
    reservation_service.complete_payment(session.id, payment_method="card")
    clock.advance(3600)

    assert not SlotCalculator(db, clock=clock).is_window_available(
        mentor, BOOKING_DATE, time(10, 0), 30
    )


def test_cancelled_session_frees_its_cells(
    db, clock, mentor, reservation_service, pending_session
) -> None:
    booking, session = pending_session
    reservation_service.cancel_session_by_user(booking.id, session.id, actor_id=CLIENT_ID)

    slots = SlotCalculator(db, clock=clock).get_slots(mentor, BOOKING_DATE)
    assert all(s.available for s in slots)


def test_other_days_are_unaffected(db, clock, mentor, pending_session) -> None:
    next_day = date(2024, 6, 2)
    slots = SlotCalculator(db, clock=clock).get_slots(mentor, next_day)
    assert all(s.available for s in slots)


def test_find_window_outside_template_is_none(db, clock, mentor) -> None:
    calculator = SlotCalculator(db, clock=clock)
    assert calculator.find_window(mentor, BOOKING_DATE, time(11, 45), 30) is None
    assert calculator.find_window(mentor, BOOKING_DATE, time(7, 0), 30) is None
    assert calculator.find_window(mentor, BOOKING_DATE, time(11, 0), 60).available is True


def test_date_bounded_windows(db, clock) -> None:
    AvailabilityService(db).replace_windows(
        "mentor-term",
        [
            {
                "day_of_week": BOOKING_DATE.weekday(),
                "start_time": time(9, 0),
                "end_time": time(10, 0),
                "valid_from": date(2024, 6, 1),
                "valid_until": date(2024, 6, 30),
            }
        ],
    )
    calculator = SlotCalculator(db, clock=clock)

    assert len(calculator.get_slots("mentor-term", BOOKING_DATE)) == 4
    assert calculator.get_slots("mentor-term", date(2024, 7, 6)) == []


@pytest.mark.parametrize("duration", [0, -15, 20, 50])
def test_duration_must_be_a_multiple_of_the_grid(db, clock, mentor, duration) -> None:
    with pytest.raises(ValidationException):
        SlotCalculator(db, clock=clock).get_consecutive_slots(mentor, BOOKING_DATE, duration)


def test_cell_starts() -> None:
    assert cell_starts(time(10, 0), 60) == [time(10, 0), time(10, 15), time(10, 30), time(10, 45)]


def test_second_client_sees_first_clients_hold(db, clock, mentor, reservation_service) -> None:
    reservation_service.create_session(
        mentor_id=mentor,
        client_id=OTHER_CLIENT_ID,
        scheduled_date=BOOKING_DATE,
        start_time=time(14, 0),
        duration_minutes=60,
    )
    slots = SlotCalculator(db, clock=clock).get_slots(mentor, BOOKING_DATE)
    assert _starts(slots, available=False) == ["14:00", "14:15", "14:30", "14:45"]

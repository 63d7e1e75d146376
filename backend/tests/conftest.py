# backend/tests/conftest.py
"""
Pytest configuration for the reservation engine.

Every test gets its own SQLite file so threads can open independent
connections against it, and a controllable clock so deadline behavior is
deterministic.
"""

import os
import tempfile

# Set testing mode BEFORE any mentorslot imports
os.environ["IS_TESTING"] = "true"
os.environ["REDIS_URL"] = ""
os.environ["PAYMENT_WINDOW_SECONDS"] = "300"
os.environ.setdefault(
    "DATABASE_URL", f"sqlite:///{os.path.join(tempfile.mkdtemp(), 'mentorslot_default.db')}"
)

from datetime import time
from decimal import Decimal
from typing import Iterator

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from mentorslot.api.dependencies import get_clock, get_db
from mentorslot.database import build_engine, init_db
from mentorslot.events.hooks import SessionEventHooks
from mentorslot.main import create_app
from mentorslot.services.availability_service import AvailabilityService
from mentorslot.services.reservation_service import ReservationService

from tests.utils.session_builders import (
    AFTERNOON,
    BOOKING_DATE,
    CLIENT_ID,
    CLOCK_START,
    MENTOR_ID,
    MORNING,
    OTHER_CLIENT_ID,
    FakeClock,
    weekly_windows,
)


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def engine(tmp_path) -> Iterator[Engine]:
    test_engine = build_engine(f"sqlite:///{tmp_path / 'mentorslot_test.db'}")
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# Time and services
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(CLOCK_START)


@pytest.fixture
def hooks() -> SessionEventHooks:
    return SessionEventHooks()


@pytest.fixture
def mentor(db: Session) -> str:
    """A mentor available 09:00-12:00 and 13:00-17:00 every day."""
    service = AvailabilityService(db)
    service.replace_windows(MENTOR_ID, weekly_windows(MORNING, AFTERNOON))
    service.replace_offerings(
        MENTOR_ID,
        [
            {"session_type": "video", "duration_minutes": 30, "price": Decimal("50.00")},
            {"session_type": "video", "duration_minutes": 60, "price": Decimal("90.00")},
            {"session_type": "audio", "duration_minutes": 30, "price": Decimal("40.00")},
        ],
    )
    return MENTOR_ID


@pytest.fixture
def reservation_service(db: Session, clock: FakeClock, hooks: SessionEventHooks) -> ReservationService:
    return ReservationService(db, clock=clock, hooks=hooks)


@pytest.fixture
def pending_session(reservation_service: ReservationService, mentor: str):
    """A 30-minute pending video session at 10:00 on BOOKING_DATE."""
    return reservation_service.create_session(
        mentor_id=mentor,
        client_id=CLIENT_ID,
        scheduled_date=BOOKING_DATE,
        start_time=time(10, 0),
        duration_minutes=30,
    )


# ============================================================================
# API
# ============================================================================


@pytest.fixture
def client(db: Session, clock: FakeClock) -> Iterator[TestClient]:
    """Test client sharing the test session and clock."""
    app = create_app(init_schema=False)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    test_client = TestClient(app)
    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


@pytest.fixture
def client_headers() -> dict:
    return {"X-User-Id": CLIENT_ID}


@pytest.fixture
def other_client_headers() -> dict:
    return {"X-User-Id": OTHER_CLIENT_ID}


@pytest.fixture
def mentor_headers() -> dict:
    return {"X-User-Id": MENTOR_ID}

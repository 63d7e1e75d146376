"""
Service layer dependencies for dependency injection.

Each request gets services bound to its database session and the shared
clock dependency, which tests override to control time.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.timezone_utils import Clock, utc_now
from ...services.availability_service import AvailabilityService
from ...services.reconciliation_service import ReconciliationService
from ...services.reservation_service import ReservationService
from ...services.slot_calculator import SlotCalculator
from ...services.timeout_engine import TimeoutEngine
from .database import get_db

logger = logging.getLogger(__name__)


def get_clock() -> Clock:
    return utc_now


def get_slot_calculator(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> SlotCalculator:
    return SlotCalculator(db, clock=clock)


def get_reservation_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> ReservationService:
    return ReservationService(db, clock=clock)


def get_timeout_engine(
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> TimeoutEngine:
    return reservation_service.timeout_engine


def get_reconciliation_service(
    timeout_engine: TimeoutEngine = Depends(get_timeout_engine),
) -> ReconciliationService:
    return ReconciliationService(
        timeout_engine.db, clock=timeout_engine.clock, timeout_engine=timeout_engine
    )


def get_availability_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> AvailabilityService:
    return AvailabilityService(db, clock=clock)

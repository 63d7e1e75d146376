"""FastAPI dependencies."""

from .auth import get_current_user_id
from .database import get_db
from .services import (
    get_availability_service,
    get_clock,
    get_reconciliation_service,
    get_reservation_service,
    get_slot_calculator,
    get_timeout_engine,
)

__all__ = [
    "get_availability_service",
    "get_clock",
    "get_current_user_id",
    "get_db",
    "get_reconciliation_service",
    "get_reservation_service",
    "get_slot_calculator",
    "get_timeout_engine",
]

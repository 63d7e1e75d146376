# backend/mentorslot/repositories/factory.py
"""
Repository Factory

Central place for creating repository instances so services do not
construct them directly.
"""

from sqlalchemy.orm import Session

from .availability_repository import AvailabilityRepository, OfferingRepository
from .booking_repository import BookingRepository, SessionRepository


class RepositoryFactory:
    """Factory for creating repository instances."""

    @staticmethod
    def create_availability_repository(db: Session) -> AvailabilityRepository:
        return AvailabilityRepository(db)

    @staticmethod
    def create_offering_repository(db: Session) -> OfferingRepository:
        return OfferingRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> BookingRepository:
        return BookingRepository(db)

    @staticmethod
    def create_session_repository(db: Session) -> SessionRepository:
        return SessionRepository(db)

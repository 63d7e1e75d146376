"""
Repository layer.

Repositories encapsulate all query logic; services own transactions.
"""

from .availability_repository import AvailabilityRepository, OfferingRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository, SessionRepository
from .factory import RepositoryFactory

__all__ = [
    "AvailabilityRepository",
    "BaseRepository",
    "BookingRepository",
    "OfferingRepository",
    "RepositoryFactory",
    "SessionRepository",
]

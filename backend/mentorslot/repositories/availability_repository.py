# backend/mentorslot/repositories/availability_repository.py
"""
Availability and offering data access.

Mentor templates are read-mostly; the booking flow only reads them. Writes
happen when a mentor replaces their weekly windows or offerings wholesale.
"""

from datetime import date
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import MentorAvailabilityWindow
from ..models.offering import MentorOffering
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[MentorAvailabilityWindow]):
    def __init__(self, db: Session):
        super().__init__(db, MentorAvailabilityWindow)

    def get_windows_for_date(self, mentor_id: str, day: date) -> List[MentorAvailabilityWindow]:
        """Active windows on the weekday of ``day`` whose date range covers it, earliest first."""
        try:
            candidates = (
                self.db.query(MentorAvailabilityWindow)
                .filter(
                    MentorAvailabilityWindow.mentor_id == mentor_id,
                    MentorAvailabilityWindow.day_of_week == day.weekday(),
                    MentorAvailabilityWindow.is_active.is_(True),
                )
                .order_by(MentorAvailabilityWindow.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading availability for {mentor_id} on {day}: {str(e)}")
            raise RepositoryException(f"Failed to load availability: {str(e)}")
        return [w for w in candidates if w.applies_to(day)]

    def get_windows(self, mentor_id: str) -> List[MentorAvailabilityWindow]:
        try:
            return (
                self.db.query(MentorAvailabilityWindow)
                .filter(MentorAvailabilityWindow.mentor_id == mentor_id)
                .order_by(MentorAvailabilityWindow.day_of_week, MentorAvailabilityWindow.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing availability for {mentor_id}: {str(e)}")
            raise RepositoryException(f"Failed to list availability: {str(e)}")

    def replace_windows(
        self, mentor_id: str, windows: List[Dict[str, Any]]
    ) -> List[MentorAvailabilityWindow]:
        try:
            self.db.query(MentorAvailabilityWindow).filter(
                MentorAvailabilityWindow.mentor_id == mentor_id
            ).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            self.logger.error(f"Error clearing availability for {mentor_id}: {str(e)}")
            raise RepositoryException(f"Failed to replace availability: {str(e)}")
        return self.bulk_create([{**w, "mentor_id": mentor_id} for w in windows])


class OfferingRepository(BaseRepository[MentorOffering]):
    def __init__(self, db: Session):
        super().__init__(db, MentorOffering)

    def get_active_offering(
        self, mentor_id: str, session_type: str, duration_minutes: int
    ) -> Optional[MentorOffering]:
        try:
            return (
                self.db.query(MentorOffering)
                .filter(
                    MentorOffering.mentor_id == mentor_id,
                    MentorOffering.session_type == session_type,
                    MentorOffering.duration_minutes == duration_minutes,
                    MentorOffering.is_active.is_(True),
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading offering for {mentor_id}: {str(e)}")
            raise RepositoryException(f"Failed to load offering: {str(e)}")

    def list_for_mentor(self, mentor_id: str) -> List[MentorOffering]:
        try:
            return (
                self.db.query(MentorOffering)
                .filter(MentorOffering.mentor_id == mentor_id)
                .order_by(MentorOffering.session_type, MentorOffering.duration_minutes)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing offerings for {mentor_id}: {str(e)}")
            raise RepositoryException(f"Failed to list offerings: {str(e)}")

    def replace_offerings(
        self, mentor_id: str, offerings: List[Dict[str, Any]]
    ) -> List[MentorOffering]:
        try:
            self.db.query(MentorOffering).filter(MentorOffering.mentor_id == mentor_id).delete(
                synchronize_session=False
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error clearing offerings for {mentor_id}: {str(e)}")
            raise RepositoryException(f"Failed to replace offerings: {str(e)}")
        return self.bulk_create([{**o, "mentor_id": mentor_id} for o in offerings])

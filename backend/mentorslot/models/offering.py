# backend/mentorslot/models/offering.py
"""Priced session types a mentor offers."""

from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base


class SessionType(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    CHAT = "chat"
    IN_PERSON = "in_person"


class MentorOffering(Base):
    __tablename__ = "mentor_offerings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    mentor_id = Column(String(64), nullable=False, index=True)
    session_type = Column(String(20), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "mentor_id", "session_type", "duration_minutes", name="uq_offering_type_duration"
        ),
        CheckConstraint("price >= 0", name="ck_offering_price_non_negative"),
        CheckConstraint("duration_minutes > 0", name="ck_offering_duration_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<MentorOffering {self.mentor_id} {self.session_type} "
            f"{self.duration_minutes}min {self.price}>"
        )

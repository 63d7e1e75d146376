# backend/mentorslot/models/slot_hold.py
"""
Per-cell reservation holds.

Each active session owns one row per 15-minute cell it covers. The unique
constraint on (mentor_id, slot_date, slot_start) makes overlapping inserts
fail at the storage layer, so two concurrent bookings of intersecting
windows cannot both commit. Rows are removed when the session leaves the
active set (expired or cancelled); paid sessions keep theirs.
"""

from sqlalchemy import Column, Date, ForeignKey, String, Time, UniqueConstraint
import ulid

from ..database import Base


class SessionSlotHold(Base):
    __tablename__ = "session_slot_holds"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    mentor_id = Column(String(64), nullable=False)
    slot_date = Column(Date, nullable=False)
    slot_start = Column(Time, nullable=False)
    session_id = Column(String(26), ForeignKey("booking_sessions.id"), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("mentor_id", "slot_date", "slot_start", name="uq_slot_hold_mentor_cell"),
    )

    def __repr__(self) -> str:
        return f"<SessionSlotHold {self.mentor_id} {self.slot_date} {self.slot_start}>"

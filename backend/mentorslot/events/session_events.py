"""Session lifecycle events."""
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class SessionCreated:
    """Fired after a pending session is committed (notification hook)."""

    session_id: str
    booking_id: str
    mentor_id: str
    client_id: str
    timeout_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionPaid:
    """Fired after payment completes; calendar/meeting-link creation hangs off this."""

    session_id: str
    booking_id: str
    mentor_id: str
    client_id: str
    payment_method: str
    final_amount: float
    paid_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionCancelled:
    """Fired after a pending session is expired or cancelled."""

    session_id: str
    booking_id: str
    status: str  # 'expired' or 'cancelled'
    cancelled_by: str  # 'client', 'mentor' or 'system'
    reason: Optional[str]
    cancelled_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

"""Timeout reconciliation schemas."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from ..core.constants import TIMEOUT_BATCH_LIMIT
from .base import StrictModel, StrictRequestModel


class ClientTimeoutEntry(StrictRequestModel):
    booking_id: str
    session_id: str
    timeout_at: datetime


class TimeoutSyncRequest(StrictRequestModel):
    timeouts: List[ClientTimeoutEntry] = Field(default_factory=list, max_length=TIMEOUT_BATCH_LIMIT)


class ExpiredSessionEntry(StrictModel):
    booking_id: str
    session_id: str
    status: str
    reason: Optional[str] = None
    timeout_at: Optional[datetime] = None


class TimeoutSyncResponse(StrictModel):
    expired_sessions: List[ExpiredSessionEntry]


class TimeoutStatusRequest(StrictRequestModel):
    session_ids: List[str] = Field(..., max_length=TIMEOUT_BATCH_LIMIT)


class TimeoutStatusResponse(StrictModel):
    statuses: Dict[str, str]

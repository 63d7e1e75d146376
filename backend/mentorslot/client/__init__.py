"""Client-side countdown tracking for pending session payments."""

from .api_client import TimeoutApiClient, TimeoutApiError
from .countdown_tracker import ClientCountdownTracker, TimeoutRecord, format_countdown, session_key
from .storage import InMemoryTimeoutStorage, JsonFileTimeoutStorage, TimeoutStorage

__all__ = [
    "ClientCountdownTracker",
    "InMemoryTimeoutStorage",
    "JsonFileTimeoutStorage",
    "TimeoutApiClient",
    "TimeoutApiError",
    "TimeoutRecord",
    "TimeoutStorage",
    "format_countdown",
    "session_key",
]

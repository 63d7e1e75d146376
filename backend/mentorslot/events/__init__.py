"""Session lifecycle events and the hook registry."""
from .hooks import SessionEventHooks, session_hooks
from .session_events import SessionCancelled, SessionCreated, SessionPaid

__all__ = [
    "SessionCancelled",
    "SessionCreated",
    "SessionEventHooks",
    "SessionPaid",
    "session_hooks",
]

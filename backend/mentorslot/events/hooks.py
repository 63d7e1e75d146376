"""
In-process session event hooks.

Collaborators (notifications, calendar links) subscribe by event class.
Dispatch happens after the transition is committed; a failing subscriber is
logged and never affects the reservation state.
"""
from collections import defaultdict
import logging
from threading import Lock
from typing import Any, Callable, DefaultDict, List, Type

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class SessionEventHooks:
    def __init__(self) -> None:
        self._handlers: DefaultDict[type, List[Handler]] = defaultdict(list)
        self._lock = Lock()

    def subscribe(self, event_type: Type[Any], handler: Handler) -> None:
        with self._lock:
            if handler not in self._handlers[event_type]:
                self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: Type[Any], handler: Handler) -> None:
        with self._lock:
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()

    def publish(self, event: Any) -> None:
        with self._lock:
            handlers = list(self._handlers.get(type(event), ()))
        for handler in handlers:
            try:
                handler(event)
            except Exception as exc:
                logger.error(
                    "Session event handler failed",
                    exc_info=True,
                    extra={
                        "event_type": type(event).__name__,
                        "handler": getattr(handler, "__name__", repr(handler)),
                        "error": str(exc),
                    },
                )


session_hooks = SessionEventHooks()

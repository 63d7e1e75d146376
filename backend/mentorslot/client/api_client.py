"""HTTP client for the booking timeout endpoints."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

import httpx

from mentorslot.core.constants import TIMEOUT_BATCH_LIMIT, USER_ID_HEADER

logger = logging.getLogger(__name__)


class TimeoutApiError(RuntimeError):
    """Raised when the booking API responds with an error."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        *,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class TimeoutApiClient:
    """Thin wrapper over /api/v1/bookings timeout routes."""

    def __init__(
        self,
        *,
        base_url: str,
        user_id: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={USER_ID_HEADER: user_id},
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> "TimeoutApiClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise TimeoutApiError(f"{method} {path} failed: {exc}") from exc
        if response.status_code >= 400:
            try:
                details = response.json()
            except ValueError:
                details = response.text
            raise TimeoutApiError(
                f"{method} {path} returned {response.status_code}",
                response.status_code,
                details=details,
            )
        return response.json()

    def sync_timeout_state(self, timeouts: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        POST /timeout/sync; returns the server's corrections.

        Large reports go out in batches the route accepts.
        """
        corrections: List[Dict[str, Any]] = []
        for batch in _batches(timeouts):
            payload = {
                "timeouts": [
                    {
                        "booking_id": t["booking_id"],
                        "session_id": t["session_id"],
                        "timeout_at": _iso(t["timeout_at"]),
                    }
                    for t in batch
                ]
            }
            data = self._request("POST", "/api/v1/bookings/timeout/sync", json=payload)
            corrections.extend(data.get("expired_sessions", []))
        return corrections

    def get_timeout_status(self, session_ids: Sequence[str]) -> Dict[str, str]:
        statuses: Dict[str, str] = {}
        for batch in _batches(session_ids):
            data = self._request(
                "POST", "/api/v1/bookings/timeout/status", json={"session_ids": list(batch)}
            )
            statuses.update(data.get("statuses", {}))
        return statuses

    def check_expired_sessions(self) -> Dict[str, Any]:
        return self._request("GET", "/api/v1/bookings/expired/check")

    def cancel_expired_session(
        self, booking_id: str, session_id: str, reason: Optional[str] = None
    ) -> Dict[str, Any]:
        return self._request(
            "PUT",
            f"/api/v1/bookings/{booking_id}/cancel-expired-session",
            json={"session_id": session_id, "reason": reason},
        )


def _iso(value: Any) -> str:
    return value.isoformat() if isinstance(value, datetime) else str(value)


def _batches(items: Sequence[Any], size: int = TIMEOUT_BATCH_LIMIT) -> Iterator[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]

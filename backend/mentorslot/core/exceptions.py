# backend/mentorslot/core/exceptions.py
"""
Domain-specific exceptions for the reservation engine.

These exceptions carry business-focused messages and a stable code, and
know how to turn themselves into the HTTP error the API layer returns.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails (malformed duration/time input)."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedException(DomainException):
    """Raised when the caller carries no identity."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when the caller is not a party to the session."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class RepositoryException(Exception):
    """Raised when a repository operation fails."""


# Reservation engine errors


class SlotConflictException(ConflictException):
    """The requested window overlaps an active session; the client must re-fetch slots."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message or "This slot is no longer available, please choose another",
            code="SLOT_CONFLICT",
            details=details,
        )


class SessionNotFoundException(NotFoundException):
    def __init__(self, session_id: str, booking_id: Optional[str] = None) -> None:
        details: Dict[str, Any] = {"session_id": session_id}
        if booking_id is not None:
            details["booking_id"] = booking_id
        super().__init__(f"Session {session_id} not found", code="SESSION_NOT_FOUND", details=details)


class AlreadyTerminalException(ConflictException):
    """The session already left pending; the attempted transition is refused."""

    def __init__(self, session_id: str, current_status: str) -> None:
        self.current_status = current_status
        super().__init__(
            f"Session {session_id} is already {current_status}",
            code="ALREADY_TERMINAL",
            details={"session_id": session_id, "status": current_status},
        )


class TimeoutExceededException(ConflictException):
    """Payment arrived after the session's deadline."""

    def __init__(self, session_id: str, timeout_at: datetime) -> None:
        self.timeout_at = timeout_at
        super().__init__(
            "Your payment window has expired, the slot has been released",
            code="TIMEOUT_EXCEEDED",
            details={"session_id": session_id, "timeout_at": timeout_at.isoformat()},
        )

"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across HTTP and socket surfaces
- Machine-readable error codes for client handling
- A fixed HTTP status per error kind

Exception Hierarchy:
    BaseApplicationError (base, 500)
    ├── ValidationError - Malformed input (400)
    ├── NotFoundError - Resource not found (404)
    ├── PermissionDeniedError - Caller may not act on the resource (403)
    └── ConflictError - State conflicts such as duplicate membership (409)

Usage:
    from core.exceptions import ValidationError

    raise ValidationError("Unknown event type", error_code="UNKNOWN_EVENT")

Note:
    Services report expected failures through ServiceResult error codes;
    ERROR_CODE_EXCEPTIONS maps those codes onto this hierarchy so views can
    raise the matching exception and let the DRF handler render it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API and socket responses.

        Example:
            {
                "error": "Conversation not found",
                "error_code": "CONVERSATION_NOT_FOUND",
                "details": {"conversation_id": 12}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for empty or oversized content, missing group names, malformed
    socket events and operations that only apply to group conversations.
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller lacks permission for an operation.

    Use for non-participants reading a conversation, non-senders deleting a
    message and non-admins changing group membership.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class NotFoundError(BaseApplicationError):
    """Raised when a requested conversation, message or user does not exist."""

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Example:
        raise ConflictError(
            "User is already a participant",
            error_code="ALREADY_PARTICIPANT",
            details={"user_id": user.id},
        )
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


# Service error codes that do not map to ValidationError.
ERROR_CODE_EXCEPTIONS: dict[str, type[BaseApplicationError]] = {
    "CONVERSATION_NOT_FOUND": NotFoundError,
    "MESSAGE_NOT_FOUND": NotFoundError,
    "USER_NOT_FOUND": NotFoundError,
    "NOT_PARTICIPANT": PermissionDeniedError,
    "NOT_SENDER": PermissionDeniedError,
    "NOT_ADMIN": PermissionDeniedError,
    "ALREADY_PARTICIPANT": ConflictError,
    "NOT_MEMBER": ConflictError,
}


def exception_for_error_code(
    message: str,
    error_code: str | None,
    details: dict[str, Any] | None = None,
) -> BaseApplicationError:
    """
    Build the application exception matching a service error code.

    Unknown codes are treated as validation failures.
    """
    exc_class = ERROR_CODE_EXCEPTIONS.get(error_code or "", ValidationError)
    return exc_class(message, error_code=error_code, details=details)

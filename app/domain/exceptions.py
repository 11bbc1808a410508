"""Domain exceptions for the study hub stats service.

Defines domain-level exceptions that represent business rule violations
and data-source failures. These exceptions are independent of the web
layer; app.core.exception_handlers maps them to HTTP responses.
"""

from typing import Any


class StudyHubException(Exception):
    """Base exception for all study hub stats errors.

    All custom exceptions should inherit from this class to allow
    consistent error handling and logging. Presentation layer maps
    these to HTTP responses using message, error_code, and details.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, table).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON error body used by the API."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(StudyHubException):
    """Raised when input validation fails (e.g. empty user id)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with message and optional field name.

        Args:
            message: Description of the validation failure.
            field: Optional field or attribute that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthenticationException(StudyHubException):
    """Raised when authentication fails (e.g. invalid or expired access token)."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, "AUTHENTICATION_ERROR")


class DataSourceException(StudyHubException):
    """Raised when a Supabase query, count, or RPC call fails.

    Transient by nature: callers retry counts once and fall back to
    client-side aggregation for RPCs.
    """

    def __init__(
        self,
        operation: str,
        target: str,
        reason: str,
        status_code: int | None = None,
    ) -> None:
        """Initialize with the failed operation and its target.

        Args:
            operation: 'count', 'select', or 'rpc'.
            target: Table or RPC function name.
            reason: Human-readable reason (e.g. HTTP status text).
            status_code: Optional HTTP status returned by the backend.
        """
        details: dict[str, Any] = {"operation": operation, "target": target}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            f"{operation} on {target} failed: {reason}",
            "DATA_SOURCE_ERROR",
            details,
        )
        self.status_code = status_code


class ChangeEventException(StudyHubException):
    """Raised when a change notification payload cannot be parsed."""

    def __init__(self, reason: str, payload_keys: list[str] | None = None) -> None:
        super().__init__(
            f"Malformed change event: {reason}",
            "CHANGE_EVENT_ERROR",
            {"payload_keys": payload_keys or []},
        )

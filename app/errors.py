"""Error taxonomy of the API.

Every failure an operation can report is one of the classes below. Each
carries the HTTP status it maps to, a machine-readable ``reason`` and a
message for the client. The exception handlers in ``main`` turn them
into the response envelope.
"""

from typing import Any


class APIError(Exception):
    """Base class for errors reported to API clients."""

    status_code = 500
    default_reason = "UnexpectedError"
    default_message = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        reason: str | None = None,
        data: Any = None,
        errors: list | None = None,
    ):
        self.message = message or self.default_message
        self.reason = reason or self.default_reason
        self.data = data
        self.errors = errors
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(reason={self.reason!r}, message={self.message!r})"


class ValidationError(APIError):
    """Malformed or missing input fields."""

    status_code = 400
    default_reason = "ValidationError"
    default_message = "Invalid input data"


class AuthenticationError(APIError):
    """Missing, invalid or expired credentials."""

    status_code = 401
    default_reason = "InvalidToken"
    default_message = "Invalid token"


class NotFoundError(APIError):
    """Entity absent, or not owned by the caller."""

    status_code = 404
    default_reason = "NotFound"
    default_message = "Resource not found"


class ConflictError(APIError):
    """Uniqueness or referential conflict."""

    status_code = 409
    default_reason = "Conflict"
    default_message = "Request conflicts with existing data"


class InvariantError(APIError):
    """Business rule violated by otherwise well-formed input."""

    status_code = 400
    default_reason = "InvariantViolation"
    default_message = "Request violates a contract rule"


class UnexpectedError(APIError):
    """Persistence failure or unhandled exception."""

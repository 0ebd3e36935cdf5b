"""
Structured error classes shared across the gym access core.

Every error carries a machine-readable error_code, a human-readable message,
optional details and the HTTP status the API layer should answer with.
"""

from typing import Any, Optional

from fastapi import status


class GymAccessError(Exception):
    """Base exception for all domain errors."""

    error_code = "gym_access_error"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(GymAccessError):
    """A member, gym, pass or subscription does not exist."""

    error_code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class ForbiddenError(GymAccessError):
    """The caller's scope or role does not allow the action."""

    error_code = "forbidden"
    http_status = status.HTTP_403_FORBIDDEN


class ConflictError(GymAccessError):
    """The request conflicts with current state (quota, duplicates, tier)."""

    error_code = "conflict"
    http_status = status.HTTP_409_CONFLICT


class ValidationError(GymAccessError):
    """Malformed input from the caller."""

    error_code = "validation_error"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class UnavailableError(GymAccessError):
    """A non-critical external dependency is down or slow."""

    error_code = "unavailable"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class InternalError(GymAccessError):
    """Unexpected failure, wrapped with context."""

    error_code = "internal_error"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

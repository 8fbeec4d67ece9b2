"""
Exception hierarchy for the ShelfTrack domain.

Every error carries the HTTP status code the API layer responds with.
"""

from typing import Any, Optional


class ShelfError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ShelfError):
    """Malformed, missing or out-of-range input."""
    status_code = 400


class AuthenticationError(ShelfError):
    """Missing, invalid or expired credentials."""
    status_code = 401


class NotFoundError(ShelfError):
    """Record absent or not owned by the caller."""
    status_code = 404


class ConflictError(ShelfError):
    """Duplicate email or ISBN."""
    status_code = 409


class InternalError(ShelfError):
    """Unexpected failure, e.g. storage unavailable."""
    status_code = 500

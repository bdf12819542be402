"""
Domain errors raised by the service layer.

Each error carries the HTTP status the API should answer with. ``main.py``
installs a handler that renders them as ``{"detail": message, **extra}``.
"""

from typing import Any, Dict, Optional


class BookingError(Exception):
    """Base class for errors the API reports back to the caller."""

    status_code = 400

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class ValidationFailedError(BookingError):
    status_code = 400


class PermissionDeniedError(BookingError):
    status_code = 403


class NotFoundError(BookingError):
    status_code = 404


class ConflictError(BookingError):
    status_code = 409

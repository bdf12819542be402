"""
Error Classification for CleanCare Clients
==========================================

Turns exceptions raised while talking to the API, the database or the device
into ``ErrorDetails``: a stable code, the raw message, a message safe to show
to the user, a suggested action, and whether the operation may be retried.

``get_retry_strategy`` maps a classified error to a bounded retry policy:

    CONNECTION_ERROR, TIMEOUT_ERROR       retry after 5s,  up to 3 times
    FETCH_ERROR, NETWORK_ERROR            retry after 3s,  up to 2 times
    LOCATION_UNAVAILABLE, LOCATION_TIMEOUT retry after 10s, up to 2 times
    VALIDATION_ERROR                      retry at once,   1 time
    any other retryable code              retry after 2s,  1 time
    not retryable                         no retry

Usage:
------
    try:
        response = session.post(url, json=payload, timeout=10)
        response.raise_for_status()
    except requests.RequestException as e:
        details = classify_network_error(e, "create booking")
        strategy = get_retry_strategy(details)
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

import requests
from sqlalchemy.exc import IntegrityError, OperationalError

logger = logging.getLogger(__name__)


# Browser geolocation error codes
LOCATION_PERMISSION_DENIED = 1
LOCATION_POSITION_UNAVAILABLE = 2
LOCATION_TIMEOUT = 3

TABLE_NAME_PATTERN = re.compile(r'relation "([^"]+)" does not exist')


@dataclass
class ErrorDetails:
    code: str
    message: str
    user_message: str
    action: Optional[str] = None
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "userMessage": self.user_message,
            "action": self.action,
            "retryable": self.retryable,
            "details": self.details,
        }


@dataclass(frozen=True)
class RetryStrategy:
    should_retry: bool
    retry_after_ms: int
    max_retries: int

    @property
    def retry_after_seconds(self) -> float:
        return self.retry_after_ms / 1000


def _message(error: Any) -> str:
    if error is None:
        return ""
    return str(getattr(error, "message", None) or error)


def extract_table_name(message: str) -> str:
    match = TABLE_NAME_PATTERN.search(message or "")
    return match.group(1) if match else "unknown"


def _log(error: Any, context: str) -> None:
    logger.warning("Error in %s: %s", context, _message(error) or type(error).__name__)


# =============================================================================
# Database
# =============================================================================

def classify_database_error(error: Any, operation: str) -> ErrorDetails:
    _log(error, f"Database - {operation}")
    message = _message(error)
    lowered = message.lower()

    if isinstance(error, OperationalError) or "connect" in lowered or "network" in lowered:
        return ErrorDetails(
            code="CONNECTION_ERROR",
            message=message,
            user_message="Unable to connect to the database. Please check your internet connection.",
            action="Check your internet connection and try again.",
            retryable=True,
        )

    if "jwt" in lowered or "not authenticated" in lowered or "unauthorized" in lowered:
        return ErrorDetails(
            code="AUTH_ERROR",
            message=message,
            user_message="You need to log in to perform this action.",
            action="Please log in and try again.",
        )

    if "permission denied" in lowered or "access denied" in lowered:
        return ErrorDetails(
            code="PERMISSION_ERROR",
            message=message,
            user_message="You don't have permission to perform this action.",
            action="Contact support if you think this is an error.",
        )

    if ("relation" in lowered and "does not exist" in lowered) or "no such table" in lowered:
        table_name = extract_table_name(message)
        if table_name == "unknown" and "no such table:" in lowered:
            table_name = message.split("no such table:", 1)[1].split()[0]
        return ErrorDetails(
            code="TABLE_NOT_FOUND",
            message=message,
            user_message=f'Database table "{table_name}" is missing. Setup required.',
            action="Please run the database setup script first.",
            details={"tableName": table_name},
        )

    if "foreign key" in lowered:
        return ErrorDetails(
            code="FOREIGN_KEY_ERROR",
            message=message,
            user_message="Referenced record not found.",
            action="Please make sure all related records exist.",
        )

    if (
        "duplicate key" in lowered
        or "already exists" in lowered
        or "unique constraint" in lowered
    ):
        return ErrorDetails(
            code="DUPLICATE_ERROR",
            message=message,
            user_message="This record already exists.",
            action="Please use different values or update the existing record.",
        )

    if "violates check constraint" in lowered or "invalid input" in lowered or isinstance(error, IntegrityError):
        return ErrorDetails(
            code="VALIDATION_ERROR",
            message=message,
            user_message="Invalid data provided.",
            action="Please check your input and try again.",
            retryable=True,
        )

    return ErrorDetails(
        code="DATABASE_ERROR",
        message=message or "Unknown database error",
        user_message="A database error occurred.",
        action="Please try again or contact support.",
        retryable=True,
    )


# =============================================================================
# Network
# =============================================================================

def classify_network_error(error: Any, operation: str) -> ErrorDetails:
    _log(error, f"Network - {operation}")
    message = _message(error)
    lowered = message.lower()

    # The server answered and refused the request; sending it again won't help
    response = getattr(error, "response", None)
    if isinstance(error, requests.HTTPError) and response is not None and 400 <= response.status_code < 500:
        return ErrorDetails(
            code="REQUEST_REJECTED",
            message=message,
            user_message="The server rejected the request.",
            action="Please check the details and try again.",
            details={"status": response.status_code},
        )

    if isinstance(error, requests.Timeout) or "timeout" in lowered or "timed out" in lowered:
        return ErrorDetails(
            code="TIMEOUT_ERROR",
            message=message,
            user_message="The request timed out.",
            action="Please try again with a stable internet connection.",
            retryable=True,
        )

    if "cors" in lowered:
        return ErrorDetails(
            code="CORS_ERROR",
            message=message,
            user_message="Configuration error occurred.",
            action="Please contact support.",
        )

    if isinstance(error, requests.ConnectionError) or "fetch" in lowered:
        return ErrorDetails(
            code="FETCH_ERROR",
            message=message,
            user_message="Failed to connect to the server.",
            action="Please check your internet connection and try again.",
            retryable=True,
        )

    return ErrorDetails(
        code="NETWORK_ERROR",
        message=message or "Network error",
        user_message="Network error occurred.",
        action="Please check your connection and try again.",
        retryable=True,
    )


# =============================================================================
# Form Validation
# =============================================================================

_VALIDATION_MESSAGES = {
    "required": ("{label} is required.", "Please enter a {lower}."),
    "email": ("Please enter a valid email address.", "Example: user@example.com"),
    "phone": ("Please enter a valid phone number.", "Example: +91-9876543210"),
    "min_length": ("{label} is too short.", "Please enter at least the minimum required characters."),
    "max_length": ("{label} is too long.", "Please reduce the number of characters."),
    "numeric": ("{label} must be a number.", "Please enter only numeric values."),
    "positive": ("{label} must be greater than zero.", "Please enter a positive number."),
}


def form_validation_error(field_name: str, value: Any, rule: str) -> ErrorDetails:
    """Describe a failed form rule for ``field_name`` (e.g. "pickup_date", "required")."""
    label = field_name.replace("_", " ").title()
    user_message, action = _VALIDATION_MESSAGES.get(
        rule,
        ("Invalid {lower}.", "Please check your input and try again."),
    )
    return ErrorDetails(
        code="VALIDATION_ERROR",
        message=f"Validation failed for field {field_name}: {rule}",
        user_message=user_message.format(label=label, lower=label.lower()),
        action=action.format(label=label, lower=label.lower()),
        retryable=True,
        details={"field": field_name, "value": value, "rule": rule},
    )


# =============================================================================
# Location
# =============================================================================

def classify_location_error(error: Any) -> ErrorDetails:
    """Classify a geolocation failure; ``error`` is a code or has a ``code``."""
    _log(error, "Location Service")
    code = error if isinstance(error, int) else getattr(error, "code", None)

    if code == LOCATION_PERMISSION_DENIED:
        return ErrorDetails(
            code="LOCATION_PERMISSION_DENIED",
            message="Location access denied",
            user_message="Location access is required for this feature.",
            action="Please enable location permissions in your browser settings.",
        )

    if code == LOCATION_POSITION_UNAVAILABLE:
        return ErrorDetails(
            code="LOCATION_UNAVAILABLE",
            message="Location unavailable",
            user_message="Unable to determine your location.",
            action="Please make sure GPS is enabled and try again.",
            retryable=True,
        )

    if code == LOCATION_TIMEOUT:
        return ErrorDetails(
            code="LOCATION_TIMEOUT",
            message="Location request timed out",
            user_message="Location request took too long.",
            action="Please try again or enter your location manually.",
            retryable=True,
        )

    return ErrorDetails(
        code="LOCATION_ERROR",
        message=("" if isinstance(error, int) else _message(error)) or "Location error",
        user_message="Unable to get your location.",
        action="Please try again or enter your location manually.",
        retryable=True,
    )


# =============================================================================
# File Upload
# =============================================================================

def classify_upload_error(error: Any, filename: Optional[str] = None) -> ErrorDetails:
    _log(error, f"File Upload ({filename or 'unnamed'})")
    message = _message(error)
    lowered = message.lower()

    if "file too large" in lowered or "size" in lowered:
        code, user_message, action = (
            "FILE_TOO_LARGE", "The file is too large.", "Please choose a smaller file (max 5MB).")
    elif "file type" in lowered or "format" in lowered:
        code, user_message, action = (
            "INVALID_FILE_TYPE", "Invalid file type.", "Please upload a valid image or PDF file.")
    elif "storage" in lowered:
        code, user_message, action = (
            "STORAGE_ERROR", "File upload failed.", "Please try uploading again.")
    else:
        code, user_message, action = (
            "UPLOAD_ERROR", "Failed to upload file.", "Please try again with a different file.")

    return ErrorDetails(
        code=code,
        message=message or "Upload failed",
        user_message=user_message,
        action=action,
        retryable=True,
        details={"filename": filename} if filename else {},
    )


# =============================================================================
# Riders
# =============================================================================

def classify_rider_registration_error(error: Any) -> ErrorDetails:
    message = _message(error)
    lowered = message.lower()
    if "duplicate" in lowered and "email" in lowered:
        return ErrorDetails(
            code="EMAIL_EXISTS",
            message=message,
            user_message="An account with this email already exists.",
            action="Please use a different email or try logging in.",
        )
    if "duplicate" in lowered and "phone" in lowered:
        return ErrorDetails(
            code="PHONE_EXISTS",
            message=message,
            user_message="An account with this phone number already exists.",
            action="Please use a different phone number or try logging in.",
        )
    return classify_database_error(error, "Rider Registration")


def classify_rider_status_error(error: Any) -> ErrorDetails:
    message = _message(error)
    lowered = message.lower()
    if "rider" in lowered and "not found" in lowered:
        return ErrorDetails(
            code="RIDER_NOT_FOUND",
            message=message,
            user_message="Rider profile not found.",
            action="Please complete your rider registration first.",
        )
    if "coordinates" in lowered:
        return ErrorDetails(
            code="INVALID_COORDINATES",
            message=message,
            user_message="Invalid location coordinates.",
            action="Please try detecting your location again.",
            retryable=True,
        )
    return classify_database_error(error, "Rider Status")


# =============================================================================
# Generic
# =============================================================================

def classify_error(error: Any, operation: str) -> ErrorDetails:
    """Route an arbitrary exception to the best matching classifier."""
    if isinstance(error, requests.RequestException):
        return classify_network_error(error, operation)
    if isinstance(error, (IntegrityError, OperationalError)):
        return classify_database_error(error, operation)

    message = _message(error)
    lowered = message.lower()
    if "network" in lowered or "fetch" in lowered:
        return classify_network_error(error, operation)
    if "database" in lowered or "relation" in lowered:
        return classify_database_error(error, operation)

    _log(error, operation)
    return ErrorDetails(
        code="UNKNOWN_ERROR",
        message=message or "Unknown error occurred",
        user_message="An unexpected error occurred.",
        action="Please try again or contact support if the problem persists.",
        retryable=True,
        details={"operation": operation, "error": repr(error)},
    )


_RETRY_STRATEGIES = {
    "CONNECTION_ERROR": RetryStrategy(True, 5000, 3),
    "TIMEOUT_ERROR": RetryStrategy(True, 5000, 3),
    "FETCH_ERROR": RetryStrategy(True, 3000, 2),
    "NETWORK_ERROR": RetryStrategy(True, 3000, 2),
    "LOCATION_UNAVAILABLE": RetryStrategy(True, 10000, 2),
    "LOCATION_TIMEOUT": RetryStrategy(True, 10000, 2),
    "VALIDATION_ERROR": RetryStrategy(True, 0, 1),
}
_DEFAULT_STRATEGY = RetryStrategy(True, 2000, 1)
NO_RETRY = RetryStrategy(False, 0, 0)


def get_retry_strategy(details: ErrorDetails) -> RetryStrategy:
    if not details.retryable:
        return NO_RETRY
    return _RETRY_STRATEGIES.get(details.code, _DEFAULT_STRATEGY)


def user_notification(error: Any, operation: str) -> dict[str, Any]:
    """Title/message pair for surfacing ``error`` to a user."""
    details = classify_error(error, operation)
    return {
        "title": details.code.replace("_", " ").title(),
        "message": f"{details.user_message} {details.action or ''}".strip(),
        "type": "warning" if details.retryable else "error",
        "duration": 5000 if details.retryable else 8000,
    }

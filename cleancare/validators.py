"""
Input Validation Functions.

This module contains validation functions for user-provided data such as
phone numbers, email addresses, pincodes and coordinates.
"""

import re
import logging
from typing import Optional

import phonenumbers
from phonenumbers.phonenumberutil import NumberParseException
from email_validator import validate_email, EmailNotValidError

logger = logging.getLogger(__name__)

INDIAN_MOBILE_PATTERN = re.compile(r"^[6-9]\d{9}$")
PINCODE_PATTERN = re.compile(r"^\d{6}$")


def clean_phone(phone: Optional[str]) -> str:
    """Strip everything but digits from a phone number."""
    if not phone:
        return ""
    return re.sub(r"\D", "", str(phone))


def normalize_indian_mobile(phone: Optional[str]) -> tuple[str | None, str | None]:
    """
    Validate an Indian mobile number and reduce it to its 10 national digits.

    Accepts "9876543210", "+91 98765 43210", "91-9876543210" and similar.

    Returns:
        Tuple of (ten_digit_phone, error_message).
        - If valid: ("9876543210", None)
        - If invalid: (None, error_message)
    """
    digits = clean_phone(phone)
    if not digits:
        return (None, "Phone number is required")

    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    elif len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]

    if not INDIAN_MOBILE_PATTERN.match(digits):
        return (None, "Invalid phone")

    try:
        parsed = phonenumbers.parse(digits, "IN")
    except NumberParseException as e:
        logger.warning("Phone parse failed for %s: %s", digits, e)
        return (None, "Invalid phone")

    if not phonenumbers.is_possible_number(parsed):
        return (None, "Invalid phone")

    return (digits, None)


def to_e164(phone: str) -> str:
    """Format a 10-digit Indian mobile number as E.164 (+91XXXXXXXXXX)."""
    parsed = phonenumbers.parse(clean_phone(phone), "IN")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def validate_email_address(email: Optional[str]) -> tuple[str | None, str | None]:
    """
    Validate an email address using the email-validator library.

    Only syntax is checked; deliverability (DNS/MX) is not.

    Returns:
        Tuple of (normalized_lowercase_email, error_message).
    """
    if not email:
        return (None, "Email is required")

    try:
        result = validate_email(email.strip(), check_deliverability=False)
        return (result.normalized.lower(), None)
    except EmailNotValidError as e:
        logger.debug("Email validation failed: %s - %s", email, e)
        return (None, "Please enter a valid email address")


def is_valid_pincode(pincode: Optional[str]) -> bool:
    """Indian postal codes are exactly six digits."""
    return bool(pincode) and bool(PINCODE_PATTERN.match(pincode.strip()))


def parse_coordinates(lat, lng) -> tuple[float, float] | None:
    """
    Parse a latitude/longitude pair.

    Returns None when either value is not a finite number. Range checks are
    left to the caller because the error message differs per endpoint.
    """
    try:
        latitude = float(lat)
        longitude = float(lng)
    except (TypeError, ValueError):
        return None

    # NaN never equals itself
    if latitude != latitude or longitude != longitude:
        return None
    if latitude in (float("inf"), float("-inf")) or longitude in (float("inf"), float("-inf")):
        return None

    return (latitude, longitude)


def coordinates_in_range(lat: float, lng: float) -> bool:
    return -90 <= lat <= 90 and -180 <= lng <= 180

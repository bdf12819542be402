"""
Tests for input validation helpers.
"""

import math

import pytest

from cleancare.validators import (
    clean_phone,
    coordinates_in_range,
    is_valid_pincode,
    normalize_indian_mobile,
    parse_coordinates,
    to_e164,
    validate_email_address,
)


class TestNormalizeIndianMobile:

    @pytest.mark.parametrize("raw", [
        "9876543210",
        "+91 98765 43210",
        "91-9876543210",
        "09876543210",
        "(987) 654-3210",
    ])
    def test_valid_spellings(self, raw):
        assert normalize_indian_mobile(raw) == ("9876543210", None)

    def test_missing(self):
        assert normalize_indian_mobile("") == (None, "Phone number is required")
        assert normalize_indian_mobile(None) == (None, "Phone number is required")

    def test_must_start_with_6_to_9(self):
        phone, error = normalize_indian_mobile("5876543210")
        assert phone is None
        assert error == "Invalid phone"

    def test_too_short(self):
        phone, error = normalize_indian_mobile("98765")
        assert phone is None
        assert error == "Invalid phone"


def test_clean_phone_strips_non_digits():
    assert clean_phone("+91 (987) 654-3210") == "919876543210"
    assert clean_phone(None) == ""


def test_to_e164():
    assert to_e164("9876543210") == "+919876543210"


class TestEmail:

    def test_valid_email_is_lowercased(self):
        email, error = validate_email_address("Asha.Rao@Example.com")
        assert error is None
        assert email == "asha.rao@example.com"

    def test_invalid_email(self):
        email, error = validate_email_address("not-an-email")
        assert email is None
        assert error == "Please enter a valid email address"

    def test_missing_email(self):
        assert validate_email_address("") == (None, "Email is required")


class TestPincode:

    def test_six_digits(self):
        assert is_valid_pincode("560001")

    @pytest.mark.parametrize("value", ["56000", "5600011", "56000a", "", None])
    def test_invalid(self, value):
        assert not is_valid_pincode(value)


class TestCoordinates:

    def test_parses_strings(self):
        assert parse_coordinates("12.97", "77.59") == (12.97, 77.59)

    @pytest.mark.parametrize("lat,lng", [
        ("abc", "77.59"),
        (None, 77.59),
        ("nan", "77.59"),
        ("12.97", "inf"),
    ])
    def test_rejects_non_numbers(self, lat, lng):
        assert parse_coordinates(lat, lng) is None

    def test_range(self):
        assert coordinates_in_range(90, 180)
        assert coordinates_in_range(-90, -180)
        assert not coordinates_in_range(91, 0)
        assert not coordinates_in_range(0, -181)

    def test_nan_is_not_in_range(self):
        assert not coordinates_in_range(math.nan, 0)

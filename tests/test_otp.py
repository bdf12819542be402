"""
Tests for the in-memory OTP store.
"""

import pytest

from cleancare import config
from cleancare.otp import (
    OTPManager,
    VERIFY_EXPIRED,
    VERIFY_INVALID,
    VERIFY_OK,
    VERIFY_TOO_MANY_ATTEMPTS,
    generate_otp,
)

PHONE = "9876543210"


class FakeClock:
    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    return OTPManager(clock=clock)


def test_generate_otp_is_six_digits():
    for _ in range(50):
        code = generate_otp()
        assert len(code) == 6
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999


def test_correct_code_verifies_once(manager):
    manager.store(PHONE, "123456")
    assert manager.verify(PHONE, "123456") == VERIFY_OK
    # Consumed
    assert manager.verify(PHONE, "123456") == VERIFY_EXPIRED


def test_unknown_phone_is_expired(manager):
    assert manager.verify(PHONE, "123456") == VERIFY_EXPIRED


def test_code_expires(manager, clock):
    manager.store(PHONE, "123456")
    clock.advance(config.OTP_EXPIRY_MINUTES * 60 + 1)
    assert manager.verify(PHONE, "123456") == VERIFY_EXPIRED


def test_code_valid_until_expiry(manager, clock):
    manager.store(PHONE, "123456")
    clock.advance(config.OTP_EXPIRY_MINUTES * 60 - 1)
    assert manager.verify(PHONE, "123456") == VERIFY_OK


def test_wrong_codes_lock_after_max_attempts(manager):
    manager.store(PHONE, "123456")
    for _ in range(config.OTP_MAX_ATTEMPTS):
        assert manager.verify(PHONE, "000000") == VERIFY_INVALID
    # Even the right code is refused now
    assert manager.verify(PHONE, "123456") == VERIFY_TOO_MANY_ATTEMPTS


def test_code_is_compared_after_strip(manager):
    manager.store(PHONE, "123456")
    assert manager.verify(PHONE, " 123456 ") == VERIFY_OK


def test_resend_cooldown(manager, clock):
    assert manager.can_request(PHONE)
    manager.record_request(PHONE)
    assert not manager.can_request(PHONE)
    clock.advance(config.OTP_RESEND_SECONDS)
    assert not manager.can_request(PHONE)
    clock.advance(1)
    assert manager.can_request(PHONE)


def test_successful_verify_clears_cooldown(manager):
    manager.record_request(PHONE)
    manager.store(PHONE, "123456")
    assert manager.verify(PHONE, "123456") == VERIFY_OK
    assert manager.can_request(PHONE)


def test_cleanup_removes_expired_codes(manager, clock):
    manager.store(PHONE, "123456")
    manager.store("9123456780", "654321", minutes=60)
    clock.advance(config.OTP_EXPIRY_MINUTES * 60 + 1)
    assert manager.cleanup() == 1
    assert manager.get(PHONE) is None
    assert manager.get("9123456780") is not None


def test_new_code_replaces_old(manager):
    manager.store(PHONE, "111111")
    manager.store(PHONE, "222222")
    assert manager.verify(PHONE, "111111") == VERIFY_INVALID
    assert manager.verify(PHONE, "222222") == VERIFY_OK


def test_non_ascii_code_counts_as_wrong(manager):
    manager.store(PHONE, "123456")
    assert manager.verify(PHONE, "12345é") == VERIFY_INVALID
    assert manager.get(PHONE).attempts == 1
    assert manager.verify(PHONE, "123456") == VERIFY_OK


def test_check_reports_state_without_consuming(manager, clock):
    assert manager.check(PHONE) == VERIFY_EXPIRED
    manager.store(PHONE, "123456")
    assert manager.check(PHONE) is None
    assert manager.get(PHONE).attempts == 0

    for _ in range(config.OTP_MAX_ATTEMPTS):
        manager.verify(PHONE, "000000")
    assert manager.check(PHONE) == VERIFY_TOO_MANY_ATTEMPTS

    manager.store(PHONE, "123456")
    clock.advance(config.OTP_EXPIRY_MINUTES * 60 + 1)
    assert manager.check(PHONE) == VERIFY_EXPIRED

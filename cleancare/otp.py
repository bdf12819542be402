"""
One-Time Password Management
============================

In-memory store for phone login codes. Each phone has at most one live code
with an expiry time and a count of failed verification attempts. A separate
table of request timestamps enforces the resend cooldown.

Thread Safety:
--------------
All operations take ``_lock``; FastAPI runs sync handlers in a threadpool.

Lifecycle:
----------
1. ``can_request`` / ``record_request`` gate how often a phone may ask for a code
2. ``store`` saves a fresh code (replacing any previous one)
3. ``verify`` checks a submitted code, counting failures
4. A successful verification deletes the code and the cooldown entry

Expired codes and stale request timestamps are purged by ``cleanup``, which
runs opportunistically whenever a code is stored.

For multi-worker deployments the store must move to a shared backend
(e.g. Redis); a per-process dict only works with a single worker.
"""

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from . import config

logger = logging.getLogger(__name__)


VERIFY_OK = "ok"
VERIFY_EXPIRED = "expired"
VERIFY_TOO_MANY_ATTEMPTS = "too_many_attempts"
VERIFY_INVALID = "invalid"


@dataclass
class OTPEntry:
    code: str
    expires_at: float
    attempts: int = 0


def generate_otp() -> str:
    """Return a random six-digit code (100000-999999)."""
    return str(100000 + secrets.randbelow(900000))


class OTPManager:
    """Per-process OTP store with resend cooldown and attempt budget."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._codes: Dict[str, OTPEntry] = {}
        self._last_request: Dict[str, float] = {}
        self._lock = threading.Lock()

    def cleanup(self) -> int:
        """Drop expired codes and stale request timestamps. Returns codes removed."""
        now = self._clock()
        with self._lock:
            expired = [phone for phone, entry in self._codes.items() if now > entry.expires_at]
            for phone in expired:
                del self._codes[phone]

            stale = [
                phone for phone, ts in self._last_request.items()
                if now - ts > config.OTP_REQUEST_HISTORY_SECONDS
            ]
            for phone in stale:
                del self._last_request[phone]

        if expired:
            logger.debug("Purged %d expired OTPs", len(expired))
        return len(expired)

    def can_request(self, phone: str) -> bool:
        with self._lock:
            last = self._last_request.get(phone)
        if last is None:
            return True
        return self._clock() - last > config.OTP_RESEND_SECONDS

    def record_request(self, phone: str) -> None:
        with self._lock:
            self._last_request[phone] = self._clock()

    def store(self, phone: str, code: str, minutes: Optional[int] = None) -> OTPEntry:
        self.cleanup()
        minutes = config.OTP_EXPIRY_MINUTES if minutes is None else minutes
        entry = OTPEntry(code=code, expires_at=self._clock() + minutes * 60)
        with self._lock:
            self._codes[phone] = entry
        return entry

    def get(self, phone: str) -> Optional[OTPEntry]:
        with self._lock:
            return self._codes.get(phone)

    def delete(self, phone: str) -> None:
        with self._lock:
            self._codes.pop(phone, None)
            self._last_request.pop(phone, None)

    def _entry_state(self, phone: str, now: float) -> Optional[str]:
        entry = self._codes.get(phone)
        if entry is None or now > entry.expires_at:
            return VERIFY_EXPIRED
        if entry.attempts >= config.OTP_MAX_ATTEMPTS:
            return VERIFY_TOO_MANY_ATTEMPTS
        return None

    def check(self, phone: str) -> Optional[str]:
        """Return the failure ``verify`` would report before comparing codes, or None."""
        now = self._clock()
        with self._lock:
            return self._entry_state(phone, now)

    def verify(self, phone: str, code: str) -> str:
        """
        Check ``code`` for ``phone``.

        Returns one of VERIFY_OK, VERIFY_EXPIRED, VERIFY_TOO_MANY_ATTEMPTS,
        VERIFY_INVALID. A wrong code consumes one attempt; a correct code
        clears the entry and the resend cooldown.
        """
        now = self._clock()
        with self._lock:
            state = self._entry_state(phone, now)
            if state is not None:
                return state
            entry = self._codes[phone]
            # compare_digest rejects non-ASCII str, so compare bytes
            submitted = str(code).strip().encode("utf-8")
            if not secrets.compare_digest(entry.code.encode("utf-8"), submitted):
                entry.attempts += 1
                return VERIFY_INVALID

            del self._codes[phone]
            self._last_request.pop(phone, None)
            return VERIFY_OK

    def clear(self) -> None:
        with self._lock:
            self._codes.clear()
            self._last_request.clear()


otp_manager = OTPManager()

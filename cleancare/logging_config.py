"""
Logging configuration for the CleanCare API.

Every record carries ``request_id``: the X-Request-ID that RequestIDMiddleware
binds for the request being served, or ``-`` outside a request. Lines written
by the service handler show Indian mobile numbers masked to their last four
digits, so OTP and login logs can be shared without the full number.

Usage:
    from cleancare.logging_config import setup_logging
    setup_logging()  # Call once at application startup

Environment variables:
    LOG_LEVEL: Set to DEBUG, INFO, WARNING, ERROR, or CRITICAL (default: INFO)
"""
import logging
import os
import re
import sys
from contextvars import ContextVar, Token

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
HANDLER_NAME = "cleancare"

NO_REQUEST = "-"
request_id_var: ContextVar[str] = ContextVar("request_id", default=NO_REQUEST)

# 10-digit mobile (6-9 prefix), optionally with a 91 / +91 country code
_PHONE_RE = re.compile(r"(?<![A-Za-z0-9])(\+?91)?[6-9]\d{5}(\d{4})(?!\d)")

_base_factory = logging.getLogRecordFactory()


def bind_request_id(request_id: str) -> Token:
    return request_id_var.set(request_id)


def reset_request_id(token: Token) -> None:
    request_id_var.reset(token)


def mask_phone_numbers(text: str) -> str:
    """'OTP sent to 9876543210' -> 'OTP sent to ******3210'."""
    return _PHONE_RE.sub(lambda m: f"{m.group(1) or ''}******{m.group(2)}", text)


def _record_factory(*args, **kwargs) -> logging.LogRecord:
    record = _base_factory(*args, **kwargs)
    record.request_id = request_id_var.get()
    return record


class ServiceFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = NO_REQUEST
        return mask_phone_numbers(super().format(record))


def setup_logging(level: str = None) -> None:
    """
    Configure logging for the application.

    Safe to call more than once: the service handler is replaced, not stacked.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               If not provided, reads from LOG_LEVEL env var, defaults to INFO.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    level = level.upper()

    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if level not in valid_levels:
        level = "INFO"

    numeric_level = getattr(logging, level)

    if logging.getLogRecordFactory() is not _record_factory:
        logging.setLogRecordFactory(_record_factory)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(ServiceFormatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric_level)

    logging.getLogger("cleancare").setLevel(numeric_level)

    # Reduce noise from third-party libraries in non-debug mode
    if level != "DEBUG":
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("twilio").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.debug("Logging configured at %s level", level)

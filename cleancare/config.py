"""
Configuration Module for CleanCare
==================================

This module centralizes the configuration settings, environment variables, and
constants used throughout the CleanCare booking service. Values are read once
at import time; tests override them by assigning to the module attributes.

Configuration Categories:
-------------------------
- **Authentication**: JWT signing secret and lifetime for phone-OTP logins,
  plus HTTP Basic credentials for admin-only endpoints.

- **OTP**: Code lifetime, resend cooldown and verification attempt budget.

- **SMS Gateways**: DVHosting and Twilio credentials. With neither configured
  the service runs in mock mode and only logs outgoing codes at DEBUG.

- **Rate Limiting**: slowapi limits for the OTP endpoint.

- **Pricing**: Fixed delivery charge and the coupon table used by the cart.

- **Geography**: Nominatim settings, rider search radius, and the bounding
  box used for service-area checks.

- **CORS Settings**: Allowed frontend origins.

Environment Variables:
----------------------
- DATABASE_URL: SQLAlchemy connection URL (required, see db.py)
- JWT_SECRET: Secret used to sign user tokens
- JWT_EXPIRES_DAYS: Token lifetime in days (default: 30)
- OTP_EXPIRY_MINUTES / OTP_RESEND_SECONDS / OTP_MAX_ATTEMPTS
- DVHOSTING_API_KEY: DVHosting SMS gateway key
- TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN / TWILIO_PHONE_NUMBER
- RATE_LIMIT_OTP: OTP endpoint limit (default: "5 per minute")
- RATE_LIMIT_ENABLED: Enable/disable rate limiting (default: "true")
- ALLOWED_ORIGINS: Extra comma-separated CORS origins
- ADMIN_USERNAME / ADMIN_PASSWORD: Admin HTTP Basic credentials
- DELIVERY_CHARGE: Flat delivery charge per booking (default: 50)
- CATALOG_CACHE_SECONDS: Service catalog cache TTL (default: 300)
- DEBUG: Include exception text in 500 responses (default: "false")
"""

import os
from typing import Dict, List


# =============================================================================
# Authentication
# =============================================================================

JWT_SECRET: str = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM: str = "HS256"
JWT_EXPIRES_DAYS: int = int(os.getenv("JWT_EXPIRES_DAYS", "30"))

ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "")


# =============================================================================
# OTP Configuration
# =============================================================================

OTP_EXPIRY_MINUTES: int = int(os.getenv("OTP_EXPIRY_MINUTES", "5"))
OTP_RESEND_SECONDS: int = int(os.getenv("OTP_RESEND_SECONDS", "30"))
OTP_MAX_ATTEMPTS: int = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))

# Request timestamps older than this are dropped during cleanup
OTP_REQUEST_HISTORY_SECONDS: int = 5 * 60


# =============================================================================
# SMS Gateways
# =============================================================================

DVHOSTING_API_KEY: str = os.getenv("DVHOSTING_API_KEY", "")
DVHOSTING_URL: str = "https://dvhosting.in/api-sms-v4.php"

TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_PHONE_NUMBER: str = os.getenv("TWILIO_PHONE_NUMBER", "")

SMS_TIMEOUT_SECONDS: int = 10


# =============================================================================
# Rate Limiting Configuration
# =============================================================================

RATE_LIMIT_OTP: str = os.getenv("RATE_LIMIT_OTP", "5 per minute")
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"


def get_rate_limit_otp() -> str:
    """Return the current OTP rate limit (allows dynamic override in tests)."""
    return RATE_LIMIT_OTP


# =============================================================================
# Pricing
# =============================================================================

DELIVERY_CHARGE: float = float(os.getenv("DELIVERY_CHARGE", "50"))

# Coupon code -> percentage discount on the cart subtotal
COUPONS: Dict[str, Dict[str, object]] = {
    "FIRST10": {"discount": 10, "description": "10% off on first order"},
    "SAVE20": {"discount": 20, "description": "20% off"},
    "WELCOME5": {"discount": 5, "description": "5% welcome discount"},
}

DEFAULT_ESTIMATED_DURATION_MINUTES: int = 60


# =============================================================================
# Catalog
# =============================================================================

CATALOG_CACHE_SECONDS: int = int(os.getenv("CATALOG_CACHE_SECONDS", "300"))


# =============================================================================
# Geography
# =============================================================================

NOMINATIM_BASE_URL: str = os.getenv("NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org")
NOMINATIM_USER_AGENT: str = "CleanCare-Pro/1.0"
NOMINATIM_TIMEOUT_SECONDS: int = 10
SEARCH_COUNTRY_CODES: str = "in"

RIDER_SEARCH_RADIUS_KM: float = float(os.getenv("RIDER_SEARCH_RADIUS_KM", "10"))

# (min_lat, max_lat, min_lng, max_lng)
SERVICE_BOUNDS = (6.0, 37.0, 68.0, 97.0)


# =============================================================================
# CORS Configuration
# =============================================================================

DEFAULT_CORS_ORIGINS: List[str] = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://localhost:8080",
    "https://cleancare-pro-api.onrender.com",
    "https://cleancare-pro-frontend.onrender.com",
]

_extra_origins_env = os.getenv("ALLOWED_ORIGINS", "")
CORS_ORIGINS: List[str] = DEFAULT_CORS_ORIGINS + [
    origin.strip()
    for origin in _extra_origins_env.split(",")
    if origin.strip()
]


# =============================================================================
# Misc
# =============================================================================

DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

SERVICE_NAME: str = "CleanCare Pro API"

"""
Authentication Module for CleanCare
===================================

Two authentication schemes protect the API:

1. **Bearer tokens (customers and riders)**: Issued by ``POST /api/auth/verify-otp``
   after a successful phone OTP check. Tokens are HS256 JWTs signed with
   JWT_SECRET, carry the user's primary key in ``sub`` and expire after
   JWT_EXPIRES_DAYS days.

2. **HTTP Basic Auth (admin)**: Used for catalog maintenance, rider review and
   the all-bookings report. Credentials come from ADMIN_USERNAME and
   ADMIN_PASSWORD and are compared in constant time.

Usage:
------
    from cleancare.auth import get_current_user, verify_admin_credentials

    @router.get("/addresses")
    def list_addresses(user: User = Depends(get_current_user)):
        ...

    @router.post("/services/refresh")
    def refresh(_admin: str = Depends(verify_admin_credentials)):
        ...

Failure Modes:
--------------
- Missing or malformed bearer token -> 401
- Expired token, bad signature, or unknown user -> 401
- ADMIN_PASSWORD not configured -> 503 (admin endpoints fail closed)
- Wrong admin credentials -> 401 with WWW-Authenticate header
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import (
    HTTPBasic,
    HTTPBasicCredentials,
    HTTPBearer,
    HTTPAuthorizationCredentials,
)
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from . import config
from .db import get_db
from .models import User

logger = logging.getLogger(__name__)


# =============================================================================
# Security Schemes
# =============================================================================

security = HTTPBasic(realm="CleanCare Admin")
bearer_scheme = HTTPBearer(auto_error=False)


# =============================================================================
# User Tokens
# =============================================================================

def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT for ``user_id``."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=config.JWT_EXPIRES_DAYS))
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token payload, or None when the token is invalid or expired."""
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError as e:
        logger.debug("Rejected access token: %s", e)
        return None


def token_lifetime_seconds() -> int:
    return config.JWT_EXPIRES_DAYS * 24 * 60 * 60


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """FastAPI dependency resolving the bearer token to a User."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)
    if not payload or not str(payload.get("sub", "")).isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


# =============================================================================
# Admin Authentication Dependency
# =============================================================================

def verify_admin_credentials(
    credentials: HTTPBasicCredentials = Depends(security),
) -> str:
    """
    Verify HTTP Basic Auth credentials for admin endpoints.

    Returns:
        str: The authenticated username if credentials are valid.

    Raises:
        HTTPException (503): If ADMIN_PASSWORD is not set.
        HTTPException (401): If credentials are invalid.
    """
    # Fail closed: if password not configured, deny all access
    if not config.ADMIN_PASSWORD:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin authentication not configured. Set ADMIN_PASSWORD environment variable.",
        )

    username_correct = secrets.compare_digest(
        credentials.username.encode("utf-8"),
        config.ADMIN_USERNAME.encode("utf-8"),
    )
    password_correct = secrets.compare_digest(
        credentials.password.encode("utf-8"),
        config.ADMIN_PASSWORD.encode("utf-8"),
    )

    if not (username_correct and password_correct):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username

"""
Authentication Routes for CleanCare
===================================

Phone-number login with one-time passwords, plus the user persistence
endpoints the web client calls after login.

Endpoints:
----------
- POST /auth/send-otp: Send a 6-digit code by SMS (rate limited)
- POST /auth/verify-otp: Check the code, create/verify the user, issue a token
- POST /auth/save-user: Create or update a user by phone
- POST /auth/register: Same as save-user (older clients)
- POST /auth/get-user-by-phone: Fetch a user and stamp last_login
- GET /auth/me: The user behind the bearer token
- POST /auth/logout: Ask the browser to drop cached data
- GET /auth/health: Liveness check for the auth service

OTP Rules:
----------
- Codes expire after OTP_EXPIRY_MINUTES (5)
- A phone may request a new code only every OTP_RESEND_SECONDS (30) -> 429
- OTP_MAX_ATTEMPTS (3) wrong guesses lock the code -> "Too many attempts"
- A new phone number must send ``name`` with the code -> "Name required"

Rate Limiting:
--------------
``send-otp`` is additionally limited per client IP by slowapi
(RATE_LIMIT_OTP, default "5 per minute").

Caching:
--------
OTP and logout responses carry no-cache headers so mobile Safari does not
replay them.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from .. import config, sms
from ..auth import create_access_token, get_current_user, token_lifetime_seconds
from ..db import get_db
from ..models import User
from ..otp import (
    VERIFY_EXPIRED,
    VERIFY_INVALID,
    VERIFY_TOO_MANY_ATTEMPTS,
    generate_otp,
    otp_manager,
)
from ..schemas.auth import (
    PhoneRequest,
    SaveUserRequest,
    SendOTPRequest,
    UserOut,
    VerifyOTPRequest,
)
from ..services import users
from ..validators import clean_phone, normalize_indian_mobile, validate_email_address


logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["Auth"])

limiter = Limiter(key_func=get_remote_address, enabled=config.RATE_LIMIT_ENABLED)

VERIFY_ERRORS = {
    VERIFY_EXPIRED: "OTP expired or not found",
    VERIFY_TOO_MANY_ATTEMPTS: "Too many attempts",
    VERIFY_INVALID: "Invalid OTP",
}


def _no_cache(response: Response) -> None:
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"


def _require(payload, *fields: str) -> None:
    missing = [name for name in fields if not getattr(payload, name)]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing: {', '.join(missing)}")


def _user_phone(raw: str, message: str = "Invalid phone number") -> str:
    phone, error = normalize_indian_mobile(raw)
    if error:
        raise HTTPException(status_code=400, detail=message)
    return phone


# =============================================================================
# OTP Endpoints
# =============================================================================

@auth_router.post("/send-otp")
@limiter.limit(config.get_rate_limit_otp)
def send_otp(request: Request, response: Response, payload: SendOTPRequest):
    """Generate a login code for ``phone`` and deliver it by SMS."""
    _require(payload, "phone")
    phone = _user_phone(payload.phone, "Invalid phone")
    logger.info("OTP requested for %s", phone)

    if not otp_manager.can_request(phone):
        raise HTTPException(
            status_code=429,
            detail=f"Please wait {config.OTP_RESEND_SECONDS} seconds before requesting another OTP",
        )
    otp_manager.record_request(phone)

    code = generate_otp()
    otp_manager.store(phone, code)

    result = sms.send_otp_sms(phone, code)
    if not result["success"]:
        raise HTTPException(status_code=500, detail=result.get("error") or "Failed to send OTP")

    _no_cache(response)
    return {
        "success": True,
        "message": "OTP sent successfully",
        "data": {"phone": phone, "expiresIn": config.OTP_EXPIRY_MINUTES * 60},
    }


@auth_router.post("/verify-otp")
def verify_otp(payload: VerifyOTPRequest, db: Session = Depends(get_db)):
    """
    Check a login code.

    New phone numbers must include ``name``; the code is left in place when
    it is missing so the client can retry with a name.
    """
    _require(payload, "phone", "otp")
    phone, _error = normalize_indian_mobile(payload.phone)
    phone = phone or clean_phone(payload.phone)
    name = (payload.name or "").strip() or None

    stale = otp_manager.check(phone)
    if stale is not None:
        logger.info("OTP verification for %s failed: %s", phone, stale)
        raise HTTPException(status_code=400, detail=VERIFY_ERRORS[stale])

    if not name and users.get_by_phone(db, phone) is None:
        raise HTTPException(status_code=400, detail="Name required")

    outcome = otp_manager.verify(phone, payload.otp)
    if outcome in VERIFY_ERRORS:
        logger.info("OTP verification for %s failed: %s", phone, outcome)
        raise HTTPException(status_code=400, detail=VERIFY_ERRORS[outcome])

    user = users.verify_phone_login(db, phone, name)
    if user is None:
        raise HTTPException(status_code=400, detail="Name required")

    logger.info("User %s verified", user.customer_id)
    return {
        "success": True,
        "message": "Verified",
        "data": {
            "user": UserOut.model_validate(user),
            "token": create_access_token(user.id),
            "expiresIn": token_lifetime_seconds(),
        },
    }


# =============================================================================
# User Persistence
# =============================================================================

def _save_user(payload: SaveUserRequest, db: Session) -> User:
    if not payload.phone:
        raise HTTPException(status_code=400, detail="Phone number is required")
    phone = _user_phone(payload.phone)

    email = None
    if payload.email:
        email, error = validate_email_address(payload.email)
        if error:
            raise HTTPException(status_code=400, detail=error)

    return users.upsert_user(
        db,
        phone,
        name=(payload.full_name or payload.name or "").strip() or None,
        email=email,
        user_type=payload.user_type,
        is_verified=payload.is_verified,
        phone_verified=payload.phone_verified,
        preferences=payload.preferences,
    )


@auth_router.post("/save-user")
def save_user(payload: SaveUserRequest, db: Session = Depends(get_db)):
    user = _save_user(payload, db)
    logger.info("User saved/updated: %s", user.phone)
    return {"success": True, "message": "User saved successfully", "user": UserOut.model_validate(user)}


@auth_router.post("/register")
def register(payload: SaveUserRequest, db: Session = Depends(get_db)):
    user = _save_user(payload, db)
    logger.info("User registered/updated: %s", user.phone)
    return {"success": True, "message": "User registered successfully", "user": UserOut.model_validate(user)}


@auth_router.post("/get-user-by-phone")
def get_user_by_phone(payload: PhoneRequest, db: Session = Depends(get_db)):
    if not payload.phone:
        raise HTTPException(status_code=400, detail="Phone number is required")

    phone, _error = normalize_indian_mobile(payload.phone)
    user = users.get_by_phone(db, phone or clean_phone(payload.phone))
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    users.touch_login(db, user)
    return {"success": True, "user": UserOut.model_validate(user)}


@auth_router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"success": True, "user": UserOut.model_validate(user)}


# =============================================================================
# Session
# =============================================================================

@auth_router.post("/logout")
def logout(response: Response):
    response.headers["Clear-Site-Data"] = '"cookies", "storage"'
    _no_cache(response)
    return {
        "success": True,
        "message": "Logged out successfully",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@auth_router.get("/health")
def auth_health():
    return {
        "success": True,
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

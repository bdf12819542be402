"""
Authentication Schemas for CleanCare
====================================

Request and response models for the phone-OTP login flow and the user
persistence endpoints under ``/api/auth``.

Flow:
-----
1. POST /api/auth/send-otp    {phone}
2. POST /api/auth/verify-otp  {phone, otp, name?} -> {user, token, expiresIn}
3. GET  /api/auth/me          (Authorization: Bearer <token>)
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class SendOTPRequest(BaseModel):
    phone: Optional[str] = None


class VerifyOTPRequest(BaseModel):
    phone: Optional[str] = None
    otp: Optional[str] = None
    name: Optional[str] = None


class SaveUserRequest(BaseModel):
    """Body of /save-user and /register. ``full_name`` wins over ``name``."""
    phone: Optional[str] = None
    full_name: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    user_type: str = "customer"
    is_verified: bool = True
    phone_verified: bool = True
    preferences: Dict[str, Any] = {}


class PhoneRequest(BaseModel):
    phone: Optional[str] = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: str
    phone: str
    name: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    user_type: str
    is_verified: bool
    phone_verified: bool
    email_verified: bool
    profile_image: str = ""
    preferences: Dict[str, Any] = {}
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

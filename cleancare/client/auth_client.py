"""
Adaptive Auth Client
====================

Phone OTP login through the CleanCare API. A verified user is cached in the
LocalStore under ``user_<phone>`` together with ``auth_token``, so
``current_user()`` still answers when the backend is unreachable.
``save_user`` / ``update_user`` write profile changes through
``/auth/save-user`` and keep the cached copy when offline.
"""

import logging
from typing import Any, Dict, Optional

from .api_client import ApiClient
from .local_store import LocalStore

logger = logging.getLogger(__name__)

TOKEN_KEY = "auth_token"
CURRENT_PHONE_KEY = "current_user_phone"


def user_key(phone: str) -> str:
    return f"user_{phone}"


class AdaptiveAuthClient:
    def __init__(self, api: ApiClient, store: LocalStore):
        self.api = api
        self.store = store
        token = store.get(TOKEN_KEY)
        if token:
            self.api.token = token

    def send_otp(self, phone: str) -> Dict[str, Any]:
        result = self.api.post("/auth/send-otp", json={"phone": phone})
        if not result.success:
            return {"success": False, "error": result.error}
        return {"success": True, "message": result.data.get("message"), "data": result.data.get("data")}

    def verify_otp(self, phone: str, otp: str, name: Optional[str] = None) -> Dict[str, Any]:
        body = {"phone": phone, "otp": otp}
        if name:
            body["name"] = name
        result = self.api.post("/auth/verify-otp", json=body)
        if not result.success:
            return {"success": False, "error": result.error}

        data = result.data.get("data") or {}
        user = data.get("user") or {}
        token = data.get("token")
        stored_phone = user.get("phone") or phone

        self.store.set(user_key(stored_phone), user)
        self.store.set(CURRENT_PHONE_KEY, stored_phone)
        if token:
            self.store.set(TOKEN_KEY, token)
            self.api.token = token
        logger.info("Signed in as %s", user.get("customer_id"))
        return {"success": True, "user": user, "token": token}

    def current_user(self) -> Optional[Dict[str, Any]]:
        """The signed-in user; the cached copy when the server cannot be reached."""
        phone = self.store.get(CURRENT_PHONE_KEY)
        if not phone:
            return None

        cached = self.store.get(user_key(phone))
        if not self.api.token:
            return cached

        result = self.api.get("/auth/me")
        if result.success:
            user = result.data.get("user") or cached
            self.store.set(user_key(phone), user)
            return user
        if result.status_code == 401:
            logger.info("Stored token rejected, signing out")
            self.logout(remote=False)
            return None
        return cached

    def save_user(self, user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Upsert ``user`` through ``/auth/save-user`` and cache it.

        Offline the merged user is cached locally; a rejected request (bad
        phone or email) is reported and nothing is cached.
        """
        phone = user.get("phone")
        if not phone:
            return {"success": False, "error": "Phone number is required"}

        body = {
            k: user[k]
            for k in ("phone", "full_name", "name", "email", "user_type", "preferences")
            if user.get(k) is not None
        }
        result = self.api.post("/auth/save-user", json=body)
        if result.success:
            saved = (result.data or {}).get("user") or user
            self.store.set(user_key(saved.get("phone") or phone), saved)
            return {"success": True, "user": saved, "synced": True}

        if result.rejected:
            return {"success": False, "error": result.error}

        cached = {**(self.store.get(user_key(phone)) or {}), **user}
        self.store.set(user_key(phone), cached)
        logger.info("User %s saved locally: %s", phone, result.error)
        return {"success": True, "user": cached, "synced": False}

    def update_user(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Apply ``updates`` to the signed-in user."""
        phone = self.store.get(CURRENT_PHONE_KEY)
        if not phone:
            return {"success": False, "error": "Not signed in"}
        current = self.store.get(user_key(phone)) or {"phone": phone}
        if updates.get("name") and "full_name" not in updates:
            updates = {**updates, "full_name": updates["name"]}
        return self.save_user({**current, **updates, "phone": phone})

    def logout(self, remote: bool = True) -> None:
        if remote:
            self.api.post("/auth/logout")
        phone = self.store.get(CURRENT_PHONE_KEY)
        if phone:
            self.store.delete(user_key(phone))
        self.store.delete(CURRENT_PHONE_KEY)
        self.store.delete(TOKEN_KEY)
        self.api.token = None

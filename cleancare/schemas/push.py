"""Web push subscription schemas."""

from typing import Dict, Optional

from pydantic import BaseModel


class PushSubscriptionCreate(BaseModel):
    endpoint: str
    keys: Dict[str, str] = {}
    user_id: Optional[int] = None


class PushUnsubscribeRequest(BaseModel):
    endpoint: Optional[str] = None

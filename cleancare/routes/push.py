"""
Web Push Subscription Routes
============================

Stores browser push subscriptions so booking updates can be delivered later.
Subscribing twice with the same endpoint updates the stored keys.

Endpoints:
----------
- POST /push/subscribe
- POST /push/unsubscribe
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import PushSubscription, User
from ..schemas.push import PushSubscriptionCreate, PushUnsubscribeRequest


logger = logging.getLogger(__name__)

push_router = APIRouter(prefix="/push", tags=["Push"])


@push_router.post("/subscribe", status_code=status.HTTP_201_CREATED)
def subscribe(payload: PushSubscriptionCreate, db: Session = Depends(get_db)):
    if not payload.endpoint:
        raise HTTPException(status_code=400, detail="Subscription endpoint is required")
    if payload.user_id is not None and db.get(User, payload.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")

    subscription = (
        db.query(PushSubscription)
        .filter(PushSubscription.endpoint == payload.endpoint)
        .first()
    )
    if subscription is None:
        subscription = PushSubscription(endpoint=payload.endpoint)
        db.add(subscription)
    subscription.keys = dict(payload.keys)
    if payload.user_id is not None:
        subscription.user_id = payload.user_id

    db.commit()
    logger.info("Push subscription stored for user %s", subscription.user_id)
    return {"success": True, "message": "Subscribed"}


@push_router.post("/unsubscribe")
def unsubscribe(payload: PushUnsubscribeRequest, db: Session = Depends(get_db)):
    if not payload.endpoint:
        raise HTTPException(status_code=400, detail="Subscription endpoint is required")

    deleted = (
        db.query(PushSubscription)
        .filter(PushSubscription.endpoint == payload.endpoint)
        .delete(synchronize_session=False)
    )
    db.commit()
    return {"success": True, "message": "Unsubscribed", "removed": deleted}

"""
Rider Routes for CleanCare
==========================

Endpoints:
----------
- POST /riders/profile: Create (201) or update (200) the caller's rider profile
- GET /riders/profile/{user_id}: Rider profile by user id
- GET /riders/online: Approved riders currently online, optionally near a point
- GET /riders/{rider_id}: Rider profile by profile id
- PUT /riders/{rider_id}/status: Go online/offline and report position
- GET /riders/{rider_id}/stats: Bookings and earnings (total, today, 7 days)
- PUT /riders/{rider_id}/review: Admin approve / suspend / reject
- GET /riders: Admin listing with filters and pagination

New riders start in ``pending`` status and are not offered to customers until
an admin approves them.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .. import config
from ..auth import verify_admin_credentials
from ..db import get_db
from ..schemas.riders import (
    RiderOut,
    RiderProfileRequest,
    RiderReviewRequest,
    RiderStatusRequest,
)
from ..services import riders as rider_service


logger = logging.getLogger(__name__)

riders_router = APIRouter(prefix="/riders", tags=["Riders"])


def _out(rider) -> dict:
    return RiderOut.model_validate(rider).model_dump(mode="json")


@riders_router.post("/profile")
def upsert_profile(payload: RiderProfileRequest, db: Session = Depends(get_db)):
    rider, created = rider_service.upsert_profile(db, payload.model_dump())
    if created:
        return JSONResponse(
            status_code=201,
            content={"message": "Rider profile created successfully", "rider": _out(rider)},
        )
    return {"message": "Rider profile updated successfully", "rider": _out(rider)}


@riders_router.get("/profile/{user_id}")
def get_profile(user_id: int, db: Session = Depends(get_db)):
    return {"rider": _out(rider_service.get_profile_by_user(db, user_id))}


# Declared before /{rider_id} so "online" is not parsed as an id
@riders_router.get("/online")
def online_riders(
    db: Session = Depends(get_db),
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    radius: float = Query(config.RIDER_SEARCH_RADIUS_KM, gt=0),
):
    riders = rider_service.online_nearby(db, lat, lng, radius)
    return {"riders": [_out(r) for r in riders]}


@riders_router.get("")
def list_riders(
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
    status: Optional[str] = Query(None),
    is_online: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    riders, pagination = rider_service.list_riders(db, status, is_online, limit, offset)
    return {"riders": [_out(r) for r in riders], "pagination": pagination}


@riders_router.get("/{rider_id}")
def get_rider(rider_id: int, db: Session = Depends(get_db)):
    return {"rider": _out(rider_service.get_rider(db, rider_id))}


@riders_router.put("/{rider_id}/status")
def update_rider_status(rider_id: int, payload: RiderStatusRequest, db: Session = Depends(get_db)):
    coordinates = payload.coordinates.model_dump() if payload.coordinates else None
    rider = rider_service.update_status(
        db,
        rider_id,
        is_online=payload.is_online,
        current_location=payload.current_location,
        coordinates=coordinates,
    )
    return {"message": "Rider status updated successfully", "rider": _out(rider)}


@riders_router.get("/{rider_id}/stats")
def rider_stats(rider_id: int, db: Session = Depends(get_db)):
    return rider_service.stats(db, rider_id)


@riders_router.put("/{rider_id}/review")
def review_rider(
    rider_id: int,
    payload: RiderReviewRequest,
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
):
    rider = rider_service.review(db, rider_id, payload.action)
    return {"message": f"Rider {rider.status}", "rider": _out(rider)}

"""
Rider profiles, availability and earnings statistics.

A rider is a User with a ``riders`` profile row. Bookings reference the
rider's *user* id; rider endpoints address the profile id, so statistics
resolve ``Rider.user_id`` before looking at bookings.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import Booking, Rider, User
from .exceptions import ConflictError, NotFoundError, ValidationFailedError
from .geo import within_radius


logger = logging.getLogger(__name__)

VEHICLE_TYPES = ("motorcycle", "bicycle", "car", "van", "truck")
RIDER_STATUSES = ("pending", "approved", "suspended", "rejected")
REVIEW_ACTIONS = {"approve": "approved", "suspend": "suspended", "reject": "rejected"}


def _apply_location(rider: Rider, current_location: Optional[str], coordinates: Optional[Dict[str, Any]]) -> None:
    if current_location:
        rider.current_location = current_location
    if coordinates:
        rider.lat = coordinates.get("lat")
        rider.lng = coordinates.get("lng")


def upsert_profile(db: Session, payload: Dict[str, Any]) -> Tuple[Rider, bool]:
    """
    Create or update the rider profile of ``payload["user_id"]``.

    Returns:
        Tuple of (rider, created)
    """
    user_id = payload.get("user_id")
    if not user_id:
        raise ValidationFailedError("User ID is required")

    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    vehicle_type = payload.get("vehicle_type")
    if vehicle_type and vehicle_type not in VEHICLE_TYPES:
        raise ValidationFailedError(f"Vehicle type must be one of: {', '.join(VEHICLE_TYPES)}")

    rider = db.query(Rider).filter(Rider.user_id == user_id).first()
    if rider is not None:
        for field in ("vehicle_type", "vehicle_number", "license_number"):
            if payload.get(field):
                setattr(rider, field, payload[field])
        if payload.get("is_online") is not None:
            rider.is_online = payload["is_online"]
        _apply_location(rider, payload.get("current_location"), payload.get("coordinates"))
        db.commit()
        db.refresh(rider)
        logger.info("Rider profile %s updated", rider.id)
        return rider, False

    if not (vehicle_type and payload.get("vehicle_number") and payload.get("license_number")):
        raise ValidationFailedError(
            "Vehicle type, vehicle number, and license number are required for new riders"
        )

    rider = Rider(
        user_id=user_id,
        vehicle_type=vehicle_type,
        vehicle_number=payload["vehicle_number"],
        license_number=payload["license_number"],
        is_online=bool(payload.get("is_online") or False),
        documents={},
        bank_details={},
        availability={},
    )
    _apply_location(rider, payload.get("current_location"), payload.get("coordinates"))
    if user.user_type == "customer":
        user.user_type = "rider"

    db.add(rider)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("A rider profile already exists for this user")

    db.refresh(rider)
    logger.info("Rider profile %s created for user %s", rider.id, user_id)
    return rider, True


def get_profile_by_user(db: Session, user_id: int) -> Rider:
    rider = db.query(Rider).filter(Rider.user_id == user_id).first()
    if rider is None:
        raise NotFoundError("Rider profile not found")
    return rider


def get_rider(db: Session, rider_id: int) -> Rider:
    rider = db.get(Rider, rider_id)
    if rider is None:
        raise NotFoundError("Rider not found")
    return rider


def update_status(
    db: Session,
    rider_id: int,
    is_online: Optional[bool] = None,
    current_location: Optional[str] = None,
    coordinates: Optional[Dict[str, Any]] = None,
) -> Rider:
    rider = get_rider(db, rider_id)
    if is_online is not None:
        rider.is_online = is_online
    _apply_location(rider, current_location, coordinates)
    db.commit()
    db.refresh(rider)
    return rider


def review(db: Session, rider_id: int, action: str) -> Rider:
    """Admin approval workflow: approve, suspend or reject a rider."""
    status = REVIEW_ACTIONS.get(action)
    if status is None:
        raise ValidationFailedError(f"Action must be one of: {', '.join(REVIEW_ACTIONS)}")

    rider = get_rider(db, rider_id)
    rider.status = status
    if status != "approved":
        rider.is_online = False
    db.commit()
    db.refresh(rider)
    logger.info("Rider %s %s", rider_id, status)
    return rider


def online_nearby(
    db: Session,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius_km: float = 10.0,
) -> List[Rider]:
    """Approved, online riders; distance-filtered when coordinates are given."""
    riders = (
        db.query(Rider)
        .filter(Rider.is_online.is_(True), Rider.status == "approved")
        .order_by(Rider.id)
        .all()
    )
    if lat is None or lng is None:
        return riders
    return [r for r in riders if within_radius(lat, lng, r.lat, r.lng, radius_km)]


def list_riders(
    db: Session,
    status: Optional[str] = None,
    is_online: Optional[bool] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[Rider], Dict[str, int]]:
    query = db.query(Rider)
    if status:
        query = query.filter(Rider.status == status)
    if is_online is not None:
        query = query.filter(Rider.is_online.is_(is_online))

    total = query.count()
    riders = query.order_by(Rider.created_at.desc(), Rider.id.desc()).offset(offset).limit(limit).all()
    return riders, {
        "total": total,
        "limit": limit,
        "offset": offset,
        "pages": math.ceil(total / limit) if limit else 0,
    }


# =============================================================================
# Statistics
# =============================================================================

def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    # SQLite hands back naive timestamps
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _summarize(bookings: List[Booking]) -> Dict[str, Any]:
    completed = [b for b in bookings if b.status == "completed"]
    return {
        "bookings": len(bookings),
        "completed": len(completed),
        "earnings": round(sum(b.final_amount or 0.0 for b in completed), 2),
    }


def stats(db: Session, rider_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Booking counts and earnings for all time, today and the last 7 days."""
    rider = get_rider(db, rider_id)
    now = now or datetime.now(timezone.utc)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow = today + timedelta(days=1)
    week_ago = today - timedelta(days=7)

    bookings = db.query(Booking).filter(Booking.rider_id == rider.user_id).all()
    today_bookings = [
        b for b in bookings if today <= _as_utc(b.created_at) < tomorrow
    ]
    week_bookings = [b for b in bookings if _as_utc(b.created_at) >= week_ago]

    return {
        "rider_id": rider.id,
        "rating": rider.rating,
        "member_since": rider.created_at,
        "total": _summarize(bookings),
        "today": _summarize(today_bookings),
        "week": _summarize(week_bookings),
    }

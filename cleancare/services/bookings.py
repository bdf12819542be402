"""
Booking Service for CleanCare
=============================

Functions behind the ``/api/bookings`` routes.

Booking Lifecycle:
------------------
1. Customer submits a booking -> ``create_booking`` (status: pending)
2. Nearby riders see it via ``pending_nearby`` (within RIDER_SEARCH_RADIUS_KM)
3. A rider claims it -> ``accept_booking`` (status: confirmed, rider assigned)
4. Rider progresses it -> ``update_status`` (in_progress, completed)
5. Customer or assigned rider may ``cancel_booking`` until it is completed

Order IDs:
----------
Each booking gets a readable ``custom_order_id``::

    <letter><YYYYMM><5 digit sequence>      e.g. A20250100001

The sequence restarts every month. When a month passes 99999 bookings the
letter advances (A -> B -> ...) and the sequence restarts at 1.

Idempotency:
------------
The adaptive client sends its local booking id as ``client_reference``. A
second submission with the same reference returns the stored booking instead
of creating a duplicate.

Concurrency:
------------
``accept_booking`` is a single conditional UPDATE
(``WHERE status='pending' AND rider_id IS NULL``), so when two riders race for
the same booking exactly one update matches a row.
"""

import logging
import math
import string
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import config
from ..models import Booking, BookingItem, Rider, User
from . import users
from .exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from .geo import within_radius
from .pricing import build_charges_breakdown, compute_final_amount


logger = logging.getLogger(__name__)


BOOKING_STATUSES = ("pending", "confirmed", "in_progress", "completed", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")

REQUIRED_FIELDS = (
    "customer_id",
    "service",
    "service_type",
    "services",
    "scheduled_date",
    "scheduled_time",
    "provider_name",
    "address",
    "total_price",
)

MAX_SEQUENCE = 99999
ORDER_ID_RETRIES = 3


# =============================================================================
# Order IDs
# =============================================================================

def _year_month(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{now.year}{now.month:02d}"


def next_custom_order_id(db: Session, now: Optional[datetime] = None) -> str:
    """Return the next free ``<letter><YYYYMM><seq>`` id for the current month."""
    year_month = _year_month(now)
    existing = (
        db.query(Booking.custom_order_id)
        .filter(Booking.custom_order_id.like(f"_{year_month}_____"))
        .all()
    )

    letter, sequence = "A", 0
    for (order_id,) in existing:
        candidate = (order_id[0], int(order_id[-5:]))
        if candidate > (letter, sequence):
            letter, sequence = candidate

    sequence += 1
    if sequence > MAX_SEQUENCE:
        letters = string.ascii_uppercase
        index = letters.index(letter) + 1
        if index >= len(letters):
            raise ConflictError("Order id space exhausted for this month")
        letter, sequence = letters[index], 1

    return f"{letter}{year_month}{sequence:05d}"


# =============================================================================
# Creation
# =============================================================================

def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, dict)) and len(value) == 0:
        return True
    return value == 0


def _amount(value: Any) -> float:
    """Coerce a money value to float; anything unparseable becomes NaN."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return float("nan")


def validate_booking_payload(payload: Dict[str, Any]) -> None:
    """
    Check the fields every booking needs.

    Raises:
        ValidationFailedError: With ``missing`` listing absent fields, or a
            message for an empty service list or a bad amount.
    """
    missing = [name for name in REQUIRED_FIELDS if _is_missing(payload.get(name))]
    if missing:
        raise ValidationFailedError(
            "Missing required fields",
            {"missing": missing, "received": sorted(k for k, v in payload.items() if v is not None)},
        )

    services = payload.get("services")
    if not isinstance(services, list) or not services:
        raise ValidationFailedError("At least one service must be selected")

    total_price = _amount(payload["total_price"])
    if not math.isfinite(total_price):
        raise ValidationFailedError("Total price must be a number")
    if total_price <= 0:
        raise ValidationFailedError("Total price must be greater than 0")

    discount = _amount(payload.get("discount_amount") or 0)
    if not math.isfinite(discount) or discount < 0:
        raise ValidationFailedError("Discount amount cannot be negative")

    final_amount = payload.get("final_amount")
    if final_amount is not None and not math.isfinite(_amount(final_amount)):
        raise ValidationFailedError("Final amount must be a number")

    for value in (payload.get("charges_breakdown") or {}).values():
        if not math.isfinite(_amount(value)):
            raise ValidationFailedError("Charges must be numbers")

    for item in payload.get("item_prices") or []:
        if (item.get("quantity") or 0) < 1:
            raise ValidationFailedError("Item quantity must be at least 1")
        prices = (_amount(item.get("unit_price") or 0), _amount(item.get("total_price") or 0))
        if any(not math.isfinite(price) or price < 0 for price in prices):
            raise ValidationFailedError("Item prices cannot be negative")


def get_by_client_reference(db: Session, client_reference: Optional[str]) -> Optional[Booking]:
    if not client_reference:
        return None
    return db.query(Booking).filter(Booking.client_reference == client_reference).first()


def create_booking(db: Session, payload: Dict[str, Any]) -> Tuple[Booking, bool]:
    """
    Create a booking from a request payload.

    Returns:
        Tuple of (booking, created). ``created`` is False when the payload's
        ``client_reference`` matched an existing booking.

    Raises:
        ValidationFailedError: Missing or invalid fields
        NotFoundError: Customer could not be found or created
    """
    existing = get_by_client_reference(db, payload.get("client_reference"))
    if existing is not None:
        logger.info(
            "Booking %s already exists for client reference %s",
            existing.custom_order_id,
            payload.get("client_reference"),
        )
        return existing, False

    validate_booking_payload(payload)

    customer = users.resolve_customer(db, payload["customer_id"], auto_create=True)
    if customer is None:
        raise NotFoundError("Customer not found and could not be created")

    total_price = float(payload["total_price"])
    discount_amount = float(payload.get("discount_amount") or 0.0)
    final_amount = payload.get("final_amount")
    if not final_amount:
        final_amount = compute_final_amount(total_price, discount_amount)
    final_amount = max(0.0, float(final_amount))

    coordinates = payload.get("coordinates") or {}

    for attempt in range(ORDER_ID_RETRIES):
        booking = Booking(
            custom_order_id=next_custom_order_id(db),
            client_reference=payload.get("client_reference"),
            customer_id=customer.id,
            customer_code=customer.customer_id,
            service=payload["service"],
            service_type=payload["service_type"],
            services=list(payload["services"]),
            scheduled_date=payload["scheduled_date"],
            scheduled_time=payload["scheduled_time"],
            provider_name=payload["provider_name"],
            address=payload["address"],
            address_details=payload.get("address_details"),
            lat=coordinates.get("lat"),
            lng=coordinates.get("lng"),
            additional_details=payload.get("additional_details") or "",
            total_price=total_price,
            discount_amount=discount_amount,
            final_amount=final_amount,
            charges_breakdown=build_charges_breakdown(
                total_price, discount_amount, payload.get("charges_breakdown")
            ),
            payment_status="pending",
            status="pending",
            estimated_duration=payload.get("estimated_duration") or config.DEFAULT_ESTIMATED_DURATION_MINUTES,
            special_instructions=payload.get("special_instructions") or "",
        )
        for item in payload.get("item_prices") or []:
            booking.items.append(BookingItem(
                service_name=item["service_name"],
                quantity=item.get("quantity") or 1,
                unit_price=item.get("unit_price") or 0.0,
                total_price=item.get("total_price") or 0.0,
            ))

        db.add(booking)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            # Another request took the same reference or order id
            existing = get_by_client_reference(db, payload.get("client_reference"))
            if existing is not None:
                return existing, False
            logger.warning("Order id collision on attempt %d, retrying", attempt + 1)
            continue

        db.refresh(booking)
        logger.info(
            "Booking %s created for customer %s (%.2f)",
            booking.custom_order_id,
            customer.customer_id,
            booking.final_amount,
        )
        return booking, True

    raise ConflictError("Could not allocate an order id, please retry")


# =============================================================================
# Queries
# =============================================================================

def _newest_first(query):
    return query.order_by(Booking.created_at.desc(), Booking.id.desc())


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


def list_for_customer(
    db: Session,
    customer_ref: str,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Booking]:
    customer_ids = users.resolve_customer_ids(db, customer_ref)
    if not customer_ids:
        return []

    query = db.query(Booking).filter(Booking.customer_id.in_(customer_ids))
    if status:
        query = query.filter(Booking.status == status)
    return _newest_first(query).offset(offset).limit(limit).all()


def pending_nearby(db: Session, lat: float, lng: float, radius_km: Optional[float] = None) -> List[Booking]:
    """Pending, unassigned bookings with coordinates within ``radius_km``."""
    radius_km = config.RIDER_SEARCH_RADIUS_KM if radius_km is None else radius_km
    candidates = _newest_first(
        db.query(Booking).filter(
            Booking.status == "pending",
            Booking.rider_id.is_(None),
            Booking.lat.isnot(None),
            Booking.lng.isnot(None),
        )
    ).all()
    return [b for b in candidates if within_radius(lat, lng, b.lat, b.lng, radius_km)]


def list_for_rider(
    db: Session,
    rider_user_id: int,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Booking]:
    query = db.query(Booking).filter(Booking.rider_id == rider_user_id)
    if status:
        query = query.filter(Booking.status == status)
    return _newest_first(query).offset(offset).limit(limit).all()


def list_bookings(
    db: Session,
    status: Optional[str] = None,
    customer_id: Optional[str] = None,
    rider_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[Booking], Dict[str, int]]:
    """Filtered booking report. Returns (bookings, pagination)."""
    query = db.query(Booking)
    if status:
        query = query.filter(Booking.status == status)
    if customer_id:
        query = query.filter(Booking.customer_id.in_(users.resolve_customer_ids(db, customer_id)))
    if rider_id is not None:
        query = query.filter(Booking.rider_id == rider_id)
    if start_date:
        query = query.filter(Booking.created_at >= start_date)
    if end_date:
        query = query.filter(Booking.created_at <= end_date)

    total = query.count()
    bookings = _newest_first(query).offset(offset).limit(limit).all()
    pagination = {
        "total": total,
        "limit": limit,
        "offset": offset,
        "pages": math.ceil(total / limit) if limit else 0,
    }
    return bookings, pagination


# =============================================================================
# Rider Actions
# =============================================================================

def accept_booking(db: Session, booking_id: int, rider_user_id: Optional[int]) -> Booking:
    """
    Assign a pending booking to a rider.

    Raises:
        ValidationFailedError: No rider id
        NotFoundError: Unknown rider
        ConflictError: Booking missing, already taken or not pending
    """
    if not rider_user_id:
        raise ValidationFailedError("Rider ID is required")

    if db.get(User, rider_user_id) is None:
        raise NotFoundError("Rider not found")

    result = db.execute(
        update(Booking)
        .where(
            Booking.id == booking_id,
            Booking.status == "pending",
            Booking.rider_id.is_(None),
        )
        .values(
            rider_id=rider_user_id,
            status="confirmed",
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()

    if result.rowcount != 1:
        raise ConflictError("Booking not found or is no longer available")

    booking = db.get(Booking, booking_id)
    db.refresh(booking)
    logger.info("Booking %s accepted by rider user %s", booking.custom_order_id, rider_user_id)
    return booking


def _record_completion(db: Session, booking: Booking) -> None:
    if booking.rider_id is None:
        return
    profile = db.query(Rider).filter(Rider.user_id == booking.rider_id).first()
    if profile is not None:
        profile.completed_rides = (profile.completed_rides or 0) + 1
        profile.total_earnings = round((profile.total_earnings or 0.0) + booking.final_amount, 2)


def update_status(
    db: Session,
    booking_id: int,
    status: Optional[str],
    rider_user_id: Optional[int] = None,
) -> Booking:
    """
    Move a booking to ``status``.

    With ``rider_user_id`` only a booking assigned to that rider matches.

    Raises:
        ValidationFailedError: Unknown status
        NotFoundError: No matching booking
    """
    if not status or status not in BOOKING_STATUSES:
        raise ValidationFailedError("Invalid status")

    query = db.query(Booking).filter(Booking.id == booking_id)
    if rider_user_id:
        query = query.filter(Booking.rider_id == rider_user_id)
    booking = query.first()
    if booking is None:
        logger.warning("Status update to %s matched no booking (id=%s, rider=%s)",
                       status, booking_id, rider_user_id)
        raise NotFoundError("Booking not found or access denied")

    previous = booking.status
    booking.status = status
    if status == "completed":
        booking.completed_at = datetime.now(timezone.utc)
        if previous != "completed":
            _record_completion(db, booking)

    db.commit()
    db.refresh(booking)
    logger.info("Booking %s status %s -> %s", booking.custom_order_id, previous, status)
    return booking


def cancel_booking(db: Session, booking_id: int, user_id: Any, user_type: Optional[str]) -> Booking:
    """
    Cancel a booking on behalf of its customer or its assigned rider.

    Raises:
        NotFoundError: Unknown booking
        PermissionDeniedError: Caller is neither owner nor assigned rider
        ValidationFailedError: Booking already completed
    """
    booking = get_booking(db, booking_id)

    allowed = False
    if user_type == "customer":
        customer = users.resolve_customer(db, user_id)
        allowed = customer is not None and customer.id == booking.customer_id
    elif user_type == "rider":
        allowed = (
            booking.rider_id is not None
            and str(user_id).isdigit()
            and int(user_id) == booking.rider_id
        )

    if not allowed:
        raise PermissionDeniedError("Access denied")

    if booking.status == "completed":
        raise ValidationFailedError("Cannot cancel completed booking")

    booking.status = "cancelled"
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s cancelled by %s %s", booking.custom_order_id, user_type, user_id)
    return booking

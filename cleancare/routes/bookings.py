"""
Booking Routes for CleanCare
============================

Endpoints:
----------
- POST /bookings: Create a booking (idempotent with client_reference)
- GET /bookings/customer/{customer_id}: A customer's bookings, newest first
- GET /bookings/pending/{lat}/{lng}: Unassigned bookings near a rider
- GET /bookings/rider/{rider_id}: Bookings assigned to a rider
- PUT /bookings/{id}/accept: Rider claims a pending booking
- PUT /bookings/{id}/status: Move a booking through its lifecycle
- GET /bookings/{id}: One booking
- DELETE /bookings/{id}: Cancel (customer owner or assigned rider)
- GET /bookings: Admin report with filters and pagination

Customer References:
--------------------
``customer_id`` may be a user id, a phone number, ``user_<phone>`` or a
``CC...`` customer code (see services/users.py). Creating a booking for an
unknown phone number creates the customer.

Errors:
-------
Validation, permission and lookup failures are raised by services/bookings.py
as BookingError subclasses and rendered by the handler in main.py:
- 400: Missing fields (with ``missing``), empty services, bad total, bad status
- 403: Caller may not cancel this booking
- 404: Booking, customer or rider not found
- 409: Booking already taken by another rider
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth import verify_admin_credentials
from ..db import get_db
from ..schemas.bookings import (
    BookingAcceptRequest,
    BookingCancelRequest,
    BookingCreate,
    BookingListResponse,
    BookingOut,
    BookingPageResponse,
    BookingResponse,
    BookingStatusRequest,
)
from ..services import bookings as booking_service
from ..validators import coordinates_in_range, parse_coordinates


logger = logging.getLogger(__name__)

bookings_router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _list(items) -> BookingListResponse:
    return BookingListResponse(bookings=[BookingOut.model_validate(b) for b in items])


# =============================================================================
# Customer Endpoints
# =============================================================================

@bookings_router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(payload: BookingCreate, db: Session = Depends(get_db)):
    """
    Create a booking.

    Returns 201 for a new booking, or 200 with the stored booking when
    ``client_reference`` was already used.
    """
    logger.info(
        "Booking request: customer=%s service=%s total=%s date=%s",
        payload.customer_id,
        payload.service,
        payload.total_price,
        payload.scheduled_date,
    )
    booking, created = booking_service.create_booking(db, payload.model_dump())
    body = BookingResponse(
        message="Booking created successfully" if created else "Booking already exists",
        booking=BookingOut.model_validate(booking),
    )
    if not created:
        return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump(mode="json"))
    return body


@bookings_router.get("/customer/{customer_id}", response_model=BookingListResponse)
def customer_bookings(
    customer_id: str,
    db: Session = Depends(get_db),
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    return _list(booking_service.list_for_customer(db, customer_id, status, limit, offset))


# =============================================================================
# Rider Endpoints
# =============================================================================

@bookings_router.get("/pending/{lat}/{lng}", response_model=BookingListResponse)
def pending_bookings(lat: str, lng: str, db: Session = Depends(get_db)):
    """Pending, unassigned bookings within RIDER_SEARCH_RADIUS_KM of the rider."""
    coords = parse_coordinates(lat, lng)
    if coords is None or not coordinates_in_range(*coords):
        raise HTTPException(status_code=400, detail="Invalid coordinates")
    return _list(booking_service.pending_nearby(db, *coords))


@bookings_router.get("/rider/{rider_id}", response_model=BookingListResponse)
def rider_bookings(
    rider_id: int,
    db: Session = Depends(get_db),
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    return _list(booking_service.list_for_rider(db, rider_id, status, limit, offset))


@bookings_router.put("/{booking_id}/accept", response_model=BookingResponse)
def accept_booking(booking_id: int, payload: BookingAcceptRequest, db: Session = Depends(get_db)):
    booking = booking_service.accept_booking(db, booking_id, payload.rider_id)
    return BookingResponse(
        message="Booking accepted successfully",
        booking=BookingOut.model_validate(booking),
    )


@bookings_router.put("/{booking_id}/status", response_model=BookingResponse)
def update_booking_status(booking_id: int, payload: BookingStatusRequest, db: Session = Depends(get_db)):
    booking = booking_service.update_status(db, booking_id, payload.status, payload.rider_id)
    return BookingResponse(
        message="Booking status updated successfully",
        booking=BookingOut.model_validate(booking),
    )


# =============================================================================
# Single Booking
# =============================================================================

@bookings_router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(booking_id: int, db: Session = Depends(get_db)):
    return BookingResponse(booking=BookingOut.model_validate(booking_service.get_booking(db, booking_id)))


@bookings_router.delete("/{booking_id}", response_model=BookingResponse)
def cancel_booking(booking_id: int, payload: BookingCancelRequest, db: Session = Depends(get_db)):
    booking = booking_service.cancel_booking(db, booking_id, payload.user_id, payload.user_type)
    return BookingResponse(
        message="Booking cancelled successfully",
        booking=BookingOut.model_validate(booking),
    )


# =============================================================================
# Admin Report
# =============================================================================

@bookings_router.get("", response_model=BookingPageResponse)
def list_bookings(
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
    status: Optional[str] = Query(None),
    customer_id: Optional[str] = Query(None),
    rider_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """All bookings, newest first. Requires admin authentication."""
    items, pagination = booking_service.list_bookings(
        db,
        status=status,
        customer_id=customer_id,
        rider_id=rider_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return BookingPageResponse(
        bookings=[BookingOut.model_validate(b) for b in items],
        pagination=pagination,
    )

"""
Booking Schemas for CleanCare
=============================

Pydantic models for the ``/api/bookings`` endpoints.

Endpoint Coverage:
------------------
- POST /api/bookings: BookingCreate -> BookingResponse
- GET /api/bookings/customer/{customer_id}: BookingListResponse
- GET /api/bookings/pending/{lat}/{lng}: BookingListResponse
- GET /api/bookings/rider/{rider_id}: BookingListResponse
- PUT /api/bookings/{id}/accept: BookingAcceptRequest -> BookingResponse
- PUT /api/bookings/{id}/status: BookingStatusRequest -> BookingResponse
- DELETE /api/bookings/{id}: BookingCancelRequest -> BookingResponse
- GET /api/bookings (admin): BookingPageResponse

Money:
------
``total_price`` is what the cart came to, ``discount_amount`` the coupon
discount and ``final_amount`` what the customer pays. The server fills
``final_amount`` with ``total_price - discount_amount`` (never below zero)
when the client leaves it out.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, computed_field

from .location import Coordinates


class AddressDetails(BaseModel):
    flatNo: Optional[str] = None
    street: Optional[str] = None
    landmark: Optional[str] = None
    village: Optional[str] = None
    city: Optional[str] = None
    pincode: Optional[str] = None
    type: Optional[str] = None


class ItemPrice(BaseModel):
    service_name: str
    quantity: int = 1
    unit_price: float = 0.0
    total_price: float = 0.0


class BookingCreate(BaseModel):
    """
    Request body for creating a booking.

    ``customer_id`` accepts a user id, a phone number, ``user_<phone>`` or a
    ``CC...`` customer code. ``client_reference`` makes the request
    idempotent.
    """
    customer_id: Optional[Union[str, int]] = None
    service: Optional[str] = None
    service_type: Optional[str] = None
    services: Optional[List[str]] = None
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None
    provider_name: Optional[str] = None
    address: Optional[str] = None
    address_details: Optional[AddressDetails] = None
    coordinates: Optional[Coordinates] = None
    additional_details: Optional[str] = None
    total_price: Optional[float] = None
    discount_amount: Optional[float] = None
    final_amount: Optional[float] = None
    special_instructions: Optional[str] = None
    charges_breakdown: Optional[Dict[str, float]] = None
    item_prices: Optional[List[ItemPrice]] = None
    estimated_duration: Optional[int] = None
    client_reference: Optional[str] = None


class BookingAcceptRequest(BaseModel):
    rider_id: Optional[int] = None


class BookingStatusRequest(BaseModel):
    status: Optional[str] = None
    rider_id: Optional[int] = None


class BookingCancelRequest(BaseModel):
    user_id: Optional[Union[str, int]] = None
    user_type: Optional[str] = None


class PartySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: Optional[str] = None
    phone: str
    email: Optional[str] = None


class BookingItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    service_name: str
    quantity: int
    unit_price: float
    total_price: float


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    custom_order_id: str
    client_reference: Optional[str] = None
    customer_id: int
    customer_code: str
    rider_id: Optional[int] = None
    customer: Optional[PartySummary] = None
    rider: Optional[PartySummary] = None
    service: str
    service_type: str
    services: List[str]
    scheduled_date: str
    scheduled_time: str
    provider_name: str
    address: str
    address_details: Optional[Dict[str, Any]] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    additional_details: str = ""
    total_price: float
    discount_amount: float
    final_amount: float
    charges_breakdown: Optional[Dict[str, Any]] = None
    items: List[BookingItemOut] = []
    payment_status: str
    status: str
    estimated_duration: int
    special_instructions: str = ""
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.lat is None or self.lng is None:
            return None
        return Coordinates(lat=self.lat, lng=self.lng)


class BookingResponse(BaseModel):
    message: Optional[str] = None
    booking: BookingOut


class BookingListResponse(BaseModel):
    bookings: List[BookingOut]


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    pages: int


class BookingPageResponse(BaseModel):
    bookings: List[BookingOut]
    pagination: Pagination

"""Rider profile schemas."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from .bookings import PartySummary
from .location import Coordinates


class RiderProfileRequest(BaseModel):
    user_id: Optional[int] = None
    vehicle_type: Optional[str] = None
    vehicle_number: Optional[str] = None
    license_number: Optional[str] = None
    is_online: Optional[bool] = None
    current_location: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class RiderStatusRequest(BaseModel):
    is_online: Optional[bool] = None
    current_location: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class RiderReviewRequest(BaseModel):
    action: str  # approve / suspend / reject


class RiderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    user: Optional[PartySummary] = None
    vehicle_type: str
    vehicle_number: str
    license_number: str
    is_online: bool
    current_location: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    rating: float
    completed_rides: int
    total_earnings: float
    status: str
    availability: Dict[str, Any] = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

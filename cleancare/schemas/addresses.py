"""
Address Schemas for CleanCare
=============================

Saved delivery/pickup addresses. Every ``/api/addresses`` response uses the
``{data, error}`` envelope the booking screens expect.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field

from .location import Coordinates


class AddressCreate(BaseModel):
    title: Optional[str] = None
    full_address: Optional[str] = None
    area: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    landmark: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    is_default: bool = False
    address_type: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    delivery_instructions: Optional[str] = None


class AddressUpdate(BaseModel):
    title: Optional[str] = None
    full_address: Optional[str] = None
    area: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    landmark: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    is_default: Optional[bool] = None
    address_type: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    delivery_instructions: Optional[str] = None


class AddressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    full_address: str
    area: str
    city: str
    state: str
    pincode: str
    landmark: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    is_default: bool
    address_type: str
    contact_person: str = ""
    contact_phone: str = ""
    delivery_instructions: str = ""
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.lat is None or self.lng is None:
            return None
        return Coordinates(lat=self.lat, lng=self.lng)

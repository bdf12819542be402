"""Location schemas."""

from typing import Any, Optional

from pydantic import BaseModel


class Coordinates(BaseModel):
    lat: float
    lng: float


class ServiceAreaCheckRequest(BaseModel):
    """Body of POST /api/location/check-service-area (values may arrive as strings)."""
    lat: Optional[Any] = None
    lng: Optional[Any] = None

"""
Location Routes for CleanCare
=============================

Endpoints:
----------
- GET /location/geocode/{lat}/{lng}: Coordinates -> address and city
- GET /location/search/{query}: Place search (India only)
- GET /location/service-areas: Cities we advertise service in
- POST /location/check-service-area: Is a coordinate inside coverage?
- GET /location/health: Liveness check

Lookups go to Nominatim through address_service.py. Upstream failures are
never surfaced: geocoding falls back to a coordinate label and search returns
no results.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException

from .. import address_service
from ..schemas.location import ServiceAreaCheckRequest
from ..validators import coordinates_in_range, parse_coordinates


logger = logging.getLogger(__name__)

location_router = APIRouter(prefix="/location", tags=["Location"])

MIN_QUERY_LENGTH = 3


@location_router.get("/geocode/{lat}/{lng}")
def geocode(lat: str, lng: str):
    coords = parse_coordinates(lat, lng)
    if coords is None:
        raise HTTPException(status_code=400, detail="Invalid coordinates provided")
    if not coordinates_in_range(*coords):
        raise HTTPException(status_code=400, detail="Coordinates out of valid range")

    result = address_service.reverse_geocode(*coords)
    return {"success": True, "data": result.to_dict()}


@location_router.get("/search/{query}")
def search(query: str):
    if len(query.strip()) < MIN_QUERY_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Search query must be at least {MIN_QUERY_LENGTH} characters long",
        )

    results = [place.to_dict() for place in address_service.search_places(query.strip())]
    return {
        "success": True,
        "data": {"query": query, "results": results, "count": len(results)},
    }


@location_router.get("/service-areas")
def service_areas():
    areas = address_service.SERVICE_AREAS
    return {"success": True, "data": {"serviceAreas": areas, "count": len(areas)}}


@location_router.post("/check-service-area")
def check_service_area(payload: ServiceAreaCheckRequest):
    if payload.lat in (None, "") or payload.lng in (None, ""):
        raise HTTPException(status_code=400, detail="Latitude and longitude are required")

    coords = parse_coordinates(payload.lat, payload.lng)
    if coords is None:
        raise HTTPException(status_code=400, detail="Invalid coordinates")

    lat, lng = coords
    inside = address_service.is_in_service_area(lat, lng)
    return {
        "success": True,
        "data": {
            "inServiceArea": inside,
            "coordinates": {"lat": lat, "lng": lng},
            "message": "Location is in service area" if inside else "Location is outside service area",
        },
    }


@location_router.get("/health")
def location_health():
    return {
        "success": True,
        "message": "Location service is healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

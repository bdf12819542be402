"""
Location lookups using Nominatim (OpenStreetMap).

This module provides the geography behind ``/api/location``:
1. Reverse geocoding of a device position into a readable address and city
2. Free-text place search restricted to India
3. The list of advertised service areas and a bounding-box coverage check

Lookups never fail the request: when Nominatim is unreachable or returns
nothing usable, reverse geocoding falls back to a coordinate label and search
returns an empty result list.

Rate limits: Nominatim allows 1 request/second and requires a User-Agent
Attribution: Results from OpenStreetMap must be attributed
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

from . import config

logger = logging.getLogger(__name__)

# Reverse lookup detail level (16 = street)
REVERSE_ZOOM = 16
SEARCH_LIMIT = 10

SERVICE_AREAS: list[dict[str, Any]] = [
    {
        "id": "delhi",
        "name": "Delhi NCR",
        "cities": ["New Delhi", "Gurgaon", "Noida", "Faridabad", "Ghaziabad"],
        "coordinates": {"lat": 28.6139, "lng": 77.209},
    },
    {
        "id": "mumbai",
        "name": "Mumbai",
        "cities": ["Mumbai", "Navi Mumbai", "Thane", "Pune"],
        "coordinates": {"lat": 19.076, "lng": 72.8777},
    },
    {
        "id": "bangalore",
        "name": "Bangalore",
        "cities": ["Bangalore", "Mysore"],
        "coordinates": {"lat": 12.9716, "lng": 77.5946},
    },
    {
        "id": "hyderabad",
        "name": "Hyderabad",
        "cities": ["Hyderabad", "Secunderabad"],
        "coordinates": {"lat": 17.385, "lng": 78.4867},
    },
]


@dataclass
class GeocodeResult:
    """A readable label for a coordinate pair."""
    address: str
    city: str
    lat: float
    lng: float
    components: Optional[dict[str, Any]] = None
    display_name: Optional[str] = None
    fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "address": self.address,
            "city": self.city,
            "coordinates": {"lat": self.lat, "lng": self.lng},
        }
        if not self.fallback:
            data["components"] = self.components or {}
            data["display_name"] = self.display_name
        return data


@dataclass
class PlaceResult:
    """One Nominatim search hit."""
    display_name: str
    lat: float
    lng: float
    address: dict[str, Any] = field(default_factory=dict)
    type: Optional[str] = None
    importance: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "display_name": self.display_name,
            "address": self.address,
            "coordinates": {"lat": self.lat, "lng": self.lng},
            "type": self.type,
            "importance": self.importance,
        }


def _headers() -> dict[str, str]:
    return {"User-Agent": config.NOMINATIM_USER_AGENT}


def fallback_location(lat: float, lng: float) -> GeocodeResult:
    return GeocodeResult(
        address=f"Location at {lat:.4f}, {lng:.4f}",
        city="Unknown Location",
        lat=lat,
        lng=lng,
        fallback=True,
    )


def format_city(address: dict[str, Any]) -> str:
    """
    Pick a city label: city/town/village, else suburb/neighbourhood/quarter,
    else the state. The state is appended when it differs.
    """
    city = address.get("city") or address.get("town") or address.get("village")
    locality = address.get("suburb") or address.get("neighbourhood") or address.get("quarter")
    state = address.get("state")

    place = city or locality
    if place:
        if state and state != place:
            return f"{place}, {state}"
        return place
    return state or ""


def format_address(address: dict[str, Any]) -> str:
    city = address.get("city") or address.get("town") or address.get("village")
    locality = address.get("suburb") or address.get("neighbourhood") or address.get("quarter")
    parts = [
        address.get("house_number"),
        address.get("road"),
        locality,
        city,
        address.get("state"),
        address.get("country"),
    ]
    return ", ".join(p for p in parts if p)


def reverse_geocode(lat: float, lng: float) -> GeocodeResult:
    """
    Turn coordinates into an address and city.

    Args:
        lat: Latitude, already range-checked by the caller
        lng: Longitude, already range-checked by the caller

    Returns:
        GeocodeResult; ``fallback`` is True when Nominatim gave nothing usable
    """
    params = {
        "format": "json",
        "lat": lat,
        "lon": lng,
        "zoom": REVERSE_ZOOM,
        "addressdetails": 1,
    }

    try:
        logger.debug("Reverse geocoding %s, %s", lat, lng)
        response = requests.get(
            f"{config.NOMINATIM_BASE_URL}/reverse",
            params=params,
            headers=_headers(),
            timeout=config.NOMINATIM_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Reverse geocoding failed for %s, %s: %s", lat, lng, e)
        return fallback_location(lat, lng)

    if not isinstance(data, dict) or not data.get("address"):
        logger.info("No address found for %s, %s", lat, lng)
        return fallback_location(lat, lng)

    address = data["address"]
    return GeocodeResult(
        address=format_address(address) or data.get("display_name", ""),
        city=format_city(address),
        lat=lat,
        lng=lng,
        components=address,
        display_name=data.get("display_name"),
    )


def search_places(query: str) -> list[PlaceResult]:
    """
    Search Nominatim for places matching ``query`` within SEARCH_COUNTRY_CODES.

    Returns:
        Matching places, or an empty list if the lookup fails
    """
    params = {
        "format": "json",
        "q": query,
        "limit": SEARCH_LIMIT,
        "countrycodes": config.SEARCH_COUNTRY_CODES,
        "addressdetails": 1,
    }

    try:
        response = requests.get(
            f"{config.NOMINATIM_BASE_URL}/search",
            params=params,
            headers=_headers(),
            timeout=config.NOMINATIM_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        results = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Place search failed for '%s': %s", query, e)
        return []

    places = []
    for item in results or []:
        try:
            lat = float(item["lat"])
            lng = float(item["lon"])
        except (KeyError, TypeError, ValueError):
            continue
        places.append(PlaceResult(
            display_name=item.get("display_name", ""),
            lat=lat,
            lng=lng,
            address=item.get("address") or {},
            type=item.get("type"),
            importance=item.get("importance"),
        ))

    logger.debug("Search for '%s' found %d results", query, len(places))
    return places


def is_in_service_area(lat: float, lng: float) -> bool:
    """Coverage check against the SERVICE_BOUNDS box (all of India)."""
    min_lat, max_lat, min_lng, max_lng = config.SERVICE_BOUNDS
    return min_lat <= lat <= max_lat and min_lng <= lng <= max_lng

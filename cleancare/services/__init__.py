"""
Services Package for CleanCare
==============================

This package contains the business logic behind the API routes. Routes parse
and validate HTTP input, then call into these modules with a database session;
services never touch the request or response objects.

Available Services:
-------------------
- **pricing**: Cart arithmetic, coupons and money rounding
- **catalog**: Service catalog with the built-in default and a TTL cache
- **users**: Customer ID generation and customer lookup
- **bookings**: Booking creation, listing, rider acceptance and status changes
- **riders**: Rider profiles, availability and earnings statistics
- **addresses**: Saved customer addresses
- **geo**: Distance helpers
- **exceptions**: Domain errors that routes map to HTTP status codes

Usage:
------
    from cleancare.services import bookings
    booking = bookings.create_booking(db, payload)
"""

from . import exceptions
from . import geo
from . import pricing
from . import catalog
from . import users
from . import bookings
from . import riders
from . import addresses

__all__ = [
    "exceptions",
    "geo",
    "pricing",
    "catalog",
    "users",
    "bookings",
    "riders",
    "addresses",
]

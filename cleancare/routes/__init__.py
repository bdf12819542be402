"""
Routes Package for CleanCare
============================

This package contains all API route definitions organized by domain. Each
module defines a FastAPI APIRouter with related endpoints grouped together.

Architecture Overview:
----------------------
**Customer-Facing Routes:**
- auth.py: OTP login, user persistence, bearer-token identity
- bookings.py: Create, list, accept, progress and cancel bookings
- addresses.py: Saved addresses of the signed-in user
- catalog.py: Service catalog and cart quotes
- location.py: Reverse geocoding, place search, service areas
- push.py: Web push subscriptions

**Rider Routes:**
- riders.py: Rider profiles, availability, stats and admin review

Router Registration:
--------------------
All routers are registered in main.py under the ``/api`` prefix:

    api_router = APIRouter(prefix="/api")
    api_router.include_router(auth_router)
    api_router.include_router(bookings_router)
    ...

Route Dependencies:
-------------------
- get_db: Database session for queries
- get_current_user: Bearer-token authentication (addresses, /auth/me)
- verify_admin_credentials: Admin HTTP Basic authentication
- limiter.limit(): Rate limiting (send-otp)

Error Handling:
---------------
Routes raise HTTPException for request-level problems. Service-layer
failures are BookingError subclasses rendered by the handler in main.py:
- 400: Bad request (validation errors)
- 401: Missing or invalid credentials
- 403: Not allowed to touch this resource
- 404: Not found
- 409: Conflict (booking already taken, duplicate rider profile)
- 429: Too many requests
"""

from .auth import auth_router, limiter
from .bookings import bookings_router
from .addresses import addresses_router
from .riders import riders_router
from .catalog import catalog_router
from .location import location_router
from .push import push_router

__all__ = [
    "auth_router",
    "limiter",
    "bookings_router",
    "addresses_router",
    "riders_router",
    "catalog_router",
    "location_router",
    "push_router",
]

"""
Schemas Package for CleanCare
=============================

Pydantic models used for API request validation and response serialization.

Schema Organization:
--------------------
- **auth.py**: OTP login and user persistence schemas
- **bookings.py**: Booking creation, rider actions and booking responses
- **addresses.py**: Saved address schemas and the ``{data, error}`` envelope
- **riders.py**: Rider profile, status and review schemas
- **catalog.py**: Service catalog edits and cart quotes
- **location.py**: Coordinates and service-area checks
- **push.py**: Web push subscriptions

Naming Conventions:
-------------------
- *Out: Response models (e.g., BookingOut) - what API returns
- *Create: Request models for POST (e.g., BookingCreate)
- *Update: Request models for PUT/PATCH (e.g., AddressUpdate)
- *Request: Other request bodies (e.g., SendOTPRequest)
- *Response: Response envelopes (e.g., BookingListResponse)

Request models keep required business fields Optional so the routes can
answer with the same 400 messages the clients already understand instead
of FastAPI's generic 422.

Most response models use ``model_config = ConfigDict(from_attributes=True)``
so they can be built directly from SQLAlchemy rows:

    return BookingOut.model_validate(booking)
"""

from .auth import (
    SendOTPRequest,
    VerifyOTPRequest,
    SaveUserRequest,
    PhoneRequest,
    UserOut,
)

from .bookings import (
    BookingCreate,
    BookingAcceptRequest,
    BookingStatusRequest,
    BookingCancelRequest,
    BookingOut,
    BookingResponse,
    BookingListResponse,
    BookingPageResponse,
    Pagination,
)

from .addresses import (
    AddressCreate,
    AddressUpdate,
    AddressOut,
)

from .riders import (
    RiderProfileRequest,
    RiderStatusRequest,
    RiderReviewRequest,
    RiderOut,
)

from .catalog import (
    ServiceUpdate,
    QuoteItem,
    QuoteRequest,
)

from .location import (
    Coordinates,
    ServiceAreaCheckRequest,
)

from .push import (
    PushSubscriptionCreate,
    PushUnsubscribeRequest,
)

__all__ = [
    # Auth
    "SendOTPRequest",
    "VerifyOTPRequest",
    "SaveUserRequest",
    "PhoneRequest",
    "UserOut",
    # Bookings
    "BookingCreate",
    "BookingAcceptRequest",
    "BookingStatusRequest",
    "BookingCancelRequest",
    "BookingOut",
    "BookingResponse",
    "BookingListResponse",
    "BookingPageResponse",
    "Pagination",
    # Addresses
    "AddressCreate",
    "AddressUpdate",
    "AddressOut",
    # Riders
    "RiderProfileRequest",
    "RiderStatusRequest",
    "RiderReviewRequest",
    "RiderOut",
    # Catalog
    "ServiceUpdate",
    "QuoteItem",
    "QuoteRequest",
    # Location
    "Coordinates",
    "ServiceAreaCheckRequest",
    # Push
    "PushSubscriptionCreate",
    "PushUnsubscribeRequest",
]

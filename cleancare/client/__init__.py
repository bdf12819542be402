"""
Python client for the CleanCare API with local fallback.

- api_client.py: requests-based client returning ApiResponse
- local_store.py: JSON-file key/value store
- booking_client.py: AdaptiveBookingClient (local-first writes, pending sync)
- auth_client.py: AdaptiveAuthClient (OTP login, cached user, profile saves)
- address_client.py: AdaptiveAddressClient (saved addresses with offline copy)
- cart.py: Cart priced like the server prices quotes
"""

from .api_client import ApiClient, ApiResponse
from .local_store import LocalStore
from .booking_client import AdaptiveBookingClient, SyncReport, customer_reference
from .auth_client import AdaptiveAuthClient
from .address_client import AdaptiveAddressClient
from .cart import Cart, UnknownServiceError

__all__ = [
    "ApiClient",
    "ApiResponse",
    "LocalStore",
    "AdaptiveBookingClient",
    "SyncReport",
    "customer_reference",
    "AdaptiveAuthClient",
    "AdaptiveAddressClient",
    "Cart",
    "UnknownServiceError",
]

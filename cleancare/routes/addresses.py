"""
Address Routes for CleanCare
============================

Saved addresses of the signed-in user. All endpoints require a bearer token
from ``/api/auth/verify-otp`` and answer with ``{"data": ..., "error": null}``.

Endpoints:
----------
- GET /addresses: Active addresses, default first
- GET /addresses/default: The default address (or null)
- POST /addresses: Save a new address (201)
- PUT /addresses/{id}: Edit an address
- DELETE /addresses/{id}: Remove an address (soft delete)
- PATCH /addresses/{id}/set-default: Make an address the default
- GET /addresses/customer/{customer_id}: Addresses by customer reference
- GET /addresses/customer/{customer_id}/default

The customer-reference endpoints accept the same spellings as bookings
(``user_<phone>``, phone, id, ``CC...``) but only for the caller's own account.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..db import get_db
from ..models import User
from ..schemas.addresses import AddressCreate, AddressOut, AddressUpdate
from ..services import addresses as address_service
from ..services import users


logger = logging.getLogger(__name__)

addresses_router = APIRouter(prefix="/addresses", tags=["Addresses"])


def _envelope(data):
    if isinstance(data, list):
        return {"data": [AddressOut.model_validate(a) for a in data], "error": None}
    return {"data": AddressOut.model_validate(data) if data is not None else None, "error": None}


def _own_customer(db: Session, customer_id: str, user: User) -> None:
    customer = users.resolve_customer(db, customer_id)
    if customer is not None and customer.id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


@addresses_router.get("")
def list_addresses(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _envelope(address_service.list_addresses(db, user.id))


@addresses_router.get("/default")
def default_address(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _envelope(address_service.get_default(db, user.id))


@addresses_router.post("", status_code=status.HTTP_201_CREATED)
def create_address(
    payload: AddressCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    address = address_service.create_address(db, user, payload.model_dump())
    return _envelope(address)


@addresses_router.put("/{address_id}")
def update_address(
    address_id: int,
    payload: AddressUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    address = address_service.update_address(db, user, address_id, payload.model_dump(exclude_unset=True))
    return _envelope(address)


@addresses_router.delete("/{address_id}")
def delete_address(
    address_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    address_service.delete_address(db, user, address_id)
    return {"data": {"message": "Address deleted successfully"}, "error": None}


@addresses_router.patch("/{address_id}/set-default")
def set_default_address(
    address_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _envelope(address_service.set_default(db, user, address_id))


@addresses_router.get("/customer/{customer_id}")
def customer_addresses(
    customer_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _own_customer(db, customer_id, user)
    return _envelope(address_service.list_for_customer(db, customer_id))


@addresses_router.get("/customer/{customer_id}/default")
def customer_default_address(
    customer_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _own_customer(db, customer_id, user)
    return _envelope(address_service.default_for_customer(db, customer_id))

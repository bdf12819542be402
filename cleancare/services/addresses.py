"""
Saved customer addresses.

A user has any number of active addresses and at most one active default.
Saving an address with ``is_default`` clears the flag on the user's other
addresses in the same transaction. Deletes are soft: the row is marked
``deleted`` and drops out of every listing.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..models import Address, User
from ..validators import is_valid_pincode
from .exceptions import NotFoundError, ValidationFailedError
from . import users


logger = logging.getLogger(__name__)

ADDRESS_TYPES = ("home", "work", "other")

REQUIRED_FIELDS = {
    "title": "Address title is required",
    "full_address": "Full address is required",
    "area": "Area is required",
    "city": "City is required",
    "state": "State is required",
    "pincode": "Pincode is required",
}

EDITABLE_FIELDS = (
    "title",
    "full_address",
    "area",
    "city",
    "state",
    "pincode",
    "landmark",
    "address_type",
    "contact_person",
    "contact_phone",
    "delivery_instructions",
)


def _validate(data: Dict[str, Any]) -> None:
    errors = [message for field, message in REQUIRED_FIELDS.items() if not (data.get(field) or "").strip()]
    pincode = data.get("pincode")
    if pincode and not is_valid_pincode(pincode):
        errors.append("Please enter a valid 6-digit pincode")
    if data.get("address_type") and data["address_type"] not in ADDRESS_TYPES:
        errors.append("Address type must be home, work or other")
    if errors:
        raise ValidationFailedError(", ".join(errors))


def _active(db: Session, user_id: int):
    return db.query(Address).filter(Address.user_id == user_id, Address.status == "active")


def _clear_default(db: Session, user_id: int, keep_id: Optional[int] = None) -> None:
    query = _active(db, user_id).filter(Address.is_default.is_(True))
    if keep_id is not None:
        query = query.filter(Address.id != keep_id)
    for other in query.all():
        other.is_default = False


def list_addresses(db: Session, user_id: int) -> List[Address]:
    """Active addresses, default first, newest first."""
    return (
        _active(db, user_id)
        .order_by(Address.is_default.desc(), Address.created_at.desc(), Address.id.desc())
        .all()
    )


def get_default(db: Session, user_id: int) -> Optional[Address]:
    return _active(db, user_id).filter(Address.is_default.is_(True)).first()


def _get_owned(db: Session, user_id: int, address_id: int) -> Address:
    address = _active(db, user_id).filter(Address.id == address_id).first()
    if address is None:
        raise NotFoundError("Address not found")
    return address


def _apply_coordinates(address: Address, coordinates: Optional[Dict[str, Any]]) -> None:
    if coordinates:
        address.lat = coordinates.get("lat")
        address.lng = coordinates.get("lng")


def create_address(db: Session, user: User, data: Dict[str, Any]) -> Address:
    _validate(data)

    address = Address(user_id=user.id, status="active")
    for field in EDITABLE_FIELDS:
        if data.get(field) is not None:
            setattr(address, field, data[field].strip() if isinstance(data[field], str) else data[field])
    _apply_coordinates(address, data.get("coordinates"))
    address.is_default = bool(data.get("is_default"))

    if address.is_default:
        _clear_default(db, user.id)
    db.add(address)
    db.commit()
    db.refresh(address)
    logger.info("Address %s saved for user %s", address.id, user.id)
    return address


def update_address(db: Session, user: User, address_id: int, data: Dict[str, Any]) -> Address:
    address = _get_owned(db, user.id, address_id)

    merged = {field: getattr(address, field) for field in EDITABLE_FIELDS}
    merged.update({k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None})
    _validate(merged)

    for field in EDITABLE_FIELDS:
        setattr(address, field, merged[field])
    _apply_coordinates(address, data.get("coordinates"))

    if data.get("is_default") is True:
        _clear_default(db, user.id, keep_id=address.id)
        address.is_default = True
    elif data.get("is_default") is False:
        address.is_default = False

    db.commit()
    db.refresh(address)
    return address


def delete_address(db: Session, user: User, address_id: int) -> None:
    address = _get_owned(db, user.id, address_id)
    address.status = "deleted"
    address.is_default = False
    address.deleted_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("Address %s deleted for user %s", address_id, user.id)


def set_default(db: Session, user: User, address_id: int) -> Address:
    address = _get_owned(db, user.id, address_id)
    _clear_default(db, user.id, keep_id=address.id)
    address.is_default = True
    db.commit()
    db.refresh(address)
    return address


def list_for_customer(db: Session, customer_ref: str) -> List[Address]:
    customer = users.resolve_customer(db, customer_ref)
    return list_addresses(db, customer.id) if customer else []


def default_for_customer(db: Session, customer_ref: str) -> Optional[Address]:
    customer = users.resolve_customer(db, customer_ref)
    return get_default(db, customer.id) if customer else None

"""
Customer accounts.

Customer IDs
------------
Every user gets a human-readable ``customer_id``:

    CC<last 4 phone digits><last 6 timestamp digits><2 random digits><attempt>

e.g. ``CC3210123456070``. Up to 10 candidates (attempt 0-9) are tried against
the database; if all collide a UUID-based fallback is used.

Customer References
-------------------
Booking endpoints accept several spellings of "who is the customer":

- ``user_<phone>``: the adaptive client's local user id
- a 10+ digit phone number
- a shorter all-digit string: the user's primary key
- anything else: the ``customer_id`` code (``CC...``)
"""

import logging
import random
import re
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..models import User


logger = logging.getLogger(__name__)

CUSTOMER_ID_ATTEMPTS = 10
PHONE_REF_PATTERN = re.compile(r"^\d{10,}$")


def default_name(phone: str) -> str:
    return f"User {phone[-4:]}"


def generate_customer_id(db: Session, phone: str) -> str:
    phone_digits = phone[-4:]
    timestamp = str(int(time.time() * 1000))[-6:]
    random_num = f"{random.randint(0, 98):02d}"

    for attempt in range(CUSTOMER_ID_ATTEMPTS):
        candidate = f"CC{phone_digits}{timestamp}{random_num}{attempt}"
        exists = db.query(User.id).filter(User.customer_id == candidate).first()
        if exists is None:
            return candidate

    fallback = f"CC{uuid.uuid4().hex[-8:].upper()}"
    logger.warning("Customer ID collisions for %s, using fallback %s", phone, fallback)
    return fallback


def _sync_names(user: User) -> None:
    if user.name and not user.full_name:
        user.full_name = user.name
    if user.full_name and not user.name:
        user.name = user.full_name


def create_user(
    db: Session,
    phone: str,
    name: Optional[str] = None,
    email: Optional[str] = None,
    user_type: str = "customer",
    verified: bool = False,
    commit: bool = True,
) -> User:
    user = User(
        phone=phone,
        customer_id=generate_customer_id(db, phone),
        name=name,
        email=email or None,
        user_type=user_type,
        is_verified=verified,
        phone_verified=verified,
        preferences={},
    )
    _sync_names(user)
    db.add(user)
    if commit:
        db.commit()
        db.refresh(user)
    logger.info("Created user %s (%s)", user.customer_id, phone)
    return user


def get_by_phone(db: Session, phone: str) -> Optional[User]:
    return db.query(User).filter(User.phone == phone).first()


def touch_login(db: Session, user: User) -> User:
    user.last_login = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return user


def verify_phone_login(db: Session, phone: str, name: Optional[str]) -> Optional[User]:
    """
    Complete an OTP login.

    Returns the verified user, or None when the phone is new and no name was
    supplied.
    """
    user = get_by_phone(db, phone)
    if user is None:
        if not name:
            return None
        return create_user(db, phone, name=name.strip(), verified=True)

    user.is_verified = True
    user.phone_verified = True
    if not user.name and name:
        user.name = name.strip()
    _sync_names(user)
    return touch_login(db, user)


def upsert_user(
    db: Session,
    phone: str,
    name: Optional[str] = None,
    email: Optional[str] = None,
    user_type: str = "customer",
    is_verified: bool = True,
    phone_verified: bool = True,
    preferences: Optional[Dict[str, Any]] = None,
) -> User:
    """Create or update a user by phone (frontend persistence endpoints)."""
    user = get_by_phone(db, phone)
    if user is None:
        user = create_user(
            db,
            phone,
            name=name or default_name(phone),
            email=email,
            user_type=user_type,
            verified=is_verified,
            commit=False,
        )
        user.phone_verified = phone_verified
        if preferences:
            user.preferences = preferences
        db.commit()
        db.refresh(user)
        return user

    if name:
        user.name = name
        user.full_name = name
    if email:
        user.email = email
    if preferences:
        user.preferences = {**(user.preferences or {}), **preferences}
    user.is_verified = is_verified
    user.phone_verified = phone_verified
    return touch_login(db, user)


def _phone_from_ref(customer_ref: str) -> Optional[str]:
    ref = str(customer_ref).strip()
    if ref.startswith("user_"):
        ref = ref[len("user_"):]
    if PHONE_REF_PATTERN.match(ref):
        return ref
    return None


def resolve_customer(db: Session, customer_ref: Any, auto_create: bool = False) -> Optional[User]:
    """
    Find the user a booking endpoint refers to.

    With ``auto_create`` an unknown phone gets a verified customer record
    named ``User <last4>``.
    """
    if customer_ref is None or str(customer_ref).strip() == "":
        return None

    ref = str(customer_ref).strip()
    phone = _phone_from_ref(ref)
    if phone:
        user = get_by_phone(db, phone)
        if user is None and auto_create:
            logger.info("Auto-creating customer for phone %s", phone)
            user = create_user(db, phone, name=default_name(phone), verified=True)
        return user

    if ref.isdigit():
        return db.get(User, int(ref))

    return db.query(User).filter(User.customer_id == ref).first()


def resolve_customer_ids(db: Session, customer_ref: Any) -> List[int]:
    """All user ids a customer reference may stand for (no auto-create)."""
    user = resolve_customer(db, customer_ref)
    return [user.id] if user else []

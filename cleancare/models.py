from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Boolean,
    JSON,
    DateTime,
    ForeignKey,
    Text,
    Index,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(String, unique=True, nullable=False, index=True)  # e.g. CC3210123456070
    phone = Column(String, unique=True, nullable=False, index=True)  # 10-digit Indian mobile
    name = Column(String, nullable=True)
    full_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    user_type = Column(String, nullable=False, default="customer", index=True)  # customer/provider/rider
    profile_image = Column(String, nullable=False, default="")
    is_verified = Column(Boolean, nullable=False, default=False)
    phone_verified = Column(Boolean, nullable=False, default=False)
    email_verified = Column(Boolean, nullable=False, default=False)
    address = Column(String, nullable=False, default="")
    preferences = Column(JSON, nullable=False, default=dict)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    addresses = relationship("Address", back_populates="user", cascade="all, delete-orphan")
    rider_profile = relationship("Rider", back_populates="user", uselist=False, cascade="all, delete-orphan")


class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    full_address = Column(String, nullable=False)
    area = Column(String, nullable=False)
    city = Column(String, nullable=False)
    state = Column(String, nullable=False)
    pincode = Column(String, nullable=False, index=True)
    landmark = Column(String, nullable=False, default="")
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    address_type = Column(String, nullable=False, default="home")  # home/work/other
    contact_person = Column(String, nullable=False, default="")
    contact_phone = Column(String, nullable=False, default="")
    delivery_instructions = Column(String, nullable=False, default="")
    status = Column(String, nullable=False, default="active")  # active/deleted
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="addresses")

    __table_args__ = (
        Index("ix_addresses_user_default", "user_id", "is_default"),
    )


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    custom_order_id = Column(String, unique=True, nullable=False, index=True)  # e.g. A20250100001
    client_reference = Column(String, unique=True, nullable=True)  # idempotency key from the client

    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    customer_code = Column(String, nullable=False, index=True)
    rider_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    service = Column(String, nullable=False)
    service_type = Column(String, nullable=False)
    services = Column(JSON, nullable=False, default=list)  # list of service names
    scheduled_date = Column(String, nullable=False, index=True)
    scheduled_time = Column(String, nullable=False)
    provider_name = Column(String, nullable=False)

    address = Column(String, nullable=False)
    address_details = Column(JSON, nullable=True)  # flatNo, street, landmark, village, city, pincode, type
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    additional_details = Column(Text, nullable=False, default="")

    total_price = Column(Float, nullable=False)
    discount_amount = Column(Float, nullable=False, default=0.0)
    final_amount = Column(Float, nullable=False)
    charges_breakdown = Column(JSON, nullable=True)

    payment_status = Column(String, nullable=False, default="pending", index=True)  # pending/paid/failed/refunded
    status = Column(String, nullable=False, default="pending", index=True)  # pending/confirmed/in_progress/completed/cancelled
    estimated_duration = Column(Integer, nullable=False, default=60)  # minutes
    special_instructions = Column(Text, nullable=False, default="")

    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    customer = relationship("User", foreign_keys=[customer_id])
    rider = relationship("User", foreign_keys=[rider_id])
    items = relationship("BookingItem", back_populates="booking", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_bookings_status_created_at", "status", "created_at"),
    )


class BookingItem(Base):
    """One priced line of a booking (the cart line at checkout time)."""
    __tablename__ = "booking_items"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    service_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)

    booking = relationship("Booking", back_populates="items")


class Rider(Base):
    __tablename__ = "riders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    vehicle_type = Column(String, nullable=False)  # motorcycle/bicycle/car/van/truck
    vehicle_number = Column(String, nullable=False)
    license_number = Column(String, nullable=False)
    is_online = Column(Boolean, nullable=False, default=False, index=True)
    current_location = Column(String, nullable=False, default="")
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    rating = Column(Float, nullable=False, default=5.0)
    completed_rides = Column(Integer, nullable=False, default=0)
    total_earnings = Column(Float, nullable=False, default=0.0)
    status = Column(String, nullable=False, default="pending", index=True)  # pending/approved/suspended/rejected
    documents = Column(JSON, nullable=False, default=dict)
    bank_details = Column(JSON, nullable=False, default=dict)
    availability = Column(JSON, nullable=False, default=dict)  # weekday -> bool
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="rider_profile")


# --- Service catalog ---

class ServiceCategory(Base):
    __tablename__ = "service_categories"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String, unique=True, nullable=False)  # e.g. "wash-fold"
    name = Column(String, nullable=False)
    icon = Column(String, nullable=False, default="")
    color = Column(String, nullable=False, default="from-blue-500 to-blue-600")
    description = Column(Text, nullable=False, default="")
    enabled = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)

    services = relationship(
        "ServiceItem",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="ServiceItem.sort_order",
    )


class ServiceItem(Base):
    __tablename__ = "service_items"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String, unique=True, nullable=False)  # e.g. "wf-regular"
    category_id = Column(Integer, ForeignKey("service_categories.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    subcategory = Column(String, nullable=True)
    price = Column(Float, nullable=False)
    unit = Column(String, nullable=False, default="per piece")
    description = Column(Text, nullable=False, default="")
    min_quantity = Column(Integer, nullable=False, default=1)
    popular = Column(Boolean, nullable=False, default=False)
    enabled = Column(Boolean, nullable=False, default=True)
    image = Column(String, nullable=False, default="")
    sort_order = Column(Integer, nullable=False, default=0)

    category = relationship("ServiceCategory", back_populates="services")


class PushSubscription(Base):
    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    endpoint = Column(String, unique=True, nullable=False)
    keys = Column(JSON, nullable=False, default=dict)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

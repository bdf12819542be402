import os

# db.py refuses to import without a database URL
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import cleancare.db as db
import cleancare.config as config_mod
from cleancare.auth import create_access_token
from cleancare.main import app
from cleancare.models import Base, User
from cleancare.otp import otp_manager
from cleancare.routes import limiter
from cleancare.services import catalog

# Test admin credentials
TEST_ADMIN_USERNAME = "testadmin"
TEST_ADMIN_PASSWORD = "testpassword123"


@pytest.fixture
def session_factory():
    """In-memory SQLite shared by every connection (StaticPool)."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory, monkeypatch):
    """Shared FastAPI TestClient using an in-memory SQLite DB.

    Sets up test admin credentials, disables rate limiting and clears the
    OTP store and catalog cache around each test.
    """
    monkeypatch.setattr(config_mod, "ADMIN_USERNAME", TEST_ADMIN_USERNAME)
    monkeypatch.setattr(config_mod, "ADMIN_PASSWORD", TEST_ADMIN_PASSWORD)

    # Patch the db module used by the app
    monkeypatch.setattr(db, "SessionLocal", session_factory)

    def override_get_db():
        db_sess = session_factory()
        try:
            yield db_sess
        finally:
            db_sess.close()

    app.dependency_overrides[db.get_db] = override_get_db

    limiter.enabled = False
    limiter.reset()
    otp_manager.clear()
    catalog.invalidate_cache()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    otp_manager.clear()
    catalog.invalidate_cache()


@pytest.fixture
def admin_auth():
    """Returns HTTP Basic Auth tuple for admin endpoints."""
    return (TEST_ADMIN_USERNAME, TEST_ADMIN_PASSWORD)


@pytest.fixture
def make_user(session_factory):
    """Create a user directly in the test database."""
    def _make(phone="9876543210", name="Asha Rao", user_type="customer", customer_id=None):
        session = session_factory()
        try:
            user = User(
                phone=phone,
                customer_id=customer_id or f"CC{phone[-4:]}000000000",
                name=name,
                full_name=name,
                user_type=user_type,
                is_verified=True,
                phone_verified=True,
                preferences={},
            )
            session.add(user)
            session.commit()
            session.refresh(user)
            session.expunge(user)
            return user
        finally:
            session.close()
    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers


@pytest.fixture
def booking_payload():
    def _payload(**overrides):
        payload = {
            "customer_id": "user_9876543210",
            "service": "Wash & Fold",
            "service_type": "home-service",
            "services": ["Wash & Fold"],
            "scheduled_date": "2026-03-14",
            "scheduled_time": "10:00",
            "provider_name": "CleanCare Pro",
            "address": "12 MG Road, Bengaluru",
            "coordinates": {"lat": 12.9716, "lng": 77.5946},
            "total_price": 250,
        }
        payload.update(overrides)
        return payload
    return _payload

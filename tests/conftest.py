"""
Pytest configuration: use SQLite in-memory DB so tests run without PostgreSQL.

Strategy: Set DATABASE_URL=sqlite:// BEFORE app.db is imported.
db.py detects in-memory SQLite and shares one connection across threads, so
the TestClient's worker threads and the test's own session see the same data.
"""
import os

# MUST be set before any app module is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EXPIRY_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["SEED_ON_STARTUP"] = "false"
os.environ["BUSINESS_TIMEZONE"] = "UTC"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("SEED_ADMIN_PASSWORD", "admin-secret")

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

# Now safe to import, db.py will use SQLite
from app.db import Base, SessionLocal, engine
from app.main import app
from app.addresses import create_address
from app.clock import utcnow
from app.identity import register
from app.models import Appliance, ApplianceType, Role
from app.profiles import create_technician_profile
from app.scheduling import create_service_request
from app.security import create_access_token

# Create all tables in the in-memory SQLite DB
Base.metadata.create_all(bind=engine)

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    # Context manager runs startup, which binds the notification loop
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def tomorrow_at():
    """tomorrow_at(14, 20) -> naive UTC datetime tomorrow at 14:20."""

    def _at(hour: int, minute: int = 0, days: int = 1):
        day = utcnow() + timedelta(days=days)
        return day.replace(hour=hour, minute=minute, second=0, microsecond=0)

    return _at


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _headers


# ── Reference data ──────────────────────────────────────────────────────────

@pytest.fixture
def fridge_type(db):
    appliance_type = ApplianceType(name="refrigerator")
    db.add(appliance_type)
    db.commit()
    return appliance_type


@pytest.fixture
def oven_type(db):
    appliance_type = ApplianceType(name="oven")
    db.add(appliance_type)
    db.commit()
    return appliance_type


@pytest.fixture
def appliance(db, fridge_type):
    item = Appliance(name="French Door Refrigerator", brand="Whirlpool", model="WRF555SDFZ", type_id=fridge_type.id)
    db.add(item)
    db.commit()
    return item


# ── Users ───────────────────────────────────────────────────────────────────

@pytest.fixture
def client_user(db):
    return register(db, "Carla Client", "carla@myhometech.com", PASSWORD, Role.CLIENT)


@pytest.fixture
def other_client(db):
    return register(db, "Oscar Other", "oscar@myhometech.com", PASSWORD, Role.CLIENT)


@pytest.fixture
def admin_user(db):
    return register(db, "Ada Admin", "ada@myhometech.com", PASSWORD, Role.ADMIN)


@pytest.fixture
def technician(db, fridge_type):
    user = register(db, "Tomas Tech", "tomas@myhometech.com", PASSWORD, Role.TECHNICIAN)
    create_technician_profile(db, user.id, "TEC-001", experience_years=5, specialty_ids=[fridge_type.id])
    return user


@pytest.fixture
def second_technician(db, fridge_type):
    user = register(db, "Bea Builder", "bea@myhometech.com", PASSWORD, Role.TECHNICIAN)
    create_technician_profile(db, user.id, "TEC-002", experience_years=2, specialty_ids=[fridge_type.id])
    return user


# ── Addresses and requests ──────────────────────────────────────────────────

@pytest.fixture
def address(db, client_user):
    return create_address(
        db, client_user.id,
        street="Main St", number="42", neighborhood="Centro", city="Springfield",
        state="IL", postal_code="62701", country="US",
    )


@pytest.fixture
def make_request(db, client_user, appliance, address, tomorrow_at):
    def _make(hour: int = 10, minute: int = 0, days: int = 1, description: str = "Fridge is not cooling"):
        return create_service_request(
            db, client_user.id, appliance.id, address.id, description, tomorrow_at(hour, minute, days)
        )

    return _make


@pytest.fixture
def pending_request(make_request):
    return make_request()

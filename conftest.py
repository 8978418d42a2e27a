# conftest.py
import os

# must be set before roms.config is imported
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("APP_SECRET", "test-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from roms.db import Base, SessionLocal, engine
from roms.deps import Principal
from roms.main import app
from roms.models.core import MenuItem, Role
from roms.util.security import create_token

Base.metadata.create_all(bind=engine)


@pytest.fixture(scope="session")
def base_url():
    return "http://testserver"

@pytest.fixture(scope="session")
def client(base_url):
    with TestClient(app, base_url=base_url) as c:
        yield c

@pytest.fixture(scope="session")
def rng_suffix():
    import random, string
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=6))

@pytest.fixture(scope="session")
def customer_id(rng_suffix):
    return f"cust-{rng_suffix}"

@pytest.fixture(scope="session")
def auth_headers(customer_id):
    return {"Authorization": f"Bearer {create_token(customer_id, 'customer')}"}

@pytest.fixture(scope="session")
def other_headers(rng_suffix):
    return {"Authorization": f"Bearer {create_token(f'other-{rng_suffix}', 'customer')}"}

@pytest.fixture(scope="session")
def staff_headers(rng_suffix):
    return {"Authorization": f"Bearer {create_token(f'staff-{rng_suffix}', 'staff')}"}


# ── service-level fixtures ──────────────────────────────────────────────────
@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.rollback()
        s.close()

@pytest.fixture
def customer():
    return Principal(sub="cust-1", role=Role.CUSTOMER)

@pytest.fixture
def staff():
    return Principal(sub="staff-1", role=Role.STAFF)

@pytest.fixture
def menu(db):
    """Two catalog items priced 200 and 150."""
    burger = MenuItem(name="Beef Burger", category="Beef", price=200)
    fries = MenuItem(name="Fries", category="Appetizer", price=150)
    db.add_all([burger, fries])
    db.commit()
    return {"burger": burger, "fries": fries}

"""
Shared fixtures: in-memory SQLite, fresh schema per test, one user of each
role (two riders for race scenarios) and a TestClient wired to the same DB.
"""
import os

# Must be set before config/database are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("REDIS_URL", None)

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine
import models  # noqa: F401
from models.user import User, UserType
from utils.security import create_access_token, hash_password

PASSWORD = "password123"
_PASSWORD_HASH = hash_password(PASSWORD)

# A Wednesday; its week starts Sunday 2024-05-05 00:00
NOW = datetime(2024, 5, 8, 12, 0, 0)


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _make_user(db, name, email, user_type):
    user = User(
        full_name=name,
        email=email,
        phone_number="+2348000000000",
        password_hash=_PASSWORD_HASH,
        user_type=user_type,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def customer(db):
    return _make_user(db, "Ada Customer", "ada@example.com", UserType.customer)


@pytest.fixture
def other_customer(db):
    return _make_user(db, "Bola Customer", "bola@example.com", UserType.customer)


@pytest.fixture
def rider(db):
    return _make_user(db, "Rider A", "rider.a@example.com", UserType.rider)


@pytest.fixture
def rider_b(db):
    return _make_user(db, "Rider B", "rider.b@example.com", UserType.rider)


@pytest.fixture
def admin(db):
    return _make_user(db, "Admin", "admin@example.com", UserType.admin)


def auth_headers(user):
    token = create_access_token({"sub": str(user.user_id), "user_type": user.user_type.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client():
    from app import app
    return TestClient(app)

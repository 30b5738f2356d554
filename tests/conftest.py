"""
Shared fixtures: an in-memory SQLite database per test, a TestClient wired
to it, and an outbox that captures OTP emails instead of sending them.
"""

import os

# Must be set before anything under app/ is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SECRET_KEY"] = "test-access-secret"
os.environ["REFRESH_SECRET_KEY"] = "test-refresh-secret"
os.environ["SENDER_EMAIL"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.core.jwt import create_access_token
from app.core.security import hash_password
from app.modules.auth.model import User, ROLE_ADMIN, ROLE_BUYER, ROLE_SELLER
from app.workers import celery_worker

PASSWORD = "secret1"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Every dispatched OTP email lands here as (email, otp, purpose)."""
    sent = []
    monkeypatch.setattr(
        celery_worker,
        "dispatch_otp_email",
        lambda email, otp, purpose="verify": sent.append((email, otp, purpose)),
    )
    return sent


@pytest.fixture
def make_user(db):
    def _make(username, role=ROLE_BUYER, password=PASSWORD, email=None, verified=True, active=True):
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            hashed_password=hash_password(password),
            role=role,
            is_active=active,
            is_verified=verified,
            token_version=0,
            otp_attempts=0,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def bearer():
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _headers


@pytest.fixture
def admin(make_user):
    return make_user("root", role=ROLE_ADMIN)


@pytest.fixture
def buyer(make_user):
    return make_user("bob", role=ROLE_BUYER)


@pytest.fixture
def seller(make_user):
    return make_user("sally", role=ROLE_SELLER)

"""
Test configuration and fixtures.
"""

import os
import warnings
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from passlib.hash import md5_crypt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from nayscake.api.deps import get_auth_provider
from nayscake.core.config import settings
from nayscake.db.database import Base, get_db
from nayscake.main import app
from nayscake.models.legacy_user import LegacyUser, Transaction

# Filter out deprecation warnings that are not actionable
warnings.filterwarnings("ignore", category=DeprecationWarning, module="pydantic.*")
warnings.filterwarnings("ignore", category=DeprecationWarning, module="passlib.*")


def get_test_database_url():
    """Use DATABASE_URL when set (CI), otherwise a private in-memory SQLite."""
    return os.environ.get("DATABASE_URL") or "sqlite://"


SQLALCHEMY_DATABASE_URL = get_test_database_url()

if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(SQLALCHEMY_DATABASE_URL, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override get_db dependency for testing."""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="session", autouse=True)
def setup_test_tables():
    """Create all tables once at the session start."""
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(autouse=True)
def clean_tables():
    """Empty every table after each test; the code under test commits."""
    yield
    session = TestingSessionLocal()
    try:
        session.query(Transaction).delete()
        session.query(LegacyUser).delete()
        session.commit()
    finally:
        session.close()


@pytest.fixture(autouse=True)
def passlib_legacy_auth(monkeypatch):
    """Verify legacy hashes in-process; test databases lack authenticate_user()."""
    monkeypatch.setattr(settings, "LEGACY_AUTH_MODE", "passlib")


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture(scope="function")
def db():
    """Create test database session."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def provider():
    """Auth provider double; create_user succeeds with a fixed id."""
    mock_provider = Mock()
    mock_provider.create_user.return_value = {
        "id": "ba_user_123",
        "username": "sari",
        "email": "sari@placeholder.local",
    }
    return mock_provider


@pytest.fixture(scope="function")
def client(provider):
    """Create test client wired to the mock auth provider."""
    app.dependency_overrides[get_auth_provider] = lambda: provider
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_auth_provider, None)


@pytest.fixture
def make_legacy_user(db):
    """Factory creating a committed legacy user with an md5-crypt password."""

    def _make(username="sari", password="rahasia", user_id=None):
        legacy_user = LegacyUser(
            username=username, password_hash=md5_crypt.hash(password)
        )
        if user_id is not None:
            legacy_user.id = user_id
        db.add(legacy_user)
        db.commit()
        db.refresh(legacy_user)
        return legacy_user

    return _make


@pytest.fixture
def make_transaction(db):
    """Factory creating a committed transaction owned by user_id."""

    def _make(user_id, total_price=25000):
        transaction = Transaction(user_id=str(user_id), total_price=total_price)
        db.add(transaction)
        db.commit()
        db.refresh(transaction)
        return transaction

    return _make

"""
Shared fixtures: an in-memory database per test and an admin API client
bound to it.
"""

import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.app import app
from api.dependencies import get_db
from config.settings import settings
from directory.models import AbnStatus, ApprovalStatus, Base, Business, Inquiry, utcnow

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory, monkeypatch):
    """API client with get_db pointed at the test database."""
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", ADMIN_TOKEN)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}", "X-Admin-User-ID": "admin-1"}


@pytest.fixture
def make_business(db):
    """Create and commit an approved business; keyword args override fields."""

    def _make(**fields):
        fields.setdefault("name", "Test Business")
        fields.setdefault("suburb", "Richmond")
        fields.setdefault("approval_status", ApprovalStatus.APPROVED)
        business = Business(**fields)
        db.add(business)
        db.commit()
        return business

    return _make


@pytest.fixture
def complete_business(make_business):
    """A listing that earns every scoring factor."""

    def _make(**fields):
        now = utcnow()
        values = dict(
            name="Complete Plumbing",
            bio="Family owned plumbing business servicing the inner east for over twenty years.",
            phone="0412 345 678",
            email="hello@completeplumbing.com.au",
            website="https://completeplumbing.com.au",
            address="1 Swan St, Richmond VIC 3121",
            abn="51 824 753 556",
            abn_status=AbnStatus.VERIFIED,
            latitude=-37.82,
            longitude=144.99,
            gallery=["https://img.example.com/1.jpg"],
            show_business_hours=True,
            updated_at=now,
            inquiries=[Inquiry(name="Customer", message="Quote please", created_at=now - timedelta(days=3))],
        )
        values.update(fields)
        return make_business(**values)

    return _make

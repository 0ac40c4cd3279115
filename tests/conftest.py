"""
Shared fixtures: an in-memory SQLite database, one user per role and a
FastAPI test client wired to the same session.
"""
import os
import tempfile

# Set environment variables before importing app modules
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="mangrove-uploads-"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models
from database import Base
from schemas import ReportCreate

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    """Create test database session."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db):
    """Factory for users; the password hash is a placeholder."""
    def _make_user(username, role=models.UserRole.community, is_active=True, **extra):
        user = models.User(
            username=username,
            email=f"{username}@example.com",
            hashed_password="not-a-real-hash",
            first_name=username.capitalize(),
            last_name="Tester",
            role=role,
            is_active=is_active,
            **extra,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def community_user(make_user):
    return make_user("uma")


@pytest.fixture
def other_community_user(make_user):
    return make_user("walt")


@pytest.fixture
def ngo_user(make_user):
    return make_user("vera", role=models.UserRole.ngo, organization="Mangrove Trust")


@pytest.fixture
def government_user(make_user):
    return make_user("gus", role=models.UserRole.government, organization="Coastal Authority")


@pytest.fixture
def researcher_user(make_user):
    return make_user("rita", role=models.UserRole.researcher, organization="Marine Lab")


@pytest.fixture
def report_payload():
    """Factory for valid report payloads."""
    def _payload(**overrides):
        data = {
            "title": "Oil sheen in the estuary",
            "description": "A wide oil sheen is spreading over the mangrove roots near the jetty.",
            "category": models.ReportCategory.pollution,
            "latitude": 19.07,
            "longitude": 72.87,
            "city": "Mumbai",
        }
        data.update(overrides)
        return ReportCreate(**data)
    return _payload

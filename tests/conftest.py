"""
Pytest configuration and shared fixtures.

Test environment variables are set here, before any app import, so the
cached settings and the SQLAlchemy engine pick them up.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_messages.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("RATE_LIMIT_SALT", "test-salt")

import pytest
from fastapi.testclient import TestClient

# Clear settings cache before any app imports to ensure test env vars are used
from app.config import get_settings
get_settings.cache_clear()

from app.main import app
from app.storage import SessionLocal, Base, engine


class FakeClock:
    """Millisecond clock controlled by the test."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database for each test."""
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    # Cleanup - drop all tables after test
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Database session against freshly created tables."""
    from app import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    """Replace the request clock used by POST /api/messages."""
    fake = FakeClock()
    monkeypatch.setattr("app.main.current_time_ms", fake)
    return fake

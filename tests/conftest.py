"""Test configuration and fixtures."""

from typing import Any, Dict, Generator
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from draft_sync.api import app
from draft_sync.auth import issue_token
from draft_sync.db.base import Base, get_db
from draft_sync.ratelimit import FixedWindowRateLimiter, RatePolicy, get_rate_limiter

TEST_DATABASE_URL = "sqlite:///:memory:"


class FakeClock:
    """Settable wall clock for rate-limit windows."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    from draft_sync.db import models  # noqa: F401

    test_engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(clock) -> FixedWindowRateLimiter:
    """Small budgets so tests can exhaust them quickly."""
    return FixedWindowRateLimiter(
        [
            RatePolicy("draft_autosave_minute", 3, 60),
            RatePolicy("draft_mutate_daily", 10, 86400),
        ],
        clock=clock,
    )


@pytest.fixture
def app_overrides(session_factory, rate_limiter) -> Generator[None, None, None]:
    """Point the app at the per-test database and limiter."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client(app_overrides) -> TestClient:
    return TestClient(app)


@pytest.fixture
def owner_id() -> str:
    return "user-123"


@pytest.fixture
def auth_headers(owner_id) -> Dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(owner_id)}"}


@pytest.fixture
def draft_key() -> str:
    return str(uuid4())


def _make_payload(**form_overrides: Any) -> Dict[str, Any]:
    form_data = {
        "title": "Moving sale",
        "description": "Everything must go.",
        "address": "12 Elm St",
        "city": "Portland",
        "state": "OR",
        "lat": 45.52,
        "lng": -122.68,
        "date_start": "2026-11-07",
        "time_start": "08:00",
        "tags": ["furniture", "tools"],
    }
    form_data.update(form_overrides)
    return {
        "formData": form_data,
        "photos": ["https://cdn.example.com/cover.jpg"],
        "items": [{"id": "tmp-1", "name": "Oak chair", "price": 25}],
        "currentStep": 2,
    }


@pytest.fixture
def make_payload():
    """Factory for realistic draft payloads with optional formData overrides."""
    return _make_payload


@pytest.fixture
def payload() -> Dict[str, Any]:
    return _make_payload()

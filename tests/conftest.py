"""Shared pytest fixtures for backend tests."""

import os

# Configure before any gyaan module reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["RATE_LIMIT_PER_MINUTE"] = "100000"
os.environ["RATE_LIMIT_PER_HOUR"] = "1000000"

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import gyaan.models  # noqa: F401
from gyaan.api.deps import get_clock, get_metrics_service, get_registry, get_store
from gyaan.database import Base
from gyaan.main import app
from gyaan.services.achievement_service import AchievementService
from gyaan.services.metrics_service import MetricsService
from gyaan.services.persistence import SqlPersistence
from gyaan.services.tracker_registry import TrackerRegistry
from gyaan.utils.cache import CacheService


# Use an in-memory SQLite database for testing with static pool
SQLALCHEMY_TEST_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool to keep connection alive
    echo=False,
)
TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

# Create all tables once at startup
Base.metadata.create_all(bind=engine)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture(scope="function")
def store():
    """Persistence client on the shared in-memory database."""
    return SqlPersistence(TestSession)


@pytest.fixture(scope="function")
def cache():
    """Fresh in-process cache (Redis disabled)."""
    return CacheService(url="")


@pytest.fixture(scope="function")
def clock():
    return FakeClock(datetime(2024, 1, 15, 10, 0, 0))


@pytest.fixture(scope="function")
def registry(store, cache, clock):
    return TrackerRegistry(store, cache, clock=clock, achievements=AchievementService())


@pytest.fixture(scope="function")
def metrics(cache):
    return MetricsService(cache=cache)


@pytest.fixture(scope="function")
def client(store, registry, metrics, clock):
    """FastAPI test client with overridden dependencies."""

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_metrics_service] = lambda: metrics
    app.dependency_overrides[get_clock] = lambda: clock

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

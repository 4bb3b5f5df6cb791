"""Pytest fixtures for hit counter tests."""

import os
import threading
from collections.abc import Generator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hitquota.cache.memory import InMemoryCache
from hitquota.counter import QuotaCounter
from hitquota.datastore import SqlDatastore
from hitquota.errors import RecordFailure
from hitquota.models import Base

# In-memory SQLite unless a real database is supplied
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite://")


class FakeClock:
    """Settable clock shared by the counter and the in-memory cache."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeDatastore:
    """Thread-safe hit log for counter tests."""

    def __init__(self) -> None:
        self.hits: list[tuple[str, datetime]] = []
        self.fail_writes = False
        self._lock = threading.Lock()

    def append_hit(self, user_id: str, timestamp: datetime) -> None:
        if self.fail_writes:
            raise RecordFailure("datastore down")
        with self._lock:
            self.hits.append((user_id, timestamp))

    def count_hits_since(self, user_id: str, lower: datetime, upper: datetime | None = None) -> int:
        with self._lock:
            return sum(
                1
                for uid, ts in self.hits
                if uid == user_id and ts >= lower and (upper is None or ts < upper)
            )


@pytest.fixture
def engine():
    """Create a fresh test database per test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def sql_datastore(session_factory) -> Generator[SqlDatastore, None, None]:
    datastore = SqlDatastore(session_factory)
    datastore.create_user("alice", "Australia/Sydney")
    datastore.create_user("bob")
    yield datastore


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2022, 11, 15, 12, 0, tzinfo=UTC))


@pytest.fixture
def cache(clock) -> InMemoryCache:
    return InMemoryCache(now_fn=clock)


@pytest.fixture
def datastore() -> FakeDatastore:
    return FakeDatastore()


@pytest.fixture
def counter(datastore, cache, clock) -> QuotaCounter:
    return QuotaCounter(datastore, cache, now_fn=clock, key_prefix="test", bound_upper=True, populate_retries=2)

"""
Shared pytest fixtures.

Uses a SQLite database file so no Postgres is required for tests.
DATABASE_URL is pinned before the app is imported so the default engine
(and anything built on SessionLocal) points at the same file.
"""
import os

os.environ["DATABASE_URL"] = "sqlite:///./test_context.db"
os.environ.setdefault("AUDIT_SINK", "log")

import uuid
from datetime import datetime, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401  (registers every table on Base.metadata)
from app.db.base import Base, get_db
from app.main import app
from app.services.audit_log import AuditLog, MemoryAuditSink, get_audit_log
from app.services.signals import MemoryTopic, RatingPoint

SQLITE_URL = "sqlite:///./test_context.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Fixed clock for unit tests.
NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def sink():
    return MemoryAuditSink()


@pytest.fixture()
def audit(sink):
    return AuditLog(sink)


@pytest.fixture()
def client(db, audit):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_log] = lambda: audit
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def subject():
    """A fresh subject key so rows never collide across tests."""
    return f"subj-{uuid.uuid4().hex[:12]}"


# ---------------------------------------------------------------------------
# In-memory SignalStore
# ---------------------------------------------------------------------------

class FakeSignalStore:
    """
    SignalStore backed by lists. Applies the same filters the SQL store does
    and counts calls so tests can assert which analyzers ran.
    """

    def __init__(
        self,
        ratings: Optional[list[RatingPoint]] = None,
        last_interaction: Optional[datetime] = None,
        topics: Optional[list[MemoryTopic]] = None,
        fail: tuple[str, ...] = (),
    ):
        self.ratings = ratings or []
        self.last_interaction = last_interaction
        self.topics = topics or []
        self.fail = set(fail)
        self.calls: list[str] = []

    def _maybe_fail(self, name: str):
        self.calls.append(name)
        if name in self.fail:
            raise ConnectionError(f"{name} unreachable")

    def ratings_since(self, subject_key, since):
        self._maybe_fail("ratings_since")
        return sorted(
            (p for p in self.ratings if p.recorded_at >= since),
            key=lambda p: p.recorded_at,
        )

    def latest_interaction(self, subject_key):
        self._maybe_fail("latest_interaction")
        return self.last_interaction

    def memory_topics(self, subject_key, kinds, since, limit):
        self._maybe_fail("memory_topics")
        rows = [t for t in self.topics if t.kind in set(kinds) and t.updated_at >= since]
        rows.sort(key=lambda t: t.updated_at, reverse=True)
        return rows[:limit]


@pytest.fixture()
def make_store():
    return FakeSignalStore

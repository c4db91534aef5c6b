"""Shared test fixtures and configuration."""
import asyncio
import os
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CALL_CONNECT_TIMEOUT", "5")

from sparkcall.main import app
from sparkcall.db.database import get_db
from sparkcall.db.models import Base
from sparkcall.services.call_session.loopback import LoopbackMediaDevices, LoopbackPeerLinkFactory
from sparkcall.services.call_session.manager import CallSessionManager
from sparkcall.services.persistence.calls import SqlCallRecordStore
from sparkcall.services.persistence.messages import MessageStore


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


async def wait_until(condition, timeout: float = 1.0) -> None:
    """Let background tasks run until condition() holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_db(test_db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def call_store(test_db, clock):
    """SQL call record store on the test database with a fake clock."""
    return SqlCallRecordStore(test_db, clock=clock)


@pytest.fixture
def message_store(test_db, clock):
    return MessageStore(test_db, clock=clock)


@pytest.fixture
def media_devices():
    return LoopbackMediaDevices()


@pytest.fixture
def peer_links():
    return LoopbackPeerLinkFactory()


@pytest.fixture
def manager(call_store, media_devices, peer_links, clock):
    """Call session manager wired to loopback media and the SQL store."""
    return CallSessionManager(
        call_store,
        media_devices,
        peer_links,
        connect_timeout=5.0,
        clock=clock,
    )


@pytest.fixture
def override_get_db(test_db):
    """Override get_db dependency with test database."""
    async def _override_get_db():
        yield test_db
    return _override_get_db


@pytest.fixture
async def api_client(override_get_db):
    """Async client that calls the app in-process on the test loop."""
    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def test_client():
    """FastAPI test client for endpoints that never touch the database."""
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()

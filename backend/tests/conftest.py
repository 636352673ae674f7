"""
Centralized Test Configuration.
"""

import base64

import pytest
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from backend.app.core.config import settings
from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.redis_client import get_redis

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_ENCRYPTION_KEY = base64.b64encode(b"0123456789abcdef0123456789abcdef").decode()

settings.encryption_key = TEST_ENCRYPTION_KEY
settings.storage_retry_backoff_seconds = 0.01


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)).lower():
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
async def engine():
    """Fresh schema per test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def redis_client():
    return MockRedis()


@pytest.fixture
async def client(session_factory, redis_client):
    """Async client for testing."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return redis_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.state.redis = redis_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


def make_token(user_id: str, role: str = "USER") -> str:
    return jwt.encode(
        {"user_id": user_id, "role": role, "sub": f"{user_id}@example.com"},
        settings.secret_key,
        algorithm=settings.algorithm,
    )


@pytest.fixture
def auth_headers():
    """Build bearer headers for a caller: ``auth_headers("alice")``."""

    def _headers(user_id: str = "user-1", role: str = "USER") -> dict:
        return {"Authorization": f"Bearer {make_token(user_id, role)}"}

    return _headers

"""
Failure Injection Tests.

Validates resilience against storage, cache and key-management failures.
"""

import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError

from backend.app.core.config import settings
from backend.app.core.crypto import decrypt_address, encrypt_address
from backend.app.core.exceptions import (
    EncryptionConfigError,
    StorageUnavailableError,
    TripNotFoundError,
)
from backend.app.core.redis_client import get_redis
from backend.app.core.reliability import is_transient_storage_error, run_unit_of_work
from backend.app.main import app
from backend.app.models.trip import Trip
from backend.app.services.trip_lifecycle import TripLifecycleManager
from backend.app.services.cache import TripSummaryCache


def fake_session():
    session = MagicMock()
    session.rollback = AsyncMock()
    return session


def connection_lost():
    return OperationalError("SELECT 1", {}, Exception("server closed the connection unexpectedly"))


# --- Unit of work ---

@pytest.mark.asyncio
async def test_transient_failure_is_retried():
    session = fake_session()
    calls = []

    async def work():
        calls.append(1)
        if len(calls) == 1:
            raise connection_lost()
        return "ok"

    assert await run_unit_of_work(session, "probe", work) == "ok"
    assert len(calls) == 2
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_exhausted_retries_report_storage_unavailable(monkeypatch):
    monkeypatch.setattr(settings, "storage_retry_attempts", 3)
    session = fake_session()
    calls = []

    async def work():
        calls.append(1)
        raise connection_lost()

    with pytest.raises(StorageUnavailableError) as exc_info:
        await run_unit_of_work(session, "probe", work)

    assert len(calls) == 3
    assert exc_info.value.status_code == 503
    assert exc_info.value.details == {"operation": "probe"}


@pytest.mark.asyncio
async def test_timeout_counts_as_transient(monkeypatch):
    monkeypatch.setattr(settings, "storage_retry_attempts", 2)
    monkeypatch.setattr(settings, "db_operation_timeout_seconds", 0.01)

    async def work():
        await asyncio.sleep(1)

    with pytest.raises(StorageUnavailableError):
        await run_unit_of_work(fake_session(), "slow", work)


@pytest.mark.asyncio
async def test_domain_errors_are_not_retried():
    session = fake_session()
    calls = []

    async def work():
        calls.append(1)
        raise TripNotFoundError(7)

    with pytest.raises(TripNotFoundError):
        await run_unit_of_work(session, "probe", work)

    assert len(calls) == 1
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_exhausted_named_errors_become_unavailable(monkeypatch):
    monkeypatch.setattr(settings, "storage_retry_attempts", 2)
    calls = []

    async def work():
        calls.append(1)
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    with pytest.raises(StorageUnavailableError) as exc_info:
        await run_unit_of_work(fake_session(), "start_trip", work, retry_on=(IntegrityError,))

    assert len(calls) == 2
    assert exc_info.value.status_code == 503
    assert isinstance(exc_info.value.__cause__, IntegrityError)


def test_transient_classification():
    assert is_transient_storage_error(connection_lost())
    assert is_transient_storage_error(asyncio.TimeoutError())
    assert not is_transient_storage_error(ValueError("bad"))
    assert not is_transient_storage_error(IntegrityError("INSERT", {}, Exception("dup")))


@pytest.mark.asyncio
async def test_open_trip_lookup_retries_lost_connection():
    session = fake_session()
    result = MagicMock()
    result.scalar_one_or_none.return_value = "open-trip"
    session.execute = AsyncMock(side_effect=[connection_lost(), result])

    assert await TripLifecycleManager.get_open_trip(session, "alice") == "open-trip"
    assert session.execute.await_count == 2
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_open_trip_lookup_reports_storage_unavailable(monkeypatch):
    monkeypatch.setattr(settings, "storage_retry_attempts", 2)
    session = fake_session()
    session.execute = AsyncMock(side_effect=connection_lost())

    with pytest.raises(StorageUnavailableError) as exc_info:
        await TripLifecycleManager.get_open_trip(session, "alice")

    assert exc_info.value.details == {"operation": "get_open_trip"}


# --- Cache ---

class BrokenRedis:
    async def get(self, key):
        raise RedisConnectionError("connection refused")

    async def set(self, key, value, ex=None):
        raise RedisConnectionError("connection refused")


@pytest.mark.asyncio
async def test_cache_outage_is_a_miss():
    cache = TripSummaryCache(BrokenRedis())
    assert await cache.get_distance("trip-distance:1:2:x") is None
    await cache.set_distance("trip-distance:1:2:x", 12.5)


@pytest.mark.asyncio
async def test_malformed_cache_entry_is_ignored(redis_client):
    redis_client.store["k"] = "not-a-number"
    assert await TripSummaryCache(redis_client).get_distance("k") is None


@pytest.mark.asyncio
async def test_disabled_cache_never_touches_redis(mocker):
    client = mocker.MagicMock()
    cache = TripSummaryCache(client, enabled=False)
    assert await cache.get_distance("k") is None
    await cache.set_distance("k", 1.0)
    client.get.assert_not_called()
    client.set.assert_not_called()


@pytest.mark.asyncio
async def test_leaderboard_survives_cache_outage(client, auth_headers):
    async def broken_redis():
        return BrokenRedis()

    app.dependency_overrides[get_redis] = broken_redis
    headers = auth_headers("alice")
    trip = (await client.post("/v1/trips/start-trip", json={}, headers=headers)).json()
    await client.post("/v1/trips/batch-ingest", json={
        "tripId": trip["id"],
        "points": [{"lat": 0.0, "lng": 0.0}, {"lat": 0.0, "lng": 0.01}],
    }, headers=headers)

    response = await client.get("/v1/trips/leaderboard/weekly", headers=headers)
    assert response.status_code == 200
    assert response.json()["items"][0]["distanceMeters"] > 0


# --- Address encryption ---

def test_address_round_trip():
    token = encrypt_address("10 Downing Street")
    assert token.count(":") == 1
    assert decrypt_address(token) == "10 Downing Street"


def test_encryption_uses_fresh_nonce():
    assert encrypt_address("same") != encrypt_address("same")


def test_wrong_key_cannot_decrypt():
    other_key = base64.b64encode(b"f" * 32).decode()
    token = encrypt_address("10 Downing Street")
    with pytest.raises(ValueError):
        decrypt_address(token, key=other_key)


def test_malformed_token_is_rejected():
    with pytest.raises(ValueError):
        decrypt_address("no-separator")


def test_missing_or_short_key_is_a_config_error(monkeypatch):
    monkeypatch.setattr(settings, "encryption_key", None)
    with pytest.raises(EncryptionConfigError):
        encrypt_address("anywhere")

    with pytest.raises(EncryptionConfigError):
        encrypt_address("anywhere", key=base64.b64encode(b"short").decode())


@pytest.mark.asyncio
async def test_unreadable_address_does_not_break_detail(client, auth_headers, db_session):
    headers = auth_headers("alice")
    trip = (await client.post(
        "/v1/trips/start-trip", json={"destAddress": "Somewhere"}, headers=headers
    )).json()

    await db_session.execute(
        update(Trip).where(Trip.id == trip["id"]).values(dest_address_encrypted="garbage:zzz")
    )
    await db_session.commit()

    response = await client.get(f"/v1/trips/{trip['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json()["trip"]["destAddress"] is None


@pytest.mark.asyncio
async def test_start_without_key_reports_config_error(client, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "encryption_key", None)

    response = await client.post(
        "/v1/trips/start-trip", json={"destAddress": "Somewhere"}, headers=auth_headers("alice")
    )
    assert response.status_code == 500
    assert response.json()["error_code"] == "ERR_CONFIG_001"

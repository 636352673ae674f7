"""
Trip lifecycle tests.

Start / update / stop, the single-open-trip rule and ownership checks.
"""

import pytest
from sqlalchemy import select, func

from backend.app.models.trip import Trip


async def start(client, headers, **body):
    response = await client.post("/v1/trips/start-trip", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_start_trip_returns_open_trip(client, auth_headers):
    headers = auth_headers("alice")
    trip = await start(
        client, headers,
        lat=12.9716, lng=77.5946, deviceId="pixel-7",
        modes=["walk", "bike"], metadata={"purpose": "commute"}
    )

    assert trip["ownerId"] == "alice"
    assert trip["endedAt"] is None
    assert trip["startLat"] == 12.9716
    assert trip["deviceId"] == "pixel-7"
    assert trip["modes"] == ["walk", "bike"]
    assert trip["metadata"] == {"purpose": "commute"}


@pytest.mark.asyncio
async def test_start_trip_closes_previous_open_trip(client, auth_headers, db_session):
    headers = auth_headers("alice")
    first = await start(client, headers)
    second = await start(client, headers)

    assert first["id"] != second["id"]

    open_count = (await db_session.execute(
        select(func.count(Trip.id)).where(Trip.user_id == "alice", Trip.ended_at.is_(None))
    )).scalar()
    assert open_count == 1

    listing = (await client.get("/v1/trips", headers=headers)).json()
    by_id = {item["id"]: item for item in listing["items"]}
    assert by_id[first["id"]]["endedAt"] is not None
    assert by_id[second["id"]]["endedAt"] is None


@pytest.mark.asyncio
async def test_open_trips_are_per_user(client, auth_headers, db_session):
    await start(client, auth_headers("alice"))
    await start(client, auth_headers("bob"))

    open_count = (await db_session.execute(
        select(func.count(Trip.id)).where(Trip.ended_at.is_(None))
    )).scalar()
    assert open_count == 2


@pytest.mark.asyncio
async def test_active_trip_lookup(client, auth_headers):
    headers = auth_headers("alice")

    missing = await client.get("/v1/trips/active", headers=headers)
    assert missing.status_code == 404

    trip = await start(client, headers)
    active = await client.get("/v1/trips/active", headers=headers)
    assert active.status_code == 200
    assert active.json()["id"] == trip["id"]


@pytest.mark.asyncio
async def test_stop_trip_caches_totals(client, auth_headers):
    headers = auth_headers("alice")
    trip = await start(client, headers, timestamp="2026-01-01T10:00:00Z")

    await client.post("/v1/trips/batch-ingest", json={
        "tripId": trip["id"],
        "points": [
            {"lat": 12.9716, "lng": 77.5946, "timestamp": "2026-01-01T10:01:00Z"},
            {"lat": 12.9720, "lng": 77.5950, "timestamp": "2026-01-01T10:02:00Z"},
        ],
    }, headers=headers)

    response = await client.post("/v1/trips/stop-trip", json={
        "tripId": trip["id"],
        "timestamp": "2026-01-01T10:10:30.900Z",
        "lat": 12.9720,
        "lng": 77.5950,
    }, headers=headers)

    assert response.status_code == 200
    stopped = response.json()
    assert stopped["endedAt"] is not None
    assert stopped["endLat"] == 12.9720
    assert stopped["durationSeconds"] == 630
    assert stopped["distanceMeters"] == pytest.approx(62.1, abs=0.5)


@pytest.mark.asyncio
async def test_stop_twice_is_invalid_state(client, auth_headers):
    headers = auth_headers("alice")
    trip = await start(client, headers)

    first = await client.post("/v1/trips/stop-trip", json={"tripId": trip["id"]}, headers=headers)
    assert first.status_code == 200

    second = await client.post("/v1/trips/stop-trip", json={"tripId": trip["id"]}, headers=headers)
    assert second.status_code == 409
    assert second.json()["error_code"] == "ERR_STATE_001"


@pytest.mark.asyncio
async def test_stop_unknown_or_foreign_trip_is_not_found(client, auth_headers):
    trip = await start(client, auth_headers("alice"))

    unknown = await client.post("/v1/trips/stop-trip", json={"tripId": 9999}, headers=auth_headers("alice"))
    assert unknown.status_code == 404

    foreign = await client.post("/v1/trips/stop-trip", json={"tripId": trip["id"]}, headers=auth_headers("mallory"))
    assert foreign.status_code == 404
    assert foreign.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_update_applies_only_given_fields(client, auth_headers):
    headers = auth_headers("alice")
    trip = await start(client, headers, modes=["car"], metadata={"purpose": "errand"})

    response = await client.patch(
        f"/v1/trips/{trip['id']}",
        json={"modes": ["transit"], "companions": [{"name": "Sam", "phone": "+100"}]},
        headers=headers
    )

    assert response.status_code == 200
    updated = response.json()
    assert updated["modes"] == ["transit"]
    assert updated["companions"] == [{"name": "Sam", "phone": "+100"}]
    assert updated["metadata"] == {"purpose": "errand"}


@pytest.mark.asyncio
async def test_update_closed_trip_is_rejected(client, auth_headers):
    headers = auth_headers("alice")
    trip = await start(client, headers)
    await client.post("/v1/trips/stop-trip", json={"tripId": trip["id"]}, headers=headers)

    response = await client.patch(f"/v1/trips/{trip['id']}", json={"modes": ["walk"]}, headers=headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_update_foreign_trip_is_not_found(client, auth_headers):
    trip = await start(client, auth_headers("alice"))

    response = await client.patch(
        f"/v1/trips/{trip['id']}", json={"modes": ["walk"]}, headers=auth_headers("mallory")
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unknown_mode_is_rejected(client, auth_headers):
    response = await client.post(
        "/v1/trips/start-trip", json={"modes": ["teleport"]}, headers=auth_headers("alice")
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_destination_address_encrypted_at_rest(client, auth_headers, db_session):
    headers = auth_headers("alice")
    trip = await start(client, headers, destLat=12.98, destLng=77.60, destAddress="221B Baker Street")

    row = (await db_session.execute(select(Trip).where(Trip.id == trip["id"]))).scalar_one()
    assert row.dest_address_encrypted
    assert "Baker" not in row.dest_address_encrypted

    detail = (await client.get(f"/v1/trips/{trip['id']}", headers=headers)).json()
    assert detail["trip"]["destAddress"] == "221B Baker Street"
    assert "destAddressEncrypted" not in detail["trip"]


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client):
    response = await client.post("/v1/trips/start-trip", json={})
    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_AUTH_001"

    bad = await client.get("/v1/trips", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 401


@pytest.mark.asyncio
async def test_list_trips_paginates_newest_first(client, auth_headers):
    headers = auth_headers("alice")
    for hour in (8, 9, 10):
        await start(client, headers, timestamp=f"2026-01-01T{hour:02d}:00:00Z")

    page = (await client.get("/v1/trips", params={"page": 1, "pageSize": 2}, headers=headers)).json()
    assert page["total"] == 3
    assert page["pageSize"] == 2
    assert [item["startedAt"][:13] for item in page["items"]] == ["2026-01-01T10", "2026-01-01T09"]

    rest = (await client.get("/v1/trips", params={"page": 2, "pageSize": 2}, headers=headers)).json()
    assert len(rest["items"]) == 1


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["cache"] == "up"

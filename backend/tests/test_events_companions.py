"""
Trip event log and companion contact tests.
"""

import pytest


async def open_trip(client, headers) -> int:
    response = await client.post("/v1/trips/start-trip", json={}, headers=headers)
    return response.json()["id"]


# --- Events ---

@pytest.mark.asyncio
async def test_events_are_listed_oldest_first(client, auth_headers):
    headers = auth_headers("alice")
    trip_id = await open_trip(client, headers)

    for event_type in ("stop", "note", "fuel"):
        response = await client.post(
            "/v1/trips/event", json={"tripId": trip_id, "type": event_type, "data": {"by": "alice"}}, headers=headers
        )
        assert response.status_code == 201
        assert response.json()["tripId"] == trip_id

    listing = await client.get(f"/v1/trips/{trip_id}/events", headers=headers)
    assert listing.status_code == 200
    items = listing.json()["items"]
    assert [e["type"] for e in items] == ["stop", "note", "fuel"]
    assert items[0]["data"] == {"by": "alice"}


@pytest.mark.asyncio
async def test_events_allowed_after_trip_ends(client, auth_headers):
    headers = auth_headers("alice")
    trip_id = await open_trip(client, headers)
    await client.post("/v1/trips/stop-trip", json={"tripId": trip_id}, headers=headers)

    response = await client.post("/v1/trips/event", json={"tripId": trip_id, "type": "note"}, headers=headers)
    assert response.status_code == 201
    assert response.json()["data"] is None


@pytest.mark.asyncio
async def test_events_on_foreign_trip_are_not_found(client, auth_headers):
    trip_id = await open_trip(client, auth_headers("alice"))

    post = await client.post(
        "/v1/trips/event", json={"tripId": trip_id, "type": "note"}, headers=auth_headers("mallory")
    )
    assert post.status_code == 404

    listing = await client.get(f"/v1/trips/{trip_id}/events", headers=auth_headers("mallory"))
    assert listing.status_code == 404


@pytest.mark.asyncio
async def test_event_type_is_required(client, auth_headers):
    headers = auth_headers("alice")
    trip_id = await open_trip(client, headers)

    response = await client.post("/v1/trips/event", json={"tripId": trip_id, "type": ""}, headers=headers)
    assert response.status_code == 422


# --- Companions ---

@pytest.mark.asyncio
async def test_companion_crud(client, auth_headers):
    headers = auth_headers("alice")

    created = await client.post(
        "/v1/companions", json={"name": "Sam", "email": "sam@example.com"}, headers=headers
    )
    assert created.status_code == 200
    contact = created.json()
    assert contact["name"] == "Sam"
    assert contact["phone"] is None

    updated = await client.post(
        "/v1/companions", json={"id": contact["id"], "name": "Sam R.", "phone": "+15550100"}, headers=headers
    )
    assert updated.json()["id"] == contact["id"]
    assert updated.json()["phone"] == "+15550100"
    assert updated.json()["email"] is None

    listing = (await client.get("/v1/companions", headers=headers)).json()
    assert [c["name"] for c in listing["items"]] == ["Sam R."]

    deleted = await client.delete(f"/v1/companions/{contact['id']}", headers=headers)
    assert deleted.status_code == 204
    assert (await client.get("/v1/companions", headers=headers)).json()["items"] == []

    again = await client.delete(f"/v1/companions/{contact['id']}", headers=headers)
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_companions_are_private(client, auth_headers):
    contact = (await client.post("/v1/companions", json={"name": "Sam"}, headers=auth_headers("alice"))).json()

    assert (await client.get("/v1/companions", headers=auth_headers("bob"))).json()["items"] == []

    hijack = await client.post(
        "/v1/companions", json={"id": contact["id"], "name": "Mine now"}, headers=auth_headers("bob")
    )
    assert hijack.status_code == 404

    delete = await client.delete(f"/v1/companions/{contact['id']}", headers=auth_headers("bob"))
    assert delete.status_code == 404

"""
Pre-Deploy and Smoke Test Script.

Runs the application in-process against the configured database and Redis
and exercises one full trip:
1. Health Check
2. Start -> Batch Ingest (twice, idempotent) -> Stop
3. Detail, Streak and Weekly Leaderboard reads
"""

import sys
import uuid

from fastapi.testclient import TestClient
from jose import jwt

from backend.app.core.config import settings
from backend.app.main import app


def print_step(step, msg):
    print(f"[{step}] {msg}")


def fail(msg):
    print(f"❌ FAILURE: {msg}")
    sys.exit(1)


def success(msg):
    print(f"✅ {msg}")


def bearer(user_id: str, role: str = "USER") -> dict:
    token = jwt.encode(
        {"sub": user_id, "user_id": user_id, "role": role},
        settings.secret_key,
        algorithm=settings.algorithm,
    )
    return {"Authorization": f"Bearer {token}"}


def main():
    print("🚀 Starting Deployment Validation...")

    # Entering the client runs the lifespan: schema, storage handle, Redis
    with TestClient(app) as client:
        print_step("PRE-DEPLOY", "Checking /health...")
        response = client.get("/health")
        if response.status_code != 200:
            fail(f"Health check returned {response.status_code}")
        health = response.json()
        if health.get("cache") != "up":
            print("⚠️ Redis unreachable; leaderboard will compute without cache")
        success(f"Health: {health}")

        user_id = f"smoke-{uuid.uuid4().hex[:8]}"
        headers = bearer(user_id)
        api = f"/{settings.api_version}/trips"

        print_step("SMOKE", f"Running trip flow as {user_id}...")
        res = client.post(f"{api}/start-trip", json={"lat": 12.9716, "lng": 77.5946, "modes": ["walk"]}, headers=headers)
        if res.status_code != 201:
            fail(f"start-trip failed: {res.status_code} {res.text}")
        trip_id = res.json()["id"]

        batch = {
            "tripId": trip_id,
            "points": [
                {"clientId": f"{user_id}-1", "lat": 12.9716, "lng": 77.5946, "mode": "walk"},
                {"clientId": f"{user_id}-2", "lat": 12.9720, "lng": 77.5950, "mode": "walk"},
                {"clientId": f"{user_id}-3", "lat": 12.9730, "lng": 77.5960, "mode": "bike"},
            ],
        }
        first = client.post(f"{api}/batch-ingest", json=batch, headers=headers)
        replay = client.post(f"{api}/batch-ingest", json=batch, headers=headers)
        if first.json().get("inserted") != 3 or replay.json().get("inserted") != 0:
            fail(f"Batch idempotency broken: {first.text} / {replay.text}")
        success("Batch ingest is idempotent")

        res = client.post(f"{api}/stop-trip", json={"tripId": trip_id}, headers=headers)
        if res.status_code != 200:
            fail(f"stop-trip failed: {res.status_code} {res.text}")
        success(f"Trip {trip_id} stopped: {res.json()['distanceMeters']:.1f} m")

        print_step("VERIFY", "Checking read paths...")
        for path in (f"{api}/{trip_id}", f"{api}/streak", f"{api}/leaderboard/weekly"):
            res = client.get(path, headers=headers)
            if res.status_code != 200:
                fail(f"GET {path} failed: {res.status_code} {res.text}")
        success("Detail, streak and leaderboard reachable")

    success("Deployment Validation Passed!")


if __name__ == "__main__":
    main()

import time
import subprocess
import httpx
import sys
import os
import signal

from jose import jwt

from backend.app.core.config import settings

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"
OWNER_ID = "persist-check"


def bearer() -> dict:
    # Signed with the same settings the server reads from the environment
    token = jwt.encode(
        {"sub": OWNER_ID, "user_id": OWNER_ID, "role": "USER"},
        settings.secret_key,
        algorithm=settings.algorithm,
    )
    return {"Authorization": f"Bearer {token}"}


def start_server(extra_env=None):
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env={**os.environ, **(extra_env or {})},
    )


def stop_server(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()


def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False


def run_verification():
    headers = bearer()
    points = [
        {"clientId": "persist-1", "lat": 12.9716, "lng": 77.5946, "timestamp": "2026-01-01T10:00:00Z"},
        {"clientId": "persist-2", "lat": 12.9720, "lng": 77.5950, "timestamp": "2026-01-01T10:01:00Z"},
    ]

    # 1. Start Server (First Run)
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server({"DB_ECHO": "True"})

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise Exception("Server start failed")

        # 2. Record a trip
        print("\n--- [Step 2] Recording Trip (Persistence Test) ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/trips/start-trip", json={}, headers=headers)
        if resp.status_code != 201:
            raise Exception(f"start-trip failed: {resp.status_code} {resp.text}")
        trip_id = resp.json()["id"]

        resp = httpx.post(
            f"{BASE_URL}{API_PREFIX}/trips/batch-ingest",
            json={"tripId": trip_id, "points": points},
            headers=headers,
        )
        print(f"✅ Trip {trip_id} recorded: {resp.json()}")

    finally:
        print("\n--- [Step 3] Stopping Server ---")
        stop_server(proc)

    time.sleep(2)  # Wait for port release

    # 3. Restart Server
    print("\n--- [Step 4] Restarting Server (Verification) ---")
    proc2 = start_server()

    try:
        if not wait_for_server():
            raise Exception("Server restart failed")

        # 4. The open trip and its points survived
        print("\n--- [Step 5] Reading Trip (Post-Restart) ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/trips/active", headers=headers)
        if resp.status_code != 200 or resp.json()["id"] != trip_id:
            raise Exception(f"Open trip lost after restart: {resp.status_code} {resp.text}")

        detail = httpx.get(f"{BASE_URL}{API_PREFIX}/trips/{trip_id}", headers=headers).json()
        if len(detail["points"]) != len(points):
            raise Exception(f"Expected {len(points)} points, found {len(detail['points'])}")
        print(f"✅ Trip persisted: {detail['trip']['distanceMeters']:.1f} m over {len(points)} points")

        # 5. Replay is still a no-op
        print("\n--- [Step 6] Replaying Batch ---")
        resp = httpx.post(
            f"{BASE_URL}{API_PREFIX}/trips/batch-ingest",
            json={"tripId": trip_id, "points": points},
            headers=headers,
        )
        if resp.json().get("inserted") != 0:
            raise Exception(f"Replay inserted rows: {resp.text}")
        print("✅ Replay ignored")

        httpx.post(f"{BASE_URL}{API_PREFIX}/trips/stop-trip", json={"tripId": trip_id}, headers=headers)

    finally:
        print("\n--- [Step 7] Stopping Server ---")
        stop_server(proc2)


if __name__ == "__main__":
    run_verification()

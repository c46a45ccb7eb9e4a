"""
Live persistence check.

Starts the API, issues a print token, restarts the API and checks that the
token and the operator's counters survived. Expects a database seeded with
backend/seed_data.py.
"""

import time
import subprocess
import httpx
import sys
import os
import signal

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"

ADMIN = {"username": "admin", "password": "admin123"}
OPERATOR = {"username": "jdoe", "password": "operator123"}


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


def start_server(env=None):
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env={**os.environ, **(env or {})},
    )


def stop_server(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()


def login(credentials):
    resp = httpx.post(f"{BASE_URL}{API_PREFIX}/auth/login", json=credentials)
    if resp.status_code != 200:
        raise Exception(f"Login failed for {credentials['username']}: {resp.status_code} {resp.text}")
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def run_verification():
    # 1. Start Server (First Run)
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server({"DB_ECHO": "True"})

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise Exception("Server start failed")

        # 2. Issue a token as the operator
        print("\n--- [Step 2] Issuing Token (Persistence Test) ---")
        headers = login(OPERATOR)
        rates = httpx.get(f"{BASE_URL}{API_PREFIX}/vehicles/rates", headers=headers).json()["rates"]
        if not rates:
            raise Exception("No vehicle rates configured; run backend/seed_data.py first")

        payload = {
            "vehicle_id": rates[0]["vehicle_id"],
            "driver_name": "Persistence Check",
            "driver_mobile_no": "9999999999",
            "vehicle_no": "PERSIST01",
            "route": "Verification",
            "quantity": 0,
        }
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/tokens", json=payload, headers=headers)
        if resp.status_code != 201:
            raise Exception(f"Token issue failed: {resp.status_code} {resp.text}")
        issued = resp.json()
        print(f"✅ Issued {issued['token_no']} at rate {issued['vehicle_rate']}")

        before = httpx.get(f"{BASE_URL}{API_PREFIX}/auth/me", headers=headers).json()

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

        print("\n--- [Step 5] Verifying Token and Counters ---")
        headers = login(ADMIN)
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/tokens/{issued['id']}", headers=headers)
        if resp.status_code != 200 or resp.json()["token_no"] != issued["token_no"]:
            raise Exception(f"Token lost after restart: {resp.status_code} {resp.text}")
        print(f"✅ Token {issued['token_no']} persisted")

        after = httpx.get(f"{BASE_URL}{API_PREFIX}/auth/me", headers=login(OPERATOR)).json()
        if after["total_token_count"] != before["total_token_count"]:
            raise Exception(f"Counters changed across restart: {before} -> {after}")
        print(f"✅ Counters persisted (daily={after['daily_token_count']}, total={after['total_token_count']})")

        # 6. Clean up
        print("\n--- [Step 6] Deleting Verification Token ---")
        resp = httpx.delete(f"{BASE_URL}{API_PREFIX}/tokens/{issued['id']}", headers=headers)
        print(f"Delete: {resp.status_code}")

    finally:
        print("\n--- [Step 7] Stopping Server ---")
        stop_server(proc2)


if __name__ == "__main__":
    run_verification()

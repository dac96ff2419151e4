"""
Restart persistence check.

Starts the API, registers a customer and books a parcel, restarts the API,
then logs in again and tracks the parcel by its tracking number.
Requires a reachable database and Redis (see backend/.env).
"""

import time
import subprocess
import httpx
import sys
import os
import signal

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"

CUSTOMER = {
    "name": "Persistence Check",
    "email": "persist_customer@test.com",
    "password": "securePassword123",
    "role": "customer",
}


def start_server():
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env={**os.environ, "DB_ECHO": "True"}
    )


def stop_server(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()


def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for _ in range(retries):
        try:
            if httpx.get(url).status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False


def login():
    resp = httpx.post(
        f"{BASE_URL}{API_PREFIX}/auth/login",
        json={"email": CUSTOMER["email"], "password": CUSTOMER["password"]}
    )
    if resp.status_code != 200:
        raise RuntimeError(f"Login failed: {resp.status_code} {resp.text}")
    return resp.json()["access_token"]


def run_verification():
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server()

    try:
        if not wait_for_server():
            stdout, stderr = proc.communicate(timeout=2)
            print("Server Stdout:", stdout.decode())
            print("Server Stderr:", stderr.decode())
            raise RuntimeError("Server start failed")

        print("\n--- [Step 2] Registering Customer ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/auth/register", json=CUSTOMER)
        if resp.status_code == 409:
            print("⚠️ Customer already exists (persistence working from previous run?)")
        elif resp.status_code == 201:
            print("✅ Customer Registered")
        else:
            raise RuntimeError(f"Registration failed: {resp.status_code} {resp.text}")

        print("\n--- [Step 3] Booking Parcel ---")
        token = login()
        resp = httpx.post(
            f"{BASE_URL}{API_PREFIX}/parcels",
            json={"pickup_address": "12 Market Street", "delivery_address": "48 Lake Road"},
            headers={"Authorization": f"Bearer {token}"}
        )
        if resp.status_code != 201:
            raise RuntimeError(f"Booking failed: {resp.status_code} {resp.text}")
        tracking_number = resp.json()["tracking_number"]
        print(f"✅ Booked parcel {tracking_number}")

    finally:
        print("\n--- [Step 4] Stopping Server ---")
        stop_server(proc)

    time.sleep(2)  # Wait for port release

    print("\n--- [Step 5] Restarting Server (Verification) ---")
    proc2 = start_server()

    try:
        if not wait_for_server():
            raise RuntimeError("Server restart failed")

        print("\n--- [Step 6] Logging In (Post-Restart) ---")
        login()
        print("✅ Login Successful (User Persisted!)")

        print("\n--- [Step 7] Tracking Parcel ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/parcels/track/{tracking_number}")
        if resp.status_code == 200:
            print(f"✅ Parcel persisted with status {resp.json()['status']}")
        else:
            raise RuntimeError(f"Tracking failed after restart: {resp.status_code} {resp.text}")

    finally:
        print("\n--- [Step 8] Stopping Server ---")
        stop_server(proc2)


if __name__ == "__main__":
    run_verification()

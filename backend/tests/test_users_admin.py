"""
Integration tests for admin user management.
"""

import pytest


@pytest.mark.asyncio
async def test_admin_creates_and_lists_users(client, admin_headers):
    response = await client.post(
        "/v1/users",
        json={"name": "Zed Agent", "email": "zed@courier.com", "password": "password123", "role": "delivery_agent"},
        headers=admin_headers
    )
    assert response.status_code == 201
    assert response.json()["role"] == "delivery_agent"

    agents = await client.get("/v1/users", params={"role": "delivery_agent"}, headers=admin_headers)
    assert [u["email"] for u in agents.json()] == ["zed@courier.com"]


@pytest.mark.asyncio
async def test_non_admin_forbidden(client, customer):
    response = await client.get("/v1/users", headers=customer["headers"])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_agents_sorted_by_name_and_active_only(client, admin_headers, agent, other_agent, customer):
    # Andy Agent, Olga Agent
    response = await client.get("/v1/users/agents", headers=admin_headers)
    assert [u["name"] for u in response.json()] == ["Andy Agent", "Olga Agent"]

    await client.patch(f"/v1/users/{agent['id']}/toggle-status", headers=admin_headers)

    response = await client.get("/v1/users/agents", headers=admin_headers)
    assert [u["name"] for u in response.json()] == ["Olga Agent"]

    customers = await client.get("/v1/users/customers", headers=admin_headers)
    assert [u["id"] for u in customers.json()] == [customer["id"]]


@pytest.mark.asyncio
async def test_get_and_update_user(client, admin_headers, customer):
    response = await client.patch(
        f"/v1/users/{customer['id']}",
        json={"name": "Carla C.", "phone": "+8801700000000", "password": "newpassword"},
        headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Carla C."

    fetched = await client.get(f"/v1/users/{customer['id']}", headers=admin_headers)
    assert fetched.json()["phone"] == "+8801700000000"

    login = await client.post(
        "/v1/auth/login", json={"email": "customer@courier.com", "password": "newpassword"}
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_update_email_conflict(client, admin_headers, customer, agent):
    response = await client.patch(
        f"/v1/users/{customer['id']}", json={"email": "agent@courier.com"}, headers=admin_headers
    )
    assert response.status_code == 409


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["name", "email"])
async def test_update_rejects_null_name_or_email(client, admin_headers, customer, field):
    response = await client.patch(
        f"/v1/users/{customer['id']}", json={field: None}, headers=admin_headers
    )
    assert response.status_code == 422

    fetched = await client.get(f"/v1/users/{customer['id']}", headers=admin_headers)
    assert fetched.json()["name"] == "Carla Customer"
    assert fetched.json()["email"] == "customer@courier.com"


@pytest.mark.asyncio
async def test_missing_user_404(client, admin_headers):
    response = await client.get("/v1/users/9999", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_deactivation_revokes_tokens_and_reactivation_restores(client, admin_headers, customer):
    deactivated = await client.patch(f"/v1/users/{customer['id']}/toggle-status", headers=admin_headers)
    assert deactivated.json()["is_active"] is False

    me = await client.get("/v1/auth/me", headers=customer["headers"])
    assert me.status_code == 401

    login = await client.post(
        "/v1/auth/login", json={"email": "customer@courier.com", "password": "password123"}
    )
    assert login.status_code == 401

    reactivated = await client.patch(f"/v1/users/{customer['id']}/toggle-status", headers=admin_headers)
    assert reactivated.json()["is_active"] is True

    me = await client.get("/v1/auth/me", headers=customer["headers"])
    assert me.status_code == 200


@pytest.mark.asyncio
async def test_role_change_applies_to_existing_token(client, admin_headers, customer):
    response = await client.patch(
        f"/v1/users/{customer['id']}/role", json={"role": "delivery_agent"}, headers=admin_headers
    )
    assert response.json()["role"] == "delivery_agent"

    assigned = await client.get("/v1/parcels/assigned", headers=customer["headers"])
    assert assigned.status_code == 200


@pytest.mark.asyncio
async def test_delete_user(client, admin_headers, agent):
    response = await client.delete(f"/v1/users/{agent['id']}", headers=admin_headers)
    assert response.status_code == 204

    missing = await client.get(f"/v1/users/{agent['id']}", headers=admin_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_delete_user_with_parcels_conflicts(client, admin_headers, customer, booked_parcel):
    response = await client.delete(f"/v1/users/{customer['id']}", headers=admin_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_audit_trail_records_admin_actions(client, admin_headers, customer, booked_parcel, agent):
    await client.patch(
        f"/v1/parcels/{booked_parcel['id']}/assign", json={"agent_id": agent["id"]}, headers=admin_headers
    )
    await client.patch(f"/v1/users/{customer['id']}/toggle-status", headers=admin_headers)

    response = await client.get("/v1/users/audit-logs", headers=admin_headers)
    actions = [log["action"] for log in response.json()["logs"]]

    assert "AGENT_ASSIGNED" in actions
    assert "USER_DEACTIVATED" in actions
    assert "PARCEL_CREATED" in actions

    filtered = await client.get(
        "/v1/users/audit-logs", params={"action": "USER_DEACTIVATED"}, headers=admin_headers
    )
    assert filtered.json()["total"] == 1
    assert filtered.json()["logs"][0]["target_user_id"] == customer["id"]

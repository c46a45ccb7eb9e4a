"""
Integration tests for Authentication and Operator Administration.

Verifies Login -> Me -> Logout and the admin block/unblock flow.
"""

import pytest


async def login(client, username, password):
    return await client.post("/v1/auth/login", json={"username": username, "password": password})


@pytest.mark.asyncio
async def test_login_with_username(client, operator):
    response = await login(client, "jdoe", "operator123")

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user_id"] == operator.id
    assert data["role"] == "OPERATOR"
    assert data["access_token"]


@pytest.mark.asyncio
async def test_login_with_phone(client, operator):
    response = await login(client, "9000000001", "operator123")

    assert response.status_code == 200
    assert response.json()["username"] == "jdoe"


@pytest.mark.asyncio
@pytest.mark.parametrize("username,password", [
    ("jdoe", "wrong-password"),
    ("nobody", "operator123"),
])
async def test_login_failures(client, operator, username, password):
    response = await login(client, username, password)

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_blocked_user_cannot_login(client, make_user_fn, db_session):
    await make_user_fn(db_session, "blocked", "9000000009", password="password123", is_active=False)

    response = await login(client, "blocked", "password123")

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_me_returns_counters(client, operator, truck, payload_for):
    token = (await login(client, "jdoe", "operator123")).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}
    await client.post("/v1/tokens", json=payload_for(truck.id), headers=headers)

    response = await client.get("/v1/auth/me", headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["username"] == "jdoe"
    assert data["daily_token_count"] == 1
    assert data["total_token_count"] == 1
    assert data["daily_token_date"] is not None


@pytest.mark.asyncio
async def test_logout_revokes_token(client, operator):
    token = (await login(client, "jdoe", "operator123")).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    response = await client.post("/v1/auth/logout", headers=headers)
    assert response.status_code == 200
    assert response.json()["success"] is True

    response = await client.get("/v1/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["message"] == "Token has been revoked"


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client):
    response = await client.get("/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_creates_operator(client, admin_headers):
    payload = {"username": "ravi", "phone": "9123456780", "password": "password123", "route": "North Gate"}

    response = await client.post("/v1/admin/operators", json=payload, headers=admin_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["role"] == "OPERATOR"
    assert data["daily_token_count"] == 0
    assert data["total_token_count"] == 0
    assert data["daily_token_date"] is None

    response = await login(client, "ravi", "password123")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_duplicate_operator_is_rejected(client, admin_headers, operator):
    payload = {"username": "jdoe", "phone": "9123456780", "password": "password123", "route": "North Gate"}

    response = await client.post("/v1/admin/operators", json=payload, headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["message"] == "Username already registered"


@pytest.mark.asyncio
async def test_operator_cannot_use_admin_endpoints(client, operator_headers):
    response = await client.get("/v1/admin/operators", headers=operator_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_lists_operators_with_counters(client, admin_headers, operator, other_operator):
    response = await client.get("/v1/admin/operators", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert {op["username"] for op in data["operators"]} == {"jdoe", "asmith"}


@pytest.mark.asyncio
async def test_block_and_unblock_operator(client, admin_headers, operator, operator_headers):
    response = await client.post(
        f"/v1/admin/operators/{operator.id}/block", json={"reason": "Left the company"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["action"] == "OPERATOR_BLOCKED"

    response = await client.get("/v1/auth/me", headers=operator_headers)
    assert response.status_code == 401

    response = await client.post(f"/v1/admin/operators/{operator.id}/block", json={}, headers=admin_headers)
    assert response.status_code == 400

    response = await client.post(f"/v1/admin/operators/{operator.id}/unblock", json={}, headers=admin_headers)
    assert response.status_code == 200

    response = await login(client, "jdoe", "operator123")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_admin_cannot_be_blocked(client, admin_user, admin_headers):
    response = await client.post(f"/v1/admin/operators/{admin_user.id}/block", json={}, headers=admin_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_logins_are_audited(client, operator, admin_headers):
    await login(client, "jdoe", "operator123")
    await login(client, "jdoe", "bad-password")

    response = await client.get("/v1/admin/audit-logs?entity_type=user", headers=admin_headers)

    actions = [log["action"] for log in response.json()["logs"]]
    assert "LOGIN_SUCCESS" in actions
    assert "LOGIN_FAILED" in actions


@pytest.mark.asyncio
async def test_admin_edits_operator(client, admin_headers, operator, truck, payload_for, headers_for, fetch_user_fn):
    await client.post("/v1/tokens", json=payload_for(truck.id), headers=headers_for(operator))

    response = await client.patch(
        f"/v1/admin/operators/{operator.id}",
        json={"username": "jdoe2", "route": "  East Gate ", "password": "newpassword1"},
        headers=admin_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["username"] == "jdoe2"
    assert data["route"] == "East Gate"
    assert data["phone"] == "9000000001"
    assert data["daily_token_count"] == 1
    assert data["total_token_count"] == 1

    assert (await login(client, "jdoe2", "newpassword1")).status_code == 200
    assert (await login(client, "jdoe", "operator123")).status_code == 401

    # next token uses the new prefix and carries on the daily sequence
    stored = await fetch_user_fn(operator.id)
    response = await client.post("/v1/tokens", json=payload_for(truck.id), headers=headers_for(stored))
    assert response.json()["token_no"] == "JDOE202"

    logs = await client.get("/v1/admin/audit-logs?action=OPERATOR_UPDATED", headers=admin_headers)
    entry = logs.json()["logs"][0]
    assert entry["entity_id"] == operator.id
    assert entry["meta_data"]["fields"] == ["password", "route", "username"]


@pytest.mark.asyncio
@pytest.mark.parametrize("body,detail", [
    ({"username": "asmith"}, "Username already registered"),
    ({"phone": "9000000002"}, "Phone already registered"),
])
async def test_operator_edit_rejects_taken_identity(client, admin_headers, operator, other_operator, body, detail):
    response = await client.patch(f"/v1/admin/operators/{operator.id}", json=body, headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["message"] == detail


@pytest.mark.asyncio
async def test_operator_edit_keeps_own_phone(client, admin_headers, operator):
    response = await client.patch(
        f"/v1/admin/operators/{operator.id}",
        json={"username": "jdoe", "phone": "9000000001"},
        headers=admin_headers
    )

    assert response.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"route": None}, {"password": "short"}])
async def test_operator_edit_validates_body(client, admin_headers, operator, body):
    response = await client.patch(f"/v1/admin/operators/{operator.id}", json=body, headers=admin_headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_operator_edit_rules(client, admin_user, admin_headers, operator_headers, operator):
    response = await client.patch(f"/v1/admin/operators/{admin_user.id}", json={"route": "X"}, headers=admin_headers)
    assert response.status_code == 403

    response = await client.patch("/v1/admin/operators/999", json={"route": "X"}, headers=admin_headers)
    assert response.status_code == 404

    response = await client.patch(f"/v1/admin/operators/{operator.id}", json={"route": "X"}, headers=operator_headers)
    assert response.status_code == 403

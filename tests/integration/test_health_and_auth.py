import pytest

from app.utils.security import create_access_token


@pytest.mark.asyncio
async def test_health_endpoints(client):
    for path in ("/health", "/healthz", "/api/v1/health", "/api/v1/healthz"):
        resp = await client.get(path)
        assert resp.status_code == 200, path
        assert resp.json()["status"] == "ok"

    db = await client.get("/health/db")
    assert db.status_code == 200
    assert db.json()["db"]["reachable"] is True
    assert db.json()["db"]["dialect"] == "sqlite"


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_ndrop_counters(client):
    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "ndrop_http_requests_total" in resp.text


@pytest.mark.asyncio
async def test_request_id_header_is_returned(client):
    resp = await client.get("/healthz", headers={"X-Request-ID": "abc-123"})
    assert resp.headers["X-Request-ID"] == "abc-123"


@pytest.mark.asyncio
async def test_invalid_token_is_unauthorized(client, factory):
    event = await factory.event()
    resp = await client.get(
        f"/api/v1/events/{event.id}/meetings", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "E003"


@pytest.mark.asyncio
async def test_token_for_unknown_user_is_unauthorized(client, factory):
    import uuid

    event = await factory.event()
    token = create_access_token(uuid.uuid4())
    resp = await client.get(f"/api/v1/events/{event.id}/meetings", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_admin_routes_reject_regular_users(client, factory):
    event = await factory.event()
    alice = await factory.user("Alice")
    token = create_access_token(alice.id)
    resp = await client.get(
        f"/api/v1/admin/events/{event.id}/matching/config", headers={"Authorization": f"Bearer {token}"}
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "E004"


@pytest.mark.asyncio
async def test_validation_error_envelope(client, factory):
    event = await factory.event()
    alice = await factory.user("Alice")
    resp = await client.post(
        f"/api/v1/events/{event.id}/meetings",
        headers={"Authorization": f"Bearer {create_access_token(alice.id)}"},
        json={"receiver_id": "not-a-uuid"},
    )

    assert resp.status_code == 422, resp.text
    payload = resp.json()
    assert payload["error"]["code"] == "E002"
    assert isinstance(payload["error"]["details"]["errors"], list)

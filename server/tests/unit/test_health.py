"""Unit tests for health endpoints."""

import pytest


@pytest.mark.asyncio
async def test_health_check(test_client):
    """Test the health check endpoint."""
    response = await test_client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "ticketing-api"
    assert "version" in data


@pytest.mark.asyncio
async def test_ready_check_reports_workers(test_client):
    """Workers only run under the application lifespan."""
    response = await test_client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "starting"
    assert data["checks"]["workers"] == {"HoldSweeper": False}


@pytest.mark.asyncio
async def test_ready_once_workers_run(test_app, test_client):
    await test_app.state.worker_manager.start_all()
    try:
        response = await test_client.get("/ready")
    finally:
        await test_app.state.worker_manager.stop_all()

    assert response.json()["status"] == "ready"


@pytest.mark.asyncio
async def test_info_endpoint(test_client):
    """Test the service info endpoint."""
    response = await test_client.get("/info")
    assert response.status_code == 200
    data = response.json()
    assert data["hold_timeout_seconds"] == 300
    assert data["features"]["realtime_holds"] is True
    assert data["endpoints"]["realtime"] == "/v1/realtime/ws"


@pytest.mark.asyncio
async def test_health_ping_rpc(test_app, test_client):
    """Test the RPC-style health ping endpoint."""
    await test_app.state.hold_table.acquire("seat-1", "alice", None, "event-1")

    response = await test_client.post("/v1/health/ping", json={})
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "timestamp" in data
    assert data["active_holds"] == 1
    assert data["realtime_connections"] == 0
    assert data["workers"] == {"HoldSweeper": False}


@pytest.mark.asyncio
async def test_request_id_is_echoed(test_client):
    response = await test_client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"

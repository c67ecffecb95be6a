"""Tests for the REST API server."""

from __future__ import annotations

import dataclasses
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import test_utils

from urja_mitra_dashboard import RuntimeData
from urja_mitra_dashboard.config import DashboardConfig
from urja_mitra_dashboard.const import SESSION_COOKIE
from urja_mitra_dashboard.coordinator import DashboardCoordinator
from urja_mitra_dashboard.thingsboard_client.client import ThingsBoardClient
from urja_mitra_dashboard.thingsboard_client.exceptions import (
    TBAuthenticationError,
    TBConnectionError,
    TBUpstreamError,
)
from urja_mitra_dashboard.web import DashboardServer, SessionStore

from .conftest import TEST_DEVICE_ID, FakeClock


@pytest.fixture
def tb_client() -> MagicMock:
    """Return a mocked live client for login and control."""
    client = MagicMock(spec=ThingsBoardClient)
    client.login = AsyncMock(return_value={"token": "user-jwt", "refreshToken": "r"})
    client.send_rpc = AsyncMock(return_value={"relay": "on"})
    return client


@pytest.fixture
def server(
    live_config: DashboardConfig,
    tb_client: MagicMock,
    mock_source: MagicMock,
    clock: FakeClock,
) -> DashboardServer:
    """Return a dashboard server over mocked upstreams."""
    coordinator = DashboardCoordinator(mock_source, TEST_DEVICE_ID, clock=clock)
    return DashboardServer(RuntimeData(live_config, tb_client, coordinator))


@pytest.fixture
async def api(server: DashboardServer) -> AsyncIterator[test_utils.TestClient]:
    """Return an HTTP client for the server."""
    async with test_utils.TestClient(test_utils.TestServer(server.app)) as client:
        yield client


async def _login(api: test_utils.TestClient) -> None:
    resp = await api.post("/api/login", json={"username": "alice", "password": "pw"})
    assert resp.status == 200


class TestReadEndpoints:
    """Tests for the read-only endpoints."""

    async def test_health(self, api: test_utils.TestClient) -> None:
        """Test the health check."""
        resp = await api.get("/api/health")
        assert resp.status == 200
        assert await resp.json() == {"status": "ok", "source": "live"}

    async def test_snapshot(self, api: test_utils.TestClient) -> None:
        """Test the aggregate dashboard payload."""
        resp = await api.get("/api/tb")

        assert resp.status == 200
        data = await resp.json()
        assert data["source"] == "live"
        assert len(data["devices"]) == 2
        assert data["devices"][0]["status"] == "ONLINE"
        assert data["alarms"][0]["severity"] == "CRITICAL"
        assert len(data["series"]["day"]) == 3

    async def test_snapshot_falls_back_to_mock(
        self, api: test_utils.TestClient, mock_source: MagicMock
    ) -> None:
        """Test an upstream login failure still answers with demo data."""
        mock_source.list_devices.side_effect = TBAuthenticationError("bad login", status=401)

        resp = await api.get("/api/tb")

        assert resp.status == 200
        assert (await resp.json())["source"] == "mock"

    async def test_devices(self, api: test_utils.TestClient) -> None:
        """Test the device list."""
        resp = await api.get("/api/devices")
        data = await resp.json()
        assert [d["id"] for d in data] == [TEST_DEVICE_ID, "dev-2"]

    async def test_devices_upstream_failure(
        self, api: test_utils.TestClient, mock_source: MagicMock
    ) -> None:
        """Test an upstream failure gives an empty list."""
        mock_source.list_devices.side_effect = TBConnectionError("down")
        resp = await api.get("/api/devices")
        assert resp.status == 200
        assert await resp.json() == []

    async def test_device_not_found(
        self, api: test_utils.TestClient, mock_source: MagicMock
    ) -> None:
        """Test an unknown device id is a 404."""
        mock_source.get_device.return_value = None
        resp = await api.get("/api/devices/nope")
        assert resp.status == 404
        assert await resp.json() == {"error": "Device not found"}

    async def test_device(self, api: test_utils.TestClient) -> None:
        """Test a single device."""
        resp = await api.get(f"/api/devices/{TEST_DEVICE_ID}")
        assert (await resp.json())["name"] == "ESP32 Energy Meter"

    async def test_alarms_filtered(
        self, api: test_utils.TestClient, mock_source: MagicMock
    ) -> None:
        """Test the deviceId filter is forwarded."""
        resp = await api.get("/api/alarms", params={"deviceId": TEST_DEVICE_ID})
        assert resp.status == 200
        assert len(await resp.json()) == 1
        mock_source.list_alarms.assert_awaited_once_with(TEST_DEVICE_ID)

    @pytest.mark.parametrize("kind", ["latest", "series"])
    async def test_telemetry_requires_device(
        self, api: test_utils.TestClient, kind: str
    ) -> None:
        """Test telemetry without deviceId is a 400."""
        resp = await api.get("/api/telemetry", params={"type": kind})
        assert resp.status == 400
        assert "deviceId is required" in (await resp.json())["error"]

    async def test_telemetry_latest(self, api: test_utils.TestClient) -> None:
        """Test latest telemetry."""
        resp = await api.get("/api/telemetry", params={"deviceId": TEST_DEVICE_ID})
        assert (await resp.json())["power"][0]["value"] == "140"

    async def test_telemetry_series(self, api: test_utils.TestClient) -> None:
        """Test the chart-ready series."""
        resp = await api.get(
            "/api/telemetry",
            params={"deviceId": TEST_DEVICE_ID, "type": "series", "window": "30d"},
        )
        data = await resp.json()
        assert len(data) == 3
        assert data[0]["powerW"] == 100

    async def test_telemetry_bad_window(self, api: test_utils.TestClient) -> None:
        """Test an unknown window is a 400."""
        resp = await api.get(
            "/api/telemetry",
            params={"deviceId": TEST_DEVICE_ID, "type": "series", "window": "7d"},
        )
        assert resp.status == 400

    async def test_telemetry_upstream_failure(
        self, api: test_utils.TestClient, mock_source: MagicMock
    ) -> None:
        """Test an upstream error is reported as a 500."""
        mock_source.get_latest_telemetry.side_effect = TBUpstreamError(500, "boom")
        resp = await api.get("/api/telemetry", params={"deviceId": TEST_DEVICE_ID})
        assert resp.status == 500
        assert (await resp.json())["error"] == "Failed to fetch telemetry"


class TestSession:
    """Tests for login, logout and the session store."""

    async def test_login_sets_cookie(
        self, api: test_utils.TestClient, server: DashboardServer, tb_client: MagicMock
    ) -> None:
        """Test a successful login opens a session without exposing the JWT."""
        resp = await api.post("/api/login", json={"username": "alice", "password": "pw"})

        assert resp.status == 200
        assert await resp.json() == {"ok": True, "username": "alice"}
        cookie = resp.cookies[SESSION_COOKIE]
        assert cookie["httponly"]
        assert not cookie["secure"]
        assert cookie.value != "user-jwt"
        assert len(server.sessions) == 1
        tb_client.login.assert_awaited_once_with("alice", "pw")

    async def test_login_rejected(
        self, api: test_utils.TestClient, tb_client: MagicMock
    ) -> None:
        """Test rejected credentials are a 401 with the upstream message."""
        tb_client.login.side_effect = TBAuthenticationError(
            "failed", status=401, body="Invalid username or password"
        )
        resp = await api.post("/api/login", json={"username": "alice", "password": "x"})

        assert resp.status == 401
        assert await resp.json() == {"error": "Invalid username or password"}
        assert SESSION_COOKIE not in resp.cookies

    async def test_login_upstream_unreachable(
        self, api: test_utils.TestClient, tb_client: MagicMock
    ) -> None:
        """Test an unreachable upstream is a 502."""
        tb_client.login.side_effect = TBConnectionError("refused")
        resp = await api.post("/api/login", json={"username": "alice", "password": "x"})
        assert resp.status == 502

    @pytest.mark.parametrize("body", [{"username": "alice"}, {"password": "pw"}, {}])
    async def test_login_missing_fields(self, api: test_utils.TestClient, body: dict) -> None:
        """Test incomplete credentials are a 400."""
        resp = await api.post("/api/login", json=body)
        assert resp.status == 400

    async def test_login_invalid_json(self, api: test_utils.TestClient) -> None:
        """Test a non-JSON body is a 400."""
        resp = await api.post("/api/login", data="not json")
        assert resp.status == 400

    async def test_logout(self, api: test_utils.TestClient, server: DashboardServer) -> None:
        """Test logout drops the session."""
        await _login(api)
        resp = await api.post("/api/logout")

        assert resp.status == 200
        assert len(server.sessions) == 0

    def test_session_expiry(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test expired sessions are dropped."""
        now = [1000.0]
        monkeypatch.setattr("urja_mitra_dashboard.web.time.time", lambda: now[0])
        store = SessionStore(timeout=60)

        token = store.create("alice", "jwt")
        assert store.get(token).upstream_token == "jwt"
        now[0] += 61
        assert store.get(token) is None
        assert len(store) == 0
        assert store.get(None) is None

    def test_create_purges_abandoned_sessions(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test sessions nobody presents again are dropped on the next login."""
        now = [1000.0]
        monkeypatch.setattr("urja_mitra_dashboard.web.time.time", lambda: now[0])
        store = SessionStore(timeout=60)

        for user in ("alice", "bob", "carol"):
            store.create(user, "jwt")
        assert len(store) == 3

        now[0] += 61
        fresh = store.create("dave", "jwt")

        assert len(store) == 1
        assert store.get(fresh).username == "dave"

    def test_purge_keeps_live_sessions(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test purge only drops expired sessions."""
        now = [1000.0]
        monkeypatch.setattr("urja_mitra_dashboard.web.time.time", lambda: now[0])
        store = SessionStore(timeout=60)
        store.create("alice", "jwt")
        now[0] += 30
        store.create("bob", "jwt")

        assert store.purge(now[0] + 45) == 1
        assert len(store) == 1


class TestControl:
    """Tests for POST /api/control."""

    async def test_requires_session(
        self, api: test_utils.TestClient, tb_client: MagicMock
    ) -> None:
        """Test control without a session is a 401 and nothing is sent."""
        resp = await api.post("/api/control", json={"deviceId": TEST_DEVICE_ID, "method": "m"})

        assert resp.status == 401
        assert await resp.json() == {"error": "Unauthorized: login required for control actions"}
        tb_client.send_rpc.assert_not_called()

    async def test_forwards_with_user_token(
        self, api: test_utils.TestClient, tb_client: MagicMock
    ) -> None:
        """Test control is sent with the logged-in user's token."""
        await _login(api)
        resp = await api.post(
            "/api/control",
            json={"deviceId": TEST_DEVICE_ID, "method": "setRelay", "params": {"on": True}},
        )

        assert resp.status == 200
        assert await resp.json() == {"relay": "on"}
        tb_client.send_rpc.assert_awaited_once_with(
            TEST_DEVICE_ID, "setRelay", {"on": True}, "user-jwt"
        )

    async def test_missing_fields(self, api: test_utils.TestClient) -> None:
        """Test deviceId and method are required."""
        await _login(api)
        resp = await api.post("/api/control", json={"deviceId": TEST_DEVICE_ID})
        assert resp.status == 400

    async def test_upstream_status_passed_through(
        self, api: test_utils.TestClient, tb_client: MagicMock
    ) -> None:
        """Test an upstream rejection keeps its status and body."""
        tb_client.send_rpc.side_effect = TBUpstreamError(504, "Device is offline")
        await _login(api)
        resp = await api.post("/api/control", json={"deviceId": TEST_DEVICE_ID, "method": "m"})

        assert resp.status == 504
        assert await resp.json() == {"error": "Device is offline", "status": 504}

    async def test_after_logout(self, api: test_utils.TestClient, tb_client: MagicMock) -> None:
        """Test control is refused once logged out."""
        await _login(api)
        await api.post("/api/logout")
        resp = await api.post("/api/control", json={"deviceId": TEST_DEVICE_ID, "method": "m"})
        assert resp.status == 401


class TestDiagnostics:
    """Tests for GET /api/diagnostics."""

    async def test_requires_session(self, api: test_utils.TestClient) -> None:
        """Test diagnostics without a session is a 401."""
        resp = await api.get("/api/diagnostics")
        assert resp.status == 401

    async def test_diagnostics(self, api: test_utils.TestClient) -> None:
        """Test diagnostics for a logged-in user."""
        await _login(api)
        resp = await api.get("/api/diagnostics")

        assert resp.status == 200
        data = await resp.json()
        assert data["config"]["config"]["password"] == "**REDACTED**"
        assert data["coordinator"]["source"] == "live"


async def test_secure_cookie_when_configured(
    live_config: DashboardConfig, tb_client: MagicMock, mock_source: MagicMock
) -> None:
    """Test SESSION_COOKIE_SECURE marks the session cookie Secure."""
    config = dataclasses.replace(live_config, cookie_secure=True)
    coordinator = DashboardCoordinator(mock_source, TEST_DEVICE_ID)
    server = DashboardServer(RuntimeData(config, tb_client, coordinator))

    async with test_utils.TestClient(test_utils.TestServer(server.app)) as api:
        resp = await api.post("/api/login", json={"username": "alice", "password": "pw"})

    assert resp.status == 200
    assert resp.cookies[SESSION_COOKIE]["secure"]
    assert resp.cookies[SESSION_COOKIE]["samesite"] == "Lax"

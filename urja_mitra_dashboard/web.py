"""REST API server for the dashboard frontend."""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any

from aiohttp import web

from . import RuntimeData
from .const import DEFAULT_SESSION_TIMEOUT, SESSION_COOKIE
from .coordinator import SERIES_WINDOWS
from .diagnostics import get_diagnostics
from .thingsboard_client.exceptions import (
    TBAuthenticationError,
    TBClientError,
    TBConfigError,
    TBConnectionError,
    TBUpstreamError,
)

_LOGGER = logging.getLogger(__name__)


@dataclass
class Session:
    """Logged-in dashboard user."""

    username: str
    upstream_token: str
    expires: float


class SessionStore:
    """Server-side sessions keyed by an opaque cookie token.

    The ThingsBoard JWT of the user stays on the server; the browser only
    holds the session token.
    """

    def __init__(self, timeout: int = DEFAULT_SESSION_TIMEOUT):
        self.timeout = timeout
        self._sessions: dict[str, Session] = {}

    def create(self, username: str, upstream_token: str) -> str:
        """Create a session and return its token.

        Expired sessions are swept first.
        """
        now = time.time()
        self.purge(now)
        token = secrets.token_urlsafe(32)
        self._sessions[token] = Session(
            username=username,
            upstream_token=upstream_token,
            expires=now + self.timeout,
        )
        return token

    def purge(self, now: float | None = None) -> int:
        """Drop every expired session and return how many were dropped."""
        if now is None:
            now = time.time()
        expired = [
            token for token, session in self._sessions.items() if now > session.expires
        ]
        for token in expired:
            del self._sessions[token]
        if expired:
            _LOGGER.debug("[Sessions] Dropped %d expired sessions", len(expired))
        return len(expired)

    def get(self, token: str | None) -> Session | None:
        """Return a live session, dropping it if expired."""
        if not token:
            return None
        session = self._sessions.get(token)
        if session is None:
            return None
        if time.time() > session.expires:
            del self._sessions[token]
            return None
        return session

    def drop(self, token: str | None) -> None:
        """Forget a session."""
        if token:
            self._sessions.pop(token, None)

    def __len__(self) -> int:
        return len(self._sessions)


class DashboardServer:
    """aiohttp application exposing dashboard data and device control."""

    def __init__(self, runtime: RuntimeData, host: str = "0.0.0.0", port: int = 8080):
        self.runtime = runtime
        self._host = host
        self._port = port
        self.sessions = SessionStore(runtime.config.session_timeout)
        self.app = web.Application()
        self._runner: web.AppRunner | None = None
        self._setup_routes()

    def _setup_routes(self):
        router = self.app.router
        router.add_get("/api/health", self._handle_health)
        router.add_get("/api/tb", self._handle_snapshot)
        router.add_get("/api/devices", self._handle_list_devices)
        router.add_get("/api/devices/{device_id}", self._handle_get_device)
        router.add_get("/api/alarms", self._handle_list_alarms)
        router.add_get("/api/telemetry", self._handle_telemetry)
        router.add_post("/api/login", self._handle_login)
        router.add_post("/api/logout", self._handle_logout)
        router.add_post("/api/control", self._handle_control)
        router.add_get("/api/diagnostics", self._handle_diagnostics)

    @staticmethod
    def _json(data: Any, status: int = 200) -> web.Response:
        return web.json_response(data, status=status)

    def _failure(self, context: str, message: str, err: Exception) -> web.Response:
        """Log an error and turn it into a JSON error response."""
        if isinstance(err, TBConfigError):
            _LOGGER.error("[%s] %s", context, err)
            return self._json({"error": message, "detail": str(err)}, 503)
        if isinstance(err, TBClientError):
            _LOGGER.error("[%s] %s", context, err)
        else:
            _LOGGER.exception("[%s] Unexpected error", context)
        return self._json({"error": message, "detail": str(err)}, 500)

    def _current_session(self, request: web.Request) -> Session | None:
        return self.sessions.get(request.cookies.get(SESSION_COOKIE))

    @staticmethod
    async def _read_json(request: web.Request) -> dict[str, Any] | None:
        try:
            body = await request.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None

    # --- Read endpoints ---

    async def _handle_health(self, request):
        """GET /api/health."""
        return self._json({"status": "ok", "source": self.runtime.coordinator.source_name})

    async def _handle_snapshot(self, request):
        """GET /api/tb: everything the dashboard page needs."""
        try:
            snapshot = await self.runtime.coordinator.fetch_dashboard_snapshot()
        except Exception as err:
            return self._failure("api/tb", "Failed to fetch ThingsBoard data", err)
        return self._json(snapshot.as_dict())

    async def _handle_list_devices(self, request):
        """GET /api/devices."""
        try:
            devices = await self.runtime.coordinator.async_list_devices()
        except Exception as err:
            return self._failure("api/devices", "Failed to fetch devices", err)
        return self._json([device.as_dict() for device in devices])

    async def _handle_get_device(self, request):
        """GET /api/devices/{device_id}."""
        device_id = request.match_info["device_id"]
        try:
            device = await self.runtime.coordinator.async_get_device(device_id)
        except Exception as err:
            return self._failure("api/devices/{id}", "Failed to fetch device", err)
        if device is None:
            return self._json({"error": "Device not found"}, 404)
        return self._json(device.as_dict())

    async def _handle_list_alarms(self, request):
        """GET /api/alarms[?deviceId=...]."""
        device_id = request.query.get("deviceId") or None
        try:
            alarms = await self.runtime.coordinator.async_list_alarms(device_id)
        except Exception as err:
            return self._failure("api/alarms", "Failed to fetch alarms", err)
        return self._json([alarm.as_dict() for alarm in alarms])

    async def _handle_telemetry(self, request):
        """GET /api/telemetry?deviceId=...&type=latest|series[&window=24h|30d]."""
        device_id = request.query.get("deviceId")
        kind = request.query.get("type", "latest")
        coordinator = self.runtime.coordinator

        if kind == "series":
            if not device_id:
                return self._json(
                    {"error": "deviceId is required for time-series telemetry"}, 400
                )
            window = request.query.get("window", "24h")
            if window not in SERIES_WINDOWS:
                return self._json({"error": f"window must be one of {sorted(SERIES_WINDOWS)}"}, 400)
            try:
                series = await coordinator.async_get_series(device_id, window)
            except Exception as err:
                return self._failure("api/telemetry", "Failed to fetch telemetry", err)
            return self._json([point.as_dict() for point in series])

        if not device_id:
            return self._json({"error": "deviceId is required for latest telemetry"}, 400)
        try:
            latest = await coordinator.async_get_latest(device_id)
        except Exception as err:
            return self._failure("api/telemetry", "Failed to fetch telemetry", err)
        return self._json(latest)

    # --- Session endpoints ---

    async def _handle_login(self, request):
        """POST /api/login: log in against ThingsBoard and open a session."""
        body = await self._read_json(request)
        if body is None:
            return self._json({"error": "invalid JSON body"}, 400)

        username = body.get("username") or ""
        password = body.get("password") or ""
        if not username or not password:
            return self._json({"error": "Username and password are required"}, 400)

        try:
            tokens = await self.runtime.client.login(username, password)
        except TBAuthenticationError as err:
            _LOGGER.info("[api/login] Login rejected for %s (status=%s)", username, err.status)
            return self._json({"error": err.body or "Login failed"}, 401)
        except TBConnectionError as err:
            _LOGGER.error("[api/login] %s", err)
            return self._json({"error": "ThingsBoard unreachable", "detail": str(err)}, 502)
        except Exception as err:
            return self._failure("api/login", "Unexpected error during login", err)

        token = self.sessions.create(username, tokens["token"])
        _LOGGER.info("[api/login] %s logged in", username)
        resp = self._json({"ok": True, "username": username})
        resp.set_cookie(
            SESSION_COOKIE,
            token,
            max_age=self.sessions.timeout,
            httponly=True,
            secure=self.runtime.config.cookie_secure,
            samesite="Lax",
            path="/",
        )
        return resp

    async def _handle_logout(self, request):
        """POST /api/logout: close the session."""
        self.sessions.drop(request.cookies.get(SESSION_COOKIE))
        resp = self._json({"ok": True})
        resp.del_cookie(SESSION_COOKIE, path="/")
        return resp

    # --- Control ---

    async def _handle_control(self, request):
        """POST /api/control: forward an RPC to a device for a logged-in user."""
        session = self._current_session(request)
        if session is None:
            return self._json({"error": "Unauthorized: login required for control actions"}, 401)

        body = await self._read_json(request)
        if body is None:
            return self._json({"error": "invalid JSON body"}, 400)

        device_id = body.get("deviceId")
        method = body.get("method")
        if not device_id or not method:
            return self._json({"error": "deviceId and method are required"}, 400)

        try:
            result = await self.runtime.client.send_rpc(
                device_id, method, body.get("params"), session.upstream_token
            )
        except TBUpstreamError as err:
            _LOGGER.error(
                "[api/control] RPC failed: status=%d, body=%s", err.status, err.body
            )
            return self._json(
                {"error": err.body or "Control RPC failed", "status": err.status},
                err.status,
            )
        except Exception as err:
            return self._failure("api/control", "Unexpected error during control RPC", err)

        return self._json(result)

    async def _handle_diagnostics(self, request):
        """GET /api/diagnostics: redacted runtime state, login required."""
        if self._current_session(request) is None:
            return self._json({"error": "Authentication required"}, 401)
        return self._json(
            get_diagnostics(self.runtime.config, self.runtime.coordinator)
        )

    async def start(self):
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        _LOGGER.info("Dashboard API started on http://%s:%d", self._host, self._port)

    async def stop(self):
        if self._runner:
            await self._runner.cleanup()
        await self.runtime.coordinator.async_shutdown()

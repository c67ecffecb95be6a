"""ThingsBoard REST API client."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any
from urllib.parse import quote

import aiohttp

from .auth import CredentialManager, login
from .constants import (
    AUTH_HEADER,
    DEFAULT_PAGE_SIZE,
    DEFAULT_TIMEOUT,
    ENDPOINT_ALARMS,
    ENDPOINT_DEVICE,
    ENDPOINT_DEVICE_ALARMS,
    ENDPOINT_RPC_TWOWAY,
    ENDPOINT_TENANT_DEVICES,
    ENDPOINT_TIMESERIES,
    TELEMETRY_KEYS,
)
from .exceptions import (
    TBConfigError,
    TBConnectionError,
    TBNotFoundError,
    TBUpstreamError,
)
from .models import TelemetryRecord
from .utils import build_base_url, page_items

_LOGGER = logging.getLogger(__name__)


class ThingsBoardClient:
    """ThingsBoard REST API client (live data source)."""

    source = "live"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str | None,
        token: str | None = None,
        username: str | None = None,
        password: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        credentials: CredentialManager | None = None,
    ):
        """Initialize the ThingsBoard client.

        Args:
            session: aiohttp client session
            base_url: Base URL of ThingsBoard (e.g., https://demo.thingsboard.io)
            token: Optional pre-issued access token
            username: Username for the login exchange
            password: Password for the login exchange
            timeout: Request timeout in seconds
            credentials: Optional credential manager, built from the
                token/username/password when omitted

        """
        self.session = session
        self.base_url = build_base_url(base_url)
        self.timeout = timeout
        self.credentials = credentials or CredentialManager(
            session,
            self.base_url,
            token=token,
            username=username,
            password=password,
            timeout=timeout,
        )

    def _url(self, path: str) -> str:
        if not self.base_url:
            raise TBConfigError("THINGSBOARD_URL is not configured")
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        token: str | None = None,
    ) -> Any:
        """Send an authenticated request and return the decoded body.

        Args:
            method: HTTP method
            path: API path, e.g. ``/api/tenant/devices``
            params: Query parameters
            json_body: JSON request body
            token: Use this bearer token instead of the service credential
                (no refresh or retry in that case)

        Returns:
            Decoded JSON body, the raw text when the body is not JSON, or
            None for an empty body

        Raises:
            TBConfigError: If the base URL is not configured
            TBAuthenticationError: If no service credential can be obtained
            TBNotFoundError: On HTTP 404
            TBUpstreamError: On any other non-2xx status
            TBConnectionError: If the request fails

        """
        url = self._url(path)
        retry_on_401 = token is None

        while True:
            bearer = token or (await self.credentials.get_token()).token
            status, text = await self._send(method, url, params, json_body, bearer)

            if status == 401 and retry_on_401 and self.credentials.invalidate(bearer):
                _LOGGER.info("[TB Client] %s %s returned 401, retrying with a new token", method, path)
                retry_on_401 = False
                continue
            break

        if status == 404:
            raise TBNotFoundError(text)
        if not 200 <= status < 300:
            _LOGGER.debug("[TB Client] %s %s failed: status=%d, body=%s", method, path, status, text)
            raise TBUpstreamError(status, text)

        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text

    async def _send(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None,
        json_body: Any,
        bearer: str,
    ) -> tuple[int, str]:
        headers = {
            "Accept": "application/json",
            AUTH_HEADER: f"Bearer {bearer}",
        }
        _LOGGER.debug("[TB Client] %s %s params=%s", method, url, params)
        try:
            async with self.session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                return response.status, await response.text()
        except aiohttp.ClientError as err:
            raise TBConnectionError(f"{method} {url} failed: {err}") from err

    async def list_devices(self, page_size: int = DEFAULT_PAGE_SIZE) -> list[dict[str, Any]]:
        """Return the tenant's device records (first page)."""
        payload = await self.request(
            "GET", ENDPOINT_TENANT_DEVICES, params={"pageSize": page_size, "page": 0}
        )
        devices = page_items(payload)
        _LOGGER.debug("[TB Client] Fetched %d devices", len(devices))
        return devices

    async def get_device(self, device_id: str) -> dict[str, Any] | None:
        """Return a device record, or None if ThingsBoard doesn't know it."""
        try:
            return await self.request(
                "GET", ENDPOINT_DEVICE.format(device_id=quote(device_id, safe=""))
            )
        except TBNotFoundError:
            _LOGGER.debug("[TB Client] Device %s not found", device_id)
            return None

    async def list_alarms(
        self, device_id: str | None = None, page_size: int = DEFAULT_PAGE_SIZE
    ) -> list[dict[str, Any]]:
        """Return alarm records, optionally only those raised by one device."""
        if device_id:
            path = ENDPOINT_DEVICE_ALARMS.format(device_id=quote(device_id, safe=""))
        else:
            path = ENDPOINT_ALARMS
        payload = await self.request(
            "GET",
            path,
            params={
                "pageSize": page_size,
                "page": 0,
                "sortProperty": "createdTime",
                "sortOrder": "DESC",
            },
        )
        alarms = page_items(payload)
        _LOGGER.debug("[TB Client] Fetched %d alarms", len(alarms))
        return alarms

    async def get_latest_telemetry(
        self, device_id: str, keys: Iterable[str] = TELEMETRY_KEYS
    ) -> TelemetryRecord | None:
        """Return the latest sample per key, or None if the device is unknown."""
        try:
            payload = await self.request(
                "GET",
                ENDPOINT_TIMESERIES.format(device_id=quote(device_id, safe="")),
                params={"keys": ",".join(keys), "limit": 1},
            )
        except TBNotFoundError:
            _LOGGER.debug("[TB Client] No latest telemetry for device %s", device_id)
            return None
        return payload if isinstance(payload, dict) else {}

    async def get_timeseries(
        self,
        device_id: str,
        start_ts: int,
        end_ts: int,
        limit: int,
        keys: Iterable[str] = TELEMETRY_KEYS,
    ) -> TelemetryRecord:
        """Return raw time-series samples for a window, oldest first."""
        payload = await self.request(
            "GET",
            ENDPOINT_TIMESERIES.format(device_id=quote(device_id, safe="")),
            params={
                "keys": ",".join(keys),
                "startTs": start_ts,
                "endTs": end_ts,
                "limit": limit,
                "orderBy": "ASC",
            },
        )
        if not isinstance(payload, dict):
            return {}

        if _LOGGER.isEnabledFor(logging.DEBUG):
            _LOGGER.debug(
                "[TB Client] Timeseries for %s: %s",
                device_id,
                ", ".join(f"{key}={len(samples)}" for key, samples in payload.items()),
            )
        return payload

    async def send_rpc(
        self,
        device_id: str,
        method: str,
        params: Any,
        token: str,
    ) -> Any:
        """Invoke a two-way RPC on a device with a user's session token.

        Returns:
            The device's JSON reply, or ``{"ok": True, "raw": text}`` when the
            reply is not a JSON document

        Raises:
            TBUpstreamError: If ThingsBoard rejects the call

        """
        result = await self.request(
            "POST",
            ENDPOINT_RPC_TWOWAY.format(device_id=quote(device_id, safe="")),
            json_body={"method": method, "params": params if params is not None else {}},
            token=token,
        )
        _LOGGER.info("[TB Client] RPC %s sent to device %s", method, device_id)
        if result is None or isinstance(result, str):
            return {"ok": True, "raw": result or None}
        return result

    async def login(self, username: str, password: str) -> dict[str, Any]:
        """Log a dashboard user in against ThingsBoard.

        Returns:
            ``{"token": ..., "refreshToken": ...}``

        """
        return await login(self.session, self.base_url, username, password, self.timeout)

    async def close(self) -> None:
        """Close the client (session management is external)."""
        _LOGGER.debug("ThingsBoard client closed")

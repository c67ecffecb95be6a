"""ThingsBoard authentication and access token caching.

ThingsBoard issues a JWT from POST /api/auth/login (username/password) and
accepts it in the X-Authorization header. The token can be renewed with the
refresh token from POST /api/auth/token.

The service credential is process-wide state shared by every dashboard
request. CredentialManager owns it and runs at most one refresh at a time;
requests racing past expiry all await that refresh and share its token or
its error.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from typing import Any

import aiohttp

from .constants import (
    DEFAULT_TIMEOUT,
    ENDPOINT_LOGIN,
    ENDPOINT_TOKEN_REFRESH,
    TOKEN_LIFETIME_SECONDS,
    TOKEN_REFRESH_MARGIN_SECONDS,
)
from .exceptions import TBAuthenticationError, TBConfigError, TBConnectionError
from .models import Credential

_LOGGER = logging.getLogger(__name__)


async def exchange_token(
    session: aiohttp.ClientSession,
    base_url: str | None,
    endpoint: str,
    payload: dict[str, Any],
    timeout: int = DEFAULT_TIMEOUT,
) -> dict[str, Any]:
    """POST a login or refresh payload and return the token response.

    Args:
        session: aiohttp client session
        base_url: ThingsBoard base URL
        endpoint: ENDPOINT_LOGIN or ENDPOINT_TOKEN_REFRESH
        payload: Request body
        timeout: Request timeout in seconds

    Returns:
        Response body, guaranteed to contain ``token``

    Raises:
        TBConfigError: If base_url is not configured
        TBAuthenticationError: If the exchange is rejected or returns no token
        TBConnectionError: If the request fails

    """
    if not base_url:
        raise TBConfigError("THINGSBOARD_URL is not configured")

    url = f"{base_url}{endpoint}"
    _LOGGER.debug("[TB Auth] Token exchange: url=%s, timeout=%ds", url, timeout)

    try:
        async with session.post(
            url,
            json=payload,
            headers={"Accept": "application/json"},
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            status = response.status
            text = await response.text()
    except aiohttp.ClientError as err:
        _LOGGER.debug(
            "[TB Auth] Connection error during token exchange: %s (type=%s)",
            err,
            type(err).__name__,
        )
        raise TBConnectionError(f"Token exchange request failed: {err}") from err

    if not 200 <= status < 300:
        _LOGGER.error("[TB Auth] Token exchange failed: status=%d, body=%s", status, text)
        raise TBAuthenticationError(
            f"ThingsBoard login failed ({status}): {text or 'no response body'}",
            status=status,
            body=text,
        )

    try:
        data = json.loads(text) if text else {}
    except ValueError as err:
        raise TBAuthenticationError(
            "ThingsBoard login returned invalid JSON", status=status, body=text
        ) from err

    if not isinstance(data, dict) or not data.get("token"):
        raise TBAuthenticationError(
            "ThingsBoard login did not return a token", status=status, body=text
        )

    return data


async def login(
    session: aiohttp.ClientSession,
    base_url: str | None,
    username: str,
    password: str,
    timeout: int = DEFAULT_TIMEOUT,
) -> dict[str, Any]:
    """Exchange username/password for a ThingsBoard JWT.

    Returns:
        ``{"token": ..., "refreshToken": ...}`` as sent by ThingsBoard

    """
    return await exchange_token(
        session,
        base_url,
        ENDPOINT_LOGIN,
        {"username": username, "password": password},
        timeout,
    )


class CredentialManager:
    """Cache and refresh the service access token."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str | None,
        token: str | None = None,
        username: str | None = None,
        password: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        lifetime: int = TOKEN_LIFETIME_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the credential manager.

        Args:
            session: aiohttp client session
            base_url: ThingsBoard base URL
            token: Optional pre-issued token, cached indefinitely
            username: Username for the login exchange
            password: Password for the login exchange
            timeout: Request timeout in seconds
            lifetime: Seconds a fresh login token is considered valid
            clock: Returns the current time in epoch seconds

        """
        self.session = session
        self.base_url = base_url
        self.username = username
        self.password = password
        self.timeout = timeout
        self.lifetime = lifetime
        self._clock = clock
        self._credential: Credential | None = Credential(token=token) if token else None
        self._pending: asyncio.Task[Credential] | None = None

    @property
    def credential(self) -> Credential | None:
        """Currently cached credential."""
        return self._credential

    def _is_fresh(self, credential: Credential | None) -> bool:
        return credential is not None and credential.is_valid(
            self._clock(), TOKEN_REFRESH_MARGIN_SECONDS
        )

    async def get_token(self) -> Credential:
        """Return a usable credential, logging in when needed.

        Concurrent callers share one in-flight refresh and all receive its
        result, including a rejected login.

        Raises:
            TBAuthenticationError: If no credential source is configured or
                the login exchange fails

        """
        if self._is_fresh(self._credential):
            return self._credential  # type: ignore[return-value]

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._run_refresh())
        # A cancelled caller must not cancel the refresh other callers await
        return await asyncio.shield(self._pending)

    async def _run_refresh(self) -> Credential:
        try:
            self._credential = await self._refresh(self._credential)
            return self._credential
        finally:
            self._pending = None

    def invalidate(self, token: str | None = None) -> bool:
        """Drop a login-derived credential after the upstream rejected it.

        Args:
            token: The bearer that was rejected. The cache is only cleared
                while it still holds this token, so a credential another
                request already renewed is kept.

        Returns:
            True if retrying with get_token() can yield a different token.
            Pre-issued tokens are kept and give False.

        """
        credential = self._credential
        if credential is None:
            return self._pending is not None or bool(self.username and self.password)
        if credential.expires_at is None:
            return False
        if token is not None and credential.token != token:
            _LOGGER.debug("[TB Auth] Rejected token already replaced")
            return True
        _LOGGER.debug("[TB Auth] Invalidating cached credential")
        self._credential = None
        return True

    async def _refresh(self, stale: Credential | None) -> Credential:
        if not self.username or not self.password:
            raise TBAuthenticationError(
                "THINGSBOARD_TOKEN or THINGSBOARD_USERNAME / THINGSBOARD_PASSWORD "
                "not configured"
            )

        if stale is not None and stale.refresh_token:
            try:
                data = await exchange_token(
                    self.session,
                    self.base_url,
                    ENDPOINT_TOKEN_REFRESH,
                    {"refreshToken": stale.refresh_token},
                    self.timeout,
                )
            except TBAuthenticationError as err:
                _LOGGER.info("[TB Auth] Token refresh rejected, logging in again: %s", err)
            else:
                _LOGGER.debug("[TB Auth] Token refreshed")
                return self._to_credential(data)

        data = await login(
            self.session, self.base_url, self.username, self.password, self.timeout
        )
        _LOGGER.info("[TB Auth] Logged in to ThingsBoard as %s", self.username)
        return self._to_credential(data)

    def _to_credential(self, data: dict[str, Any]) -> Credential:
        return Credential(
            token=data["token"],
            expires_at=self._clock() + self.lifetime,
            refresh_token=data.get("refreshToken"),
        )

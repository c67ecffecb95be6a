"""Environment configuration for the dashboard backend."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

import voluptuous as vol

from .const import (
    CONF_COOKIE_SECURE,
    CONF_DEVICE_ID,
    CONF_HOST,
    CONF_LOG_LEVEL,
    CONF_PASSWORD,
    CONF_PORT,
    CONF_SESSION_TIMEOUT,
    CONF_TIMEOUT,
    CONF_TOKEN,
    CONF_URL,
    CONF_USE_MOCK,
    CONF_USERNAME,
    DEFAULT_DEVICE_ID,
    DEFAULT_HOST,
    DEFAULT_LOG_LEVEL,
    DEFAULT_PORT,
    DEFAULT_SESSION_TIMEOUT,
    DEFAULT_TIMEOUT,
    MAX_TIMEOUT,
    MIN_TIMEOUT,
)
from .thingsboard_client.exceptions import TBConfigError
from .thingsboard_client.utils import build_base_url

_LOGGER = logging.getLogger(__name__)


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_URL, default=None): vol.Any(None, vol.All(str, _blank_to_none)),
        vol.Optional(CONF_TOKEN, default=None): vol.Any(None, vol.All(str, _blank_to_none)),
        vol.Optional(CONF_USERNAME, default=None): vol.Any(None, vol.All(str, _blank_to_none)),
        vol.Optional(CONF_PASSWORD, default=None): vol.Any(None, str),
        vol.Optional(CONF_DEVICE_ID, default=DEFAULT_DEVICE_ID): vol.All(str, vol.Length(min=1)),
        vol.Optional(CONF_USE_MOCK, default=False): vol.Boolean(),
        vol.Optional(CONF_HOST, default=DEFAULT_HOST): str,
        vol.Optional(CONF_PORT, default=DEFAULT_PORT): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=65535)
        ),
        vol.Optional(CONF_TIMEOUT, default=DEFAULT_TIMEOUT): vol.All(
            vol.Coerce(int), vol.Range(min=MIN_TIMEOUT, max=MAX_TIMEOUT)
        ),
        vol.Optional(CONF_SESSION_TIMEOUT, default=DEFAULT_SESSION_TIMEOUT): vol.All(
            vol.Coerce(int), vol.Range(min=60)
        ),
        vol.Optional(CONF_COOKIE_SECURE, default=False): vol.Boolean(),
        vol.Optional(CONF_LOG_LEVEL, default=DEFAULT_LOG_LEVEL): vol.All(
            str, vol.Upper, vol.In(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
        ),
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass(frozen=True)
class DashboardConfig:
    """Validated runtime configuration."""

    url: str | None = None
    token: str | None = None
    username: str | None = None
    password: str | None = None
    device_id: str = DEFAULT_DEVICE_ID
    use_mock: bool = False
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: int = DEFAULT_TIMEOUT
    session_timeout: int = DEFAULT_SESSION_TIMEOUT
    cookie_secure: bool = False
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def has_credentials(self) -> bool:
        """True if a token or a username/password pair is configured."""
        return bool(self.token or (self.username and self.password))


def load_config(environ: Mapping[str, str] | None = None) -> DashboardConfig:
    """Build the configuration from environment variables.

    A missing THINGSBOARD_URL is accepted here; upstream calls fail with
    TBConfigError until it is set.

    Raises:
        TBConfigError: If a variable holds an invalid value

    """
    if environ is None:
        environ = os.environ

    names = [marker.schema for marker in CONFIG_SCHEMA.schema]
    raw = {name: environ[name] for name in names if name in environ}
    try:
        data = CONFIG_SCHEMA(raw)
    except vol.Invalid as err:
        raise TBConfigError(f"Invalid configuration: {err}") from err

    config = DashboardConfig(
        url=build_base_url(data[CONF_URL]),
        token=data[CONF_TOKEN],
        username=data[CONF_USERNAME],
        password=data[CONF_PASSWORD],
        device_id=data[CONF_DEVICE_ID],
        use_mock=data[CONF_USE_MOCK],
        host=data[CONF_HOST],
        port=data[CONF_PORT],
        timeout=data[CONF_TIMEOUT],
        session_timeout=data[CONF_SESSION_TIMEOUT],
        cookie_secure=data[CONF_COOKIE_SECURE],
        log_level=data[CONF_LOG_LEVEL],
    )

    _LOGGER.debug(
        "Loaded configuration: url=%s, username=%s, device_id=%s, use_mock=%s, timeout=%d",
        config.url or "not set",
        config.username or "not set",
        config.device_id,
        config.use_mock,
        config.timeout,
    )
    if not config.use_mock and not config.url:
        _LOGGER.warning("%s is not set, live data requests will fail", CONF_URL)
    return config

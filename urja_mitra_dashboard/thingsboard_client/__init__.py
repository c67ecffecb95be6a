"""ThingsBoard REST Client Library."""

from .constants import (
    ENDPOINT_LOGIN,
    ENDPOINT_TIMESERIES,
    TELEMETRY_KEYS,
    TOKEN_LIFETIME_SECONDS,
    TOKEN_REFRESH_MARGIN_SECONDS,
)
from .exceptions import (
    TBAuthenticationError,
    TBClientError,
    TBConfigError,
    TBConnectionError,
    TBNotFoundError,
    TBUpstreamError,
)

__all__ = [
    # Constants
    "ENDPOINT_LOGIN",
    "ENDPOINT_TIMESERIES",
    "TELEMETRY_KEYS",
    "TOKEN_LIFETIME_SECONDS",
    "TOKEN_REFRESH_MARGIN_SECONDS",
    # Exceptions
    "TBAuthenticationError",
    "TBClientError",
    "TBConfigError",
    "TBConnectionError",
    "TBNotFoundError",
    "TBUpstreamError",
]

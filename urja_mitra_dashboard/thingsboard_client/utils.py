"""Utility functions for ThingsBoard client."""

from __future__ import annotations

import logging
import math
import time
from typing import Any

_LOGGER = logging.getLogger(__name__)

# 9999-12-31T00:00:00Z, the last day datetime can render in any local zone
MAX_TIMESTAMP_MS = 253_402_214_400_000


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def build_base_url(host: str | None) -> str | None:
    """Normalize a configured host into a base URL without trailing slash.

    Example:
        >>> build_base_url("demo.thingsboard.io/")
        'http://demo.thingsboard.io'

    """
    if not host:
        return None
    host = host.strip()
    if not host.startswith(("http://", "https://")):
        host = f"http://{host}"
    return host.rstrip("/")


def coerce_timestamp(value: Any) -> int | None:
    """Return an epoch-ms timestamp from an upstream field, or None.

    Booleans, non-numeric strings, non-finite numbers and values outside
    0..MAX_TIMESTAMP_MS are rejected.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or not 0 <= value <= MAX_TIMESTAMP_MS:
        return None
    return int(value)


def entity_id(value: Any) -> str | None:
    """Extract an id from either a plain string or a ``{"id": ...}`` object."""
    if isinstance(value, dict):
        value = value.get("id")
    if value is None:
        return None
    return str(value)


def page_items(payload: Any) -> list[dict[str, Any]]:
    """Return the items of a page payload.

    ThingsBoard list endpoints answer with ``{"data": [...], "hasNext": ...}``;
    the mock source and older proxies answer with a bare list.
    """
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, list):
            return [item for item in data if isinstance(item, dict)]
    _LOGGER.debug("Unrecognized page payload type: %s", type(payload).__name__)
    return []

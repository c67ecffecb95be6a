"""Device online/offline derivation.

ThingsBoard device listings do not always carry a status. When they don't, a
device counts as online if it reported activity within the liveness window.
There is no "unknown" state: missing activity reads as offline.
"""

from __future__ import annotations

from typing import Any

from .utils import coerce_timestamp, now_ms

STATUS_ONLINE = "ONLINE"
STATUS_OFFLINE = "OFFLINE"

LIVENESS_WINDOW_MS = 5 * 60 * 1000

LAST_ACTIVITY_FIELDS = ("lastActivityTs", "lastActivityTime")


def last_activity_ts(device: dict[str, Any]) -> int | None:
    """Return the last activity timestamp (ms) of an upstream device record."""
    for field in LAST_ACTIVITY_FIELDS:
        ts = coerce_timestamp(device.get(field))
        if ts is not None:
            return ts
    return None


def derive_status(device: dict[str, Any], now: int | None = None) -> str:
    """Return ONLINE or OFFLINE for an upstream device record.

    Args:
        device: Upstream device record
        now: Current time in epoch milliseconds (default: wall clock)

    Returns:
        The explicit ``status`` field when present, otherwise ONLINE if the
        last activity is within the liveness window

    """
    status = device.get("status")
    if status:
        return status

    last_activity = last_activity_ts(device)
    if last_activity is None:
        return STATUS_OFFLINE

    if now is None:
        now = now_ms()
    return STATUS_ONLINE if now - last_activity < LIVENESS_WINDOW_MS else STATUS_OFFLINE

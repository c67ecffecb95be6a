"""Diagnostics support for the Urja Mitra dashboard backend."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from .config import DashboardConfig
from .const import DOMAIN, VERSION
from .coordinator import DashboardCoordinator

REDACTED = "**REDACTED**"

# Keys to redact from diagnostics output
TO_REDACT = {
    "url",
    "token",
    "username",
    "password",
    "device_id",
}


def redact(data: dict[str, Any], to_redact: set[str] = TO_REDACT) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive values replaced."""
    return {
        key: REDACTED if key in to_redact and value is not None else value
        for key, value in data.items()
    }


def get_diagnostics(
    config: DashboardConfig, coordinator: DashboardCoordinator
) -> dict[str, Any]:
    """Return diagnostics for the running backend."""
    config_data = {
        "domain": DOMAIN,
        "version": VERSION,
        "config": redact(asdict(config)),
    }

    coordinator_data = {
        "source": coordinator.source_name,
        "last_errors": coordinator.last_errors,
    }

    # Counts only, no telemetry values
    snapshot_summary: dict[str, Any] = {}
    snapshot = coordinator.last_snapshot
    if snapshot is not None:
        snapshot_summary = {
            "source": snapshot.source,
            "fetched_at": snapshot.fetched_at,
            "device_count": len(snapshot.devices),
            "online_count": sum(1 for d in snapshot.devices if d.status == "ONLINE"),
            "alarm_count": len(snapshot.alarms),
            "latest_keys": sorted(snapshot.latest or {}),
            "day_points": len(snapshot.series_day),
            "month_points": len(snapshot.series_month),
        }

    return {
        "config": config_data,
        "coordinator": coordinator_data,
        "snapshot_summary": snapshot_summary,
    }

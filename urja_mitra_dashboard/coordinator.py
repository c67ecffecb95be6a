"""Dashboard data coordinator.

Fans out the upstream requests behind the dashboard page, waits for all of
them, and composes one snapshot. Data is pulled fresh on every call; nothing
but the last snapshot (for diagnostics) is kept.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

from .const import SOURCE_MOCK
from .helpers import log_debug, log_error, log_warning
from .thingsboard_client.constants import (
    HISTORY_30D_LIMIT,
    HISTORY_30D_WINDOW_MS,
    HISTORY_LIMIT,
    HISTORY_WINDOW_MS,
)
from .thingsboard_client.exceptions import (
    TBAuthenticationError,
    TBClientError,
    TBConfigError,
)
from .thingsboard_client.mock import MOCK_DEVICE_ID, MockDataSource
from .thingsboard_client.models import (
    Alarm,
    DashboardSnapshot,
    Device,
    SeriesPoint,
    TelemetryRecord,
)
from .thingsboard_client.normalizer import (
    format_hour_minute,
    format_month_day,
    normalize_series,
)

_LOGGER = logging.getLogger(__name__)

# Failures that mean the upstream can't be used at all
FATAL_ERRORS = (TBConfigError, TBAuthenticationError)

SERIES_WINDOWS = {
    "24h": (HISTORY_WINDOW_MS, HISTORY_LIMIT, format_hour_minute),
    "30d": (HISTORY_30D_WINDOW_MS, HISTORY_30D_LIMIT, format_month_day),
}

_FIELDS = ("devices", "alarms", "latest", "history", "history30d")


class DataSource(Protocol):
    """What the coordinator needs from ThingsBoardClient or MockDataSource."""

    source: str

    async def list_devices(self) -> list[dict[str, Any]]: ...

    async def get_device(self, device_id: str) -> dict[str, Any] | None: ...

    async def list_alarms(self, device_id: str | None = None) -> list[dict[str, Any]]: ...

    async def get_latest_telemetry(self, device_id: str) -> TelemetryRecord | None: ...

    async def get_timeseries(
        self, device_id: str, start_ts: int, end_ts: int, limit: int
    ) -> TelemetryRecord: ...

    async def close(self) -> None: ...


class DashboardCoordinator:
    """Aggregate devices, alarms and telemetry for the dashboard."""

    def __init__(
        self,
        source: DataSource,
        device_id: str,
        fallback: MockDataSource | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the coordinator.

        Args:
            source: Live client or mock data source
            device_id: Device whose telemetry feeds the dashboard charts
            fallback: Mock source used when the live source is unusable
            clock: Returns the current time in epoch seconds

        """
        self.source = source
        self.device_id = device_id
        self.fallback = fallback or MockDataSource(clock=clock)
        self._clock = clock
        self.last_snapshot: DashboardSnapshot | None = None
        self.last_errors: dict[str, str] = {}

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @property
    def source_name(self) -> str:
        """Name of the configured data source."""
        return self.source.source

    async def fetch_dashboard_snapshot(self) -> DashboardSnapshot:
        """Return devices, alarms, latest telemetry and history in one payload.

        Never raises for upstream problems: a failed sub-request leaves its
        field empty, and an unusable upstream yields the mock payload.
        """
        if self.source.source == SOURCE_MOCK:
            snapshot, errors = await self._collect(self.source, MOCK_DEVICE_ID)
        else:
            snapshot, errors = await self._collect(self.source, self.device_id)
            fatal = [err for err in errors.values() if isinstance(err, FATAL_ERRORS)]
            if fatal or len(errors) == len(_FIELDS):
                log_warning(
                    _LOGGER,
                    "fetch_dashboard_snapshot",
                    "Upstream unavailable, serving mock data",
                    reason=fatal[0] if fatal else "all requests failed",
                )
                snapshot, _ = await self._collect(self.fallback, MOCK_DEVICE_ID)

        self.last_snapshot = snapshot
        self.last_errors = {name: str(err) for name, err in errors.items()}
        log_debug(
            _LOGGER,
            "fetch_dashboard_snapshot",
            "Snapshot ready",
            source=snapshot.source,
            devices=len(snapshot.devices),
            alarms=len(snapshot.alarms),
            day_points=len(snapshot.series_day),
            month_points=len(snapshot.series_month),
        )
        return snapshot

    async def _collect(
        self, source: DataSource, device_id: str
    ) -> tuple[DashboardSnapshot, dict[str, BaseException]]:
        now = self._now_ms()
        results = await asyncio.gather(
            source.list_devices(),
            source.list_alarms(),
            source.get_latest_telemetry(device_id),
            source.get_timeseries(device_id, now - HISTORY_WINDOW_MS, now, HISTORY_LIMIT),
            source.get_timeseries(
                device_id, now - HISTORY_30D_WINDOW_MS, now, HISTORY_30D_LIMIT
            ),
            return_exceptions=True,
        )

        values: dict[str, Any] = {}
        errors: dict[str, BaseException] = {}
        for name, result in zip(_FIELDS, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, TBClientError):
                log_warning(_LOGGER, name, "Request failed", error=result)
                errors[name] = result
            elif isinstance(result, BaseException):
                log_error(_LOGGER, name, "Unexpected error", error=repr(result))
                errors[name] = result
            else:
                values[name] = result

        history = values.get("history")
        history30d = values.get("history30d")
        return (
            DashboardSnapshot(
                source=source.source,
                fetched_at=now,
                devices=[Device.from_upstream(r, now) for r in values.get("devices") or []],
                alarms=_sorted_alarms(values.get("alarms") or []),
                latest=values.get("latest"),
                history=history,
                history30d=history30d,
                series_day=normalize_series(history, format_hour_minute),
                series_month=normalize_series(history30d, format_month_day),
            ),
            errors,
        )

    async def async_list_devices(self) -> list[Device]:
        """Return all devices, or an empty list if the upstream fails."""
        try:
            records = await self.source.list_devices()
        except TBClientError as err:
            log_warning(_LOGGER, "list_devices", "Returning no devices", error=err)
            return []
        now = self._now_ms()
        return [Device.from_upstream(record, now) for record in records]

    async def async_get_device(self, device_id: str) -> Device | None:
        """Return one device, or None if it doesn't exist."""
        record = await self.source.get_device(device_id)
        if record is None:
            return None
        return Device.from_upstream(record, self._now_ms())

    async def async_list_alarms(self, device_id: str | None = None) -> list[Alarm]:
        """Return alarms newest first, or an empty list if the upstream fails."""
        try:
            records = await self.source.list_alarms(device_id)
        except TBClientError as err:
            log_warning(_LOGGER, "list_alarms", "Returning no alarms", error=err)
            return []
        return _sorted_alarms(records)

    async def async_get_latest(self, device_id: str) -> TelemetryRecord | None:
        """Return the latest sample per key, or None for unknown devices."""
        return await self.source.get_latest_telemetry(device_id)

    async def async_get_series(self, device_id: str, window: str = "24h") -> list[SeriesPoint]:
        """Return the normalized series of a device for a window ("24h" or "30d").

        Raises:
            ValueError: If the window is unknown

        """
        if window not in SERIES_WINDOWS:
            raise ValueError(f"Unknown window: {window}")
        span, limit, formatter = SERIES_WINDOWS[window]
        now = self._now_ms()
        records = await self.source.get_timeseries(device_id, now - span, now, limit)
        return normalize_series(records, formatter)

    async def async_shutdown(self) -> None:
        """Shutdown the coordinator and clean up resources."""
        _LOGGER.debug("Shutting down coordinator")
        await self.source.close()


def _sorted_alarms(records: list[dict[str, Any]]) -> list[Alarm]:
    alarms = [Alarm.from_upstream(record) for record in records]
    alarms.sort(key=lambda alarm: alarm.created_time_ts, reverse=True)
    return alarms

"""Data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .liveness import derive_status, last_activity_ts
from .utils import coerce_timestamp, entity_id

# Raw upstream telemetry: {key: [{"ts": 1700000000000, "value": "230.1"}, ...]}
TelemetryRecord = dict[str, list[dict[str, Any]]]


@dataclass
class Credential:
    """Upstream access token."""

    token: str
    expires_at: float | None = None  # epoch seconds, None = never expires
    refresh_token: str | None = None

    def is_valid(self, now: float, margin: float = 0) -> bool:
        """Return True if the token can still be used ``margin`` seconds from now."""
        if self.expires_at is None:
            return True
        return now < self.expires_at - margin


@dataclass
class Device:
    """ThingsBoard device."""

    id: str
    name: str
    status: str
    last_activity_ts: int | None = None
    label: str | None = None
    type: str | None = None
    customer_title: str | None = None

    @classmethod
    def from_upstream(cls, record: dict[str, Any], now: int | None = None) -> Device:
        """Build a device from a ThingsBoard or mock device record."""
        device_id = entity_id(record.get("id")) or ""
        return cls(
            id=device_id,
            name=record.get("name") or device_id,
            status=derive_status(record, now),
            last_activity_ts=last_activity_ts(record),
            label=record.get("label") or None,
            type=record.get("type") or None,
            customer_title=record.get("customerTitle") or None,
        )

    def as_dict(self) -> dict[str, Any]:
        """Return the JSON representation."""
        return {
            "id": self.id,
            "name": self.name,
            "label": self.label,
            "type": self.type,
            "customerTitle": self.customer_title,
            "status": self.status,
            "lastActivityTs": self.last_activity_ts,
        }


@dataclass
class Alarm:
    """ThingsBoard alarm."""

    id: str
    device_id: str | None
    severity: str
    type: str
    status: str
    created_time_ts: int
    details: str | None = None

    @classmethod
    def from_upstream(cls, record: dict[str, Any]) -> Alarm:
        """Build an alarm from a ThingsBoard or mock alarm record.

        ThingsBoard reports the device as ``originator`` and a JSON ``details``
        object; the mock shape uses ``deviceId`` and a text ``details``.
        """
        details = record.get("details")
        if isinstance(details, dict):
            details = details.get("message") or details.get("data") or None
        created = coerce_timestamp(record.get("createdTimeTs"))
        if created is None:
            created = coerce_timestamp(record.get("createdTime")) or 0
        return cls(
            id=entity_id(record.get("id")) or "",
            device_id=entity_id(record.get("deviceId") or record.get("originator")),
            severity=record.get("severity") or "INDETERMINATE",
            type=record.get("type") or "",
            status=record.get("status") or "ACTIVE_UNACK",
            created_time_ts=created,
            details=str(details) if details else None,
        )

    def as_dict(self) -> dict[str, Any]:
        """Return the JSON representation."""
        return {
            "id": self.id,
            "deviceId": self.device_id,
            "severity": self.severity,
            "type": self.type,
            "status": self.status,
            "createdTimeTs": self.created_time_ts,
            "details": self.details,
        }


@dataclass
class SeriesPoint:
    """Chart-ready telemetry sample."""

    ts: int
    label: str
    power_w: float
    voltage_v: float
    current_a: float
    energy_kwh: float

    def as_dict(self) -> dict[str, Any]:
        """Return the JSON representation."""
        return {
            "ts": self.ts,
            "label": self.label,
            "powerW": self.power_w,
            "voltageV": self.voltage_v,
            "currentA": self.current_a,
            "energyKwh": self.energy_kwh,
        }


@dataclass
class DashboardSnapshot:
    """Everything the dashboard page needs in one payload."""

    source: str  # "live" or "mock"
    fetched_at: int
    devices: list[Device] = field(default_factory=list)
    alarms: list[Alarm] = field(default_factory=list)
    latest: TelemetryRecord | None = None
    history: TelemetryRecord | None = None
    history30d: TelemetryRecord | None = None
    series_day: list[SeriesPoint] = field(default_factory=list)
    series_month: list[SeriesPoint] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        """Return the JSON representation."""
        return {
            "source": self.source,
            "fetchedAt": self.fetched_at,
            "devices": [device.as_dict() for device in self.devices],
            "alarms": [alarm.as_dict() for alarm in self.alarms],
            "latest": self.latest,
            "history": self.history,
            "history30d": self.history30d,
            "series": {
                "day": [point.as_dict() for point in self.series_day],
                "month": [point.as_dict() for point in self.series_month],
            },
        }

"""Offline demo data with the same interface as ThingsBoardClient.

Devices and alarms are fixed. Time series are generated from a seeded RNG per
device and sample timestamp, so the same window always yields the same values.
Everything is returned in ThingsBoard's raw shapes, so mock data goes through
the same normalization path as live data.
"""

from __future__ import annotations

import logging
import math
import random
import time
import zlib
from collections.abc import Callable, Iterable
from typing import Any

from .constants import DEFAULT_PAGE_SIZE, TELEMETRY_KEYS
from .models import TelemetryRecord

_LOGGER = logging.getLogger(__name__)

MOCK_DEVICE_ID = "dev-solar-001"
MOCK_CUSTOMER = "UrjaMitra Demo"
DEFAULT_SEED = 1337

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

# (id, name, label, type, status, ms since last activity)
_DEVICES = (
    ("dev-solar-001", "Solar Inverter #001", "Rooftop Solar - Block A", "inverter", "ONLINE", 2 * MINUTE_MS),
    ("dev-meter-014", "Smart Meter #014", "Main Feed - Floor 2", "meter", "ONLINE", 35 * 1000),
    ("dev-pump-002", "Pump Controller #002", "Water Pump - Basement", "controller", "OFFLINE", 6 * HOUR_MS),
    ("dev-evse-007", "EV Charger #007", "Parking - Bay 7", "evse", "ONLINE", 1 * MINUTE_MS),
)

# (id, device, severity, type, status, ms since creation, details)
_ALARMS = (
    ("alarm-001", "dev-pump-002", "MAJOR", "DEVICE_OFFLINE", "ACTIVE_UNACK", 55 * MINUTE_MS,
     "No telemetry received for 6 hours."),
    ("alarm-002", "dev-solar-001", "WARNING", "TEMP_HIGH", "ACTIVE_ACK", 10 * MINUTE_MS,
     "Inverter temperature above threshold (42°C)."),
)

# Latest readings: ms since update, then values per telemetry key
_LATEST = {
    "dev-solar-001": (1 * MINUTE_MS, {
        "temperature": 44.2, "humidity": 22.0, "voltage": 232.1, "current": 9.7,
        "power": 2150, "energy": 1843.6, "energyKwhToday": 12.4, "rssi": -58,
    }),
    "dev-meter-014": (20 * 1000, {
        "temperature": 33.9, "humidity": 41.0, "voltage": 229.5, "current": 3.4,
        "power": 780, "energy": 932.1, "energyKwhToday": 6.2, "rssi": -62,
    }),
    "dev-pump-002": (6 * HOUR_MS, {
        "temperature": 39.0, "humidity": 55.0, "voltage": 0, "current": 0,
        "power": 0, "energy": 211.8, "energyKwhToday": 0.4, "rssi": -92,
    }),
    "dev-evse-007": (10 * 1000, {
        "temperature": 31.5, "humidity": 28.0, "voltage": 234.0, "current": 14.2,
        "power": 3320, "energy": 4120.5, "energyKwhToday": 18.8, "rssi": -53,
    }),
}

# Peak power (W) per device type for the generated series
_PEAK_POWER_W = {"inverter": 3200.0, "meter": 1400.0, "controller": 750.0, "evse": 7000.0}


def _fmt(value: float) -> str:
    # ThingsBoard returns every value as text
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _daily_phase(ts: int) -> float:
    """0..1 phase of the local day."""
    lt = time.localtime(ts / 1000)
    return (lt.tm_hour * 3600 + lt.tm_min * 60 + lt.tm_sec) / 86400.0


class MockDataSource:
    """Demo data source for offline operation."""

    source = "mock"

    def __init__(self, seed: int = DEFAULT_SEED, clock: Callable[[], float] = time.time):
        """Initialize the mock source.

        Args:
            seed: Seed for the generated series
            clock: Returns the current time in epoch seconds

        """
        self.seed = seed
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def list_devices(self, page_size: int = DEFAULT_PAGE_SIZE) -> list[dict[str, Any]]:
        """Return the demo device records."""
        now = self._now_ms()
        return [
            {
                "id": {"id": device_id, "entityType": "DEVICE"},
                "name": name,
                "label": label,
                "type": device_type,
                "customerTitle": MOCK_CUSTOMER,
                "status": status,
                "lastActivityTs": now - age,
            }
            for device_id, name, label, device_type, status, age in _DEVICES[:page_size]
        ]

    async def get_device(self, device_id: str) -> dict[str, Any] | None:
        """Return one demo device record, or None."""
        for device in await self.list_devices():
            if device["id"]["id"] == device_id:
                return device
        return None

    async def list_alarms(
        self, device_id: str | None = None, page_size: int = DEFAULT_PAGE_SIZE
    ) -> list[dict[str, Any]]:
        """Return demo alarms, newest first."""
        now = self._now_ms()
        alarms = [
            {
                "id": alarm_id,
                "deviceId": device,
                "severity": severity,
                "type": alarm_type,
                "status": status,
                "createdTimeTs": now - age,
                "details": details,
            }
            for alarm_id, device, severity, alarm_type, status, age, details in _ALARMS
            if device_id is None or device == device_id
        ]
        alarms.sort(key=lambda alarm: alarm["createdTimeTs"], reverse=True)
        return alarms[:page_size]

    async def get_latest_telemetry(
        self, device_id: str, keys: Iterable[str] = TELEMETRY_KEYS
    ) -> TelemetryRecord | None:
        """Return the latest demo sample per key, or None for unknown devices."""
        if device_id not in _LATEST:
            return None
        age, values = _LATEST[device_id]
        ts = self._now_ms() - age
        return {
            key: [{"ts": ts, "value": _fmt(values[key])}]
            for key in keys
            if key in values
        }

    async def get_timeseries(
        self,
        device_id: str,
        start_ts: int,
        end_ts: int,
        limit: int,
        keys: Iterable[str] = TELEMETRY_KEYS,
    ) -> TelemetryRecord:
        """Generate a deterministic demo series for the window, oldest first."""
        device_type = next((d[3] for d in _DEVICES if d[0] == device_id), None)
        if device_type is None:
            return {}

        step = 15 * MINUTE_MS if end_ts - start_ts <= DAY_MS else DAY_MS
        count = max(0, min(limit, (end_ts - start_ts) // step))
        first = end_ts - (count - 1) * step if count else end_ts
        timestamps = [first + i * step for i in range(count)]

        samples = [self._sample(device_id, device_type, ts, step) for ts in timestamps]
        wanted = set(keys)
        record: TelemetryRecord = {}
        for key in ("power", "voltage", "current", "energy"):
            if key in wanted:
                record[key] = [
                    {"ts": ts, "value": _fmt(sample[key])}
                    for ts, sample in zip(timestamps, samples)
                ]
        _LOGGER.debug("[Mock] Generated %d samples for %s", count, device_id)
        return record

    def _sample(self, device_id: str, device_type: str, ts: int, step: int) -> dict[str, float]:
        # Deterministic per device and timestamp (stable across runs for the same seed)
        rnd = random.Random(self.seed + zlib.crc32(device_id.encode()) + ts // MINUTE_MS)
        peak = _PEAK_POWER_W.get(device_type, 1000.0)

        if device_type == "inverter":
            # Solar bell curve between 06:00 and 18:00
            phase = _daily_phase(ts)
            shape = max(0.0, math.sin((phase - 0.25) * 2 * math.pi)) if step < DAY_MS else 0.5
        else:
            shape = 0.45 + 0.25 * math.sin(_daily_phase(ts) * 2 * math.pi)

        power = max(0.0, peak * shape * rnd.uniform(0.85, 1.15))
        voltage = 230.0 + rnd.uniform(-4.0, 4.0)
        current = power / voltage
        energy = power * (step / HOUR_MS) / 1000.0
        return {"power": power, "voltage": voltage, "current": current, "energy": energy}

    async def close(self) -> None:
        """Nothing to release."""

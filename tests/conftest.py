"""Common fixtures for Urja Mitra dashboard tests."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from urja_mitra_dashboard.config import DashboardConfig

# Test configuration values
TEST_URL = "https://tb.example.com"
TEST_USERNAME = "tenant@example.com"
TEST_PASSWORD = "tenant"
TEST_DEVICE_ID = "06dfe980-ff8b-11f0-9ad3-05720371f07f"
TEST_NOW = 1_760_000_000.0  # epoch seconds
TEST_NOW_MS = int(TEST_NOW * 1000)


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = TEST_NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_response(status: int = 200, body: Any = None) -> MagicMock:
    """Return an async context manager yielding a mock aiohttp response."""
    if body is None:
        text = ""
    elif isinstance(body, str):
        text = body
    else:
        text = json.dumps(body)

    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=text)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=None)
    return context


def samples(values: list[Any], start: int = TEST_NOW_MS, step: int = 60_000) -> list[dict]:
    """Build a ThingsBoard sample list from values."""
    return [{"ts": start + i * step, "value": value} for i, value in enumerate(values)]


@pytest.fixture
def clock() -> FakeClock:
    """Return a fake clock at TEST_NOW."""
    return FakeClock()


@pytest.fixture
def mock_session() -> MagicMock:
    """Create mock aiohttp session."""
    return MagicMock(spec=aiohttp.ClientSession)


@pytest.fixture
def live_config() -> DashboardConfig:
    """Return a configuration for the live data source."""
    return DashboardConfig(
        url=TEST_URL,
        username=TEST_USERNAME,
        password=TEST_PASSWORD,
        device_id=TEST_DEVICE_ID,
    )


@pytest.fixture
def mock_config() -> DashboardConfig:
    """Return a configuration for the mock data source."""
    return DashboardConfig(use_mock=True)


@pytest.fixture
def device_records() -> list[dict[str, Any]]:
    """Return ThingsBoard device records."""
    return [
        {
            "id": {"id": TEST_DEVICE_ID, "entityType": "DEVICE"},
            "name": "ESP32 Energy Meter",
            "label": "Lab bench",
            "type": "default",
            "lastActivityTime": TEST_NOW_MS - 30_000,
        },
        {
            "id": {"id": "dev-2", "entityType": "DEVICE"},
            "name": "Spare Meter",
            "type": "default",
            "lastActivityTime": TEST_NOW_MS - 3_600_000,
        },
    ]


@pytest.fixture
def alarm_records() -> list[dict[str, Any]]:
    """Return ThingsBoard alarm records."""
    return [
        {
            "id": {"id": "alarm-a", "entityType": "ALARM"},
            "originator": {"id": TEST_DEVICE_ID, "entityType": "DEVICE"},
            "severity": "CRITICAL",
            "type": "OVERVOLTAGE",
            "status": "ACTIVE_UNACK",
            "createdTime": TEST_NOW_MS - 120_000,
            "details": {"message": "Voltage above 250 V"},
        },
    ]


@pytest.fixture
def telemetry_history() -> dict[str, list[dict]]:
    """Return a 3-sample time series."""
    return {
        "power": samples(["100", "120", "140"]),
        "voltage": samples(["230.1", "229.8", "231.0"]),
        "current": samples(["0.43", "0.52", "0.61"]),
        "energy": samples(["1.0", "1.1", "1.2"]),
    }


@pytest.fixture
def mock_source(
    device_records: list[dict[str, Any]],
    alarm_records: list[dict[str, Any]],
    telemetry_history: dict[str, list[dict]],
) -> MagicMock:
    """Return a mock live data source."""
    source = MagicMock()
    source.source = "live"
    source.list_devices = AsyncMock(return_value=device_records)
    source.get_device = AsyncMock(return_value=device_records[0])
    source.list_alarms = AsyncMock(return_value=alarm_records)
    source.get_latest_telemetry = AsyncMock(
        return_value={"power": [{"ts": TEST_NOW_MS, "value": "140"}]}
    )
    source.get_timeseries = AsyncMock(return_value=telemetry_history)
    source.close = AsyncMock()
    return source

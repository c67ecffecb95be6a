"""Urja Mitra Dashboard backend.

Serves devices, alarms and telemetry from ThingsBoard (or demo data) to the
dashboard frontend.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import aiohttp

from .config import DashboardConfig
from .const import SOURCE_LIVE, SOURCE_MOCK, STARTUP_MESSAGE
from .coordinator import DashboardCoordinator, DataSource
from .thingsboard_client.client import ThingsBoardClient
from .thingsboard_client.mock import MOCK_DEVICE_ID, MockDataSource

_LOGGER = logging.getLogger(__name__)


@dataclass
class RuntimeData:
    """Runtime objects shared by the web handlers."""

    config: DashboardConfig
    client: ThingsBoardClient
    coordinator: DashboardCoordinator


def create_client(config: DashboardConfig, session: aiohttp.ClientSession) -> ThingsBoardClient:
    """Build the live ThingsBoard client from configuration."""
    return ThingsBoardClient(
        session=session,
        base_url=config.url,
        token=config.token,
        username=config.username,
        password=config.password,
        timeout=config.timeout,
    )


def create_data_source(
    config: DashboardConfig, client: ThingsBoardClient
) -> DataSource:
    """Select the telemetry data source: mock when configured, else live."""
    if config.use_mock:
        return MockDataSource()
    return client


def setup_runtime(config: DashboardConfig, session: aiohttp.ClientSession) -> RuntimeData:
    """Wire the client, data source and coordinator together.

    Login and device control always go to ThingsBoard through the live
    client; only telemetry reads follow the data source switch.
    """
    _LOGGER.info(STARTUP_MESSAGE)

    client = create_client(config, session)
    source = create_data_source(config, client)
    device_id = MOCK_DEVICE_ID if source.source == SOURCE_MOCK else config.device_id
    coordinator = DashboardCoordinator(source=source, device_id=device_id)

    _LOGGER.info(
        "Data source: %s (device=%s, upstream=%s)",
        SOURCE_MOCK if config.use_mock else SOURCE_LIVE,
        device_id,
        config.url or "not configured",
    )
    return RuntimeData(config=config, client=client, coordinator=coordinator)

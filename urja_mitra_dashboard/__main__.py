"""Command line entry point.

Usage:
    python -m urja_mitra_dashboard serve [--host HOST] [--port PORT]
    python -m urja_mitra_dashboard snapshot [--mock] [--output FILE]

Configuration comes from the environment (THINGSBOARD_URL, THINGSBOARD_TOKEN
or THINGSBOARD_USERNAME/THINGSBOARD_PASSWORD, THINGSBOARD_DEVICE_ID,
USE_MOCK_DATA, ...).
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path

import aiohttp

from . import setup_runtime
from .config import DashboardConfig, load_config
from .helpers import setup_logging
from .thingsboard_client.exceptions import TBConfigError
from .web import DashboardServer

_LOGGER = logging.getLogger(__name__)


async def run_server(config: DashboardConfig) -> None:
    """Run the web server until cancelled."""
    async with aiohttp.ClientSession() as session:
        server = DashboardServer(setup_runtime(config, session), config.host, config.port)
        await server.start()
        try:
            await asyncio.Event().wait()
        finally:
            await server.stop()


async def fetch_snapshot(config: DashboardConfig) -> dict:
    """Fetch one dashboard snapshot."""
    async with aiohttp.ClientSession() as session:
        runtime = setup_runtime(config, session)
        try:
            snapshot = await runtime.coordinator.fetch_dashboard_snapshot()
        finally:
            await runtime.coordinator.async_shutdown()
    return snapshot.as_dict()


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="urja-mitra-dashboard",
        description="ThingsBoard telemetry backend for the Urja Mitra dashboard",
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the REST API server")
    serve.add_argument("--host", help="Bind address (default: DASHBOARD_HOST)")
    serve.add_argument("--port", type=int, help="Port (default: DASHBOARD_PORT)")

    snapshot = sub.add_parser("snapshot", help="Print one dashboard snapshot as JSON")
    snapshot.add_argument("--mock", action="store_true", help="Use demo data")
    snapshot.add_argument("--output", type=Path, help="Write JSON to this file")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config()
    except TBConfigError as err:
        print(f"ERROR: {err}", file=sys.stderr)
        return 2

    setup_logging(args.log_level or config.log_level)

    if args.command == "serve":
        overrides = {}
        if args.host:
            overrides["host"] = args.host
        if args.port:
            overrides["port"] = args.port
        config = dataclasses.replace(config, **overrides)
        try:
            asyncio.run(run_server(config))
        except KeyboardInterrupt:
            _LOGGER.info("Shutting down")
        return 0

    if args.mock:
        config = dataclasses.replace(config, use_mock=True)
    data = asyncio.run(fetch_snapshot(config))
    output = json.dumps(data, indent=2, ensure_ascii=False)
    if args.output:
        args.output.write_text(output, encoding="utf-8")
        _LOGGER.info("Snapshot written to %s", args.output)
    else:
        print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())

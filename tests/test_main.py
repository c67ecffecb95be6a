"""Tests for the command line entry point."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from urja_mitra_dashboard.__main__ import build_parser, main


class TestParser:
    """Tests for the argument parser."""

    def test_serve(self) -> None:
        """Test serve options."""
        args = build_parser().parse_args(["serve", "--port", "9000"])
        assert args.command == "serve"
        assert args.port == 9000
        assert args.host is None

    def test_command_required(self) -> None:
        """Test a subcommand is required."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    """Tests for main."""

    def test_invalid_config(self, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        """Test invalid configuration exits with status 2."""
        monkeypatch.setenv("DASHBOARD_PORT", "not-a-port")

        assert main(["snapshot"]) == 2
        assert "Invalid configuration" in capsys.readouterr().err

    def test_snapshot_mock(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test a demo snapshot is written as JSON."""
        monkeypatch.delenv("DASHBOARD_PORT", raising=False)
        output = tmp_path / "snapshot.json"

        assert main(["snapshot", "--mock", "--output", str(output)]) == 0

        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["source"] == "mock"
        assert len(data["devices"]) == 4

    def test_serve_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test CLI host and port override the environment."""
        monkeypatch.setenv("DASHBOARD_PORT", "8000")
        run_server = AsyncMock()
        with patch("urja_mitra_dashboard.__main__.run_server", run_server):
            assert main(["serve", "--host", "127.0.0.1", "--port", "9001"]) == 0

        config = run_server.call_args.args[0]
        assert config.host == "127.0.0.1"
        assert config.port == 9001

"""Tests for the logging lifecycle."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from tailnet_mcp.logging_config import init_logging, resolve_level, resolve_log_path, shutdown_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    level = root.level
    yield
    shutdown_logging()
    root.setLevel(level)


class TestLevels:
    @pytest.mark.parametrize(
        "given, expected",
        [("debug", logging.DEBUG), ("INFO", logging.INFO), ("warn", logging.WARNING), ("0", logging.DEBUG), ("3", logging.ERROR)],
    )
    def test_resolve_level(self, given: str, expected: int) -> None:
        assert resolve_level(given) == expected

    def test_unknown_level(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            resolve_level("chatty")


class TestLogFile:
    def test_timestamp_placeholder(self) -> None:
        now = datetime(2026, 3, 4, 5, 6, 7, 890000, tzinfo=timezone.utc)
        path = resolve_log_path("/var/log/mcp-{timestamp}.log", now)
        assert path == "/var/log/mcp-2026-03-04T05-06-07-890000+00-00.log"

    def test_plain_path_unchanged(self) -> None:
        assert resolve_log_path("/tmp/server.log") == "/tmp/server.log"

    def test_file_receives_header_and_records(self, tmp_path: Path) -> None:
        target = tmp_path / "server.log"
        resolved = init_logging("DEBUG", str(target))
        logging.getLogger("tailnet_mcp.test").debug("hello from test")
        shutdown_logging()

        assert resolved == str(target)
        content = target.read_text()
        assert "=== Tailnet MCP Server Log ===" in content
        assert "hello from test" in content

    def test_unwritable_path_falls_back_to_stderr(self, tmp_path: Path) -> None:
        resolved = init_logging("INFO", str(tmp_path / "missing-dir" / "server.log"))
        assert resolved is None

    def test_reinit_replaces_handlers(self) -> None:
        root = logging.getLogger()
        init_logging("INFO")
        count = len(root.handlers)
        init_logging("DEBUG")
        assert len(root.handlers) == count
        assert root.level == logging.DEBUG

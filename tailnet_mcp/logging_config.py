"""
Process-wide logging lifecycle.

`init_logging` is called once at startup and `shutdown_logging` once at exit.
Log output goes to stderr and, optionally, to a file; stdout is reserved for
the stdio transport's protocol frames.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_NUMERIC_LEVELS = {"0": "DEBUG", "1": "INFO", "2": "WARNING", "3": "ERROR"}

_installed: List[logging.Handler] = []


def resolve_level(level: str) -> int:
    """Accept level names ("debug", "WARN") or the digits 0-3."""
    name = _NUMERIC_LEVELS.get(level.strip(), level.strip().upper())
    if name == "WARN":
        name = "WARNING"
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def resolve_log_path(path: str, now: Optional[datetime] = None) -> str:
    """Replace a `{timestamp}` placeholder with a filesystem-safe timestamp."""
    if "{timestamp}" not in path:
        return path
    stamp = (now or datetime.now(timezone.utc)).isoformat().replace(":", "-").replace(".", "-")
    return path.replace("{timestamp}", stamp)


def init_logging(level: str = "INFO", log_file: Optional[str] = None) -> Optional[str]:
    """
    Install stderr (and optional file) handlers on the root logger.

    Returns the resolved log file path, or None when file logging is off.
    """
    shutdown_logging()

    numeric_level = resolve_level(level)
    formatter = logging.Formatter(LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(numeric_level)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)
    _installed.append(stream_handler)

    resolved_path = None
    if log_file:
        resolved_path = resolve_log_path(log_file)
        try:
            file_handler = logging.FileHandler(resolved_path, mode="w", encoding="utf-8")
        except OSError as e:
            root.error("Failed to create server log file %s: %s", resolved_path, e)
            resolved_path = None
        else:
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
            _installed.append(file_handler)
            root.info(
                "=== Tailnet MCP Server Log === started %s, level %s",
                datetime.now(timezone.utc).isoformat(),
                logging.getLevelName(numeric_level),
            )

    return resolved_path


def shutdown_logging() -> None:
    """Flush and detach every handler installed by `init_logging`."""
    root = logging.getLogger()
    while _installed:
        handler = _installed.pop()
        try:
            handler.flush()
        finally:
            root.removeHandler(handler)
            handler.close()

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import anyio

from . import SERVER_NAME, __version__
from .backend import UnifiedBackend
from .config import Settings, get_settings
from .logging_config import init_logging, shutdown_logging
from .models import ToolContext
from .tools import ToolRegistry
from .tools import acl_tools, admin_tools, device_tools, network_tools

logger = logging.getLogger(__name__)


def create_registry(settings: Settings, transport: str) -> ToolRegistry:
    """
    Create the tool registry with all tool groups registered.
    """
    backend = UnifiedBackend.from_settings(settings, transport)
    registry = ToolRegistry(ToolContext(backend=backend))

    # Register tool groups
    device_tools.register_tools(registry)
    network_tools.register_tools(registry)
    acl_tools.register_tools(registry)
    admin_tools.register_tools(registry)

    if registry.duplicates:
        logger.warning("Tools overridden during registration: %s", ", ".join(registry.duplicates))
    logger.info("Registered %d tools", len(registry))
    return registry


async def _run(settings: Settings, transport: str, port: int) -> None:
    registry = create_registry(settings, transport)
    try:
        await registry.context.backend.initialize()
        if transport == "http":
            from .http_server import run_http_server

            await run_http_server(registry, settings, settings.server_host, port)
        else:
            from .stdio_server import StdioServer

            server = StdioServer(
                registry,
                heartbeat_interval=settings.heartbeat_interval_seconds,
                shutdown_grace=settings.shutdown_grace_seconds,
            )
            await server.serve()
    finally:
        await registry.aclose()


def _port(value: str) -> int:
    port = int(value)
    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"invalid port: {value} (expected 1-65535)")
    return port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=SERVER_NAME, description="Network-management MCP server")
    parser.add_argument("--http", action="store_true", help="serve over HTTP instead of stdio")
    parser.add_argument("--port", type=_port, default=None, help="HTTP port (1-65535)")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR or 0-3")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entrypoint for running the MCP server.

    Supports two transport modes:
    - stdio: For direct process-to-process communication (default)
    - http: For multiple clients, typically behind a reverse proxy
    """
    args = build_parser().parse_args(argv)
    settings = get_settings()

    transport = "http" if args.http else settings.transport
    port = args.port or settings.server_port

    try:
        log_path = init_logging(args.log_level or settings.log_level, settings.log_file)
    except ValueError as e:
        print(f"{SERVER_NAME}: {e}", file=sys.stderr)
        return 1

    if log_path:
        logger.info("Writing logs to %s", log_path)
    logger.info("Starting %s %s (%s transport)", SERVER_NAME, __version__, transport)

    try:
        anyio.run(_run, settings, transport, port)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception:
        logger.exception("Server failed")
        return 1
    finally:
        shutdown_logging()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import json
import logging
import re
from typing import List, Optional, Sequence

import anyio

from .base import EXIT_NODE_ROUTES, BackendResponse, ConnectOptions

logger = logging.getLogger(__name__)

# Hostname, dotted IPv4, IPv6 or node name: no leading/trailing dots or
# hyphens, no consecutive dots.
VALID_TARGET_PATTERN = re.compile(
    r"^(([a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?)*)|([0-9a-fA-F:]+))$"
)
CIDR_PATTERN = re.compile(r"^(\d{1,3}\.){3}\d{1,3}/\d{1,2}$|^([0-9a-fA-F:]+)/\d{1,3}$")

_TARGET_FORBIDDEN = set(";&|`$(){}[]<>\\'\"")
_INPUT_FORBIDDEN = set(";&|`$(){}<>\\")

MIN_PING_COUNT = 1
MAX_PING_COUNT = 100
MAX_ARG_LENGTH = 1000
MAX_TARGET_LENGTH = 253


def validate_target(target: str) -> None:
    if not target or not isinstance(target, str):
        raise ValueError("Invalid target specified")
    for char in target:
        if char in _TARGET_FORBIDDEN:
            raise ValueError(f"Invalid character '{char}' in target")
    if ".." in target or target.startswith("/") or "~" in target:
        raise ValueError("Invalid path patterns in target")
    if not VALID_TARGET_PATTERN.match(target):
        raise ValueError("Target contains invalid characters")
    if len(target) > MAX_TARGET_LENGTH:
        raise ValueError("Target too long")


def validate_string_input(value: str, field_name: str) -> None:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    for char in value:
        if char in _INPUT_FORBIDDEN:
            raise ValueError(f"Invalid character '{char}' in {field_name}")
    if len(value) > MAX_ARG_LENGTH:
        raise ValueError(f"{field_name} too long")


def validate_routes(routes: Sequence[str]) -> None:
    for route in routes:
        if not isinstance(route, str):
            raise ValueError("Each route must be a string")
        if route in EXIT_NODE_ROUTES:
            continue
        if not CIDR_PATTERN.match(route):
            raise ValueError(f"Invalid route format: {route}")


class TailnetCLI:
    """
    Subprocess wrapper around the local management CLI.

    Commands run without a shell, each bounded by `timeout` seconds.
    `up`, `down` and `set_exit_node` share one lock so at most one of them is
    in flight.
    """

    def __init__(self, cli_path: str = "tailscale", timeout: float = 30.0) -> None:
        self._cli_path = cli_path
        self._timeout = timeout
        self._connect_lock = anyio.Lock()

    async def _execute(self, args: List[str]) -> BackendResponse:
        for arg in args:
            if len(arg) > MAX_ARG_LENGTH:
                raise ValueError("Command argument too long")

        logger.debug("Executing: %s %s", self._cli_path, " ".join(args))
        try:
            with anyio.fail_after(self._timeout):
                result = await anyio.run_process([self._cli_path, *args], check=False)
        except TimeoutError:
            logger.error("CLI command timed out after %ss: %s", self._timeout, args[:1])
            return BackendResponse.fail("cli", f"Command timed out after {self._timeout:g} seconds")
        except OSError as e:
            logger.error("CLI command failed to start: %s", e)
            return BackendResponse.fail("cli", f"Failed to run {self._cli_path}: {e}")

        stdout = result.stdout.decode(errors="replace").strip()
        stderr = result.stderr.decode(errors="replace").strip()
        if result.returncode != 0:
            logger.error("CLI command exited with %s: %s", result.returncode, stderr)
            return BackendResponse.fail(
                "cli", stderr or f"{self._cli_path} exited with status {result.returncode}"
            )
        if stderr:
            logger.warning("CLI stderr: %s", stderr)
        return BackendResponse.ok("cli", stdout)

    async def get_status(self) -> BackendResponse:
        result = await self._execute(["status", "--json"])
        if not result.success:
            return result
        try:
            status = json.loads(result.data)
        except ValueError as e:
            logger.error("Failed to parse status JSON: %s", e)
            return BackendResponse.fail("cli", f"Failed to parse status data: {e}")
        if not isinstance(status, dict):
            return BackendResponse.fail("cli", "Failed to parse status data: expected an object")
        return BackendResponse.ok("cli", status)

    async def list_devices(self) -> BackendResponse:
        """Peer hostnames only; the CLI has no device IDs."""
        result = await self.get_status()
        if not result.success:
            return result
        peers = result.data.get("Peer") or {}
        hostnames = [p["HostName"] for p in peers.values() if isinstance(p.get("HostName"), str)]
        return BackendResponse.ok("cli", hostnames)

    async def up(self, options: Optional[ConnectOptions] = None) -> BackendResponse:
        options = options or ConnectOptions()
        args = ["up"]
        if options.login_server:
            validate_string_input(options.login_server, "loginServer")
            args += ["--login-server", options.login_server]
        if options.accept_routes:
            args.append("--accept-routes")
        if options.accept_dns:
            args.append("--accept-dns")
        if options.hostname:
            validate_string_input(options.hostname, "hostname")
            args += ["--hostname", options.hostname]
        if options.advertise_routes:
            validate_routes(options.advertise_routes)
            args += ["--advertise-routes", ",".join(options.advertise_routes)]
        if options.auth_key:
            validate_string_input(options.auth_key, "authKey")
            args += ["--authkey", options.auth_key]

        async with self._connect_lock:
            return await self._execute(args)

    async def down(self) -> BackendResponse:
        async with self._connect_lock:
            return await self._execute(["down"])

    async def set_exit_node(self, node: Optional[str] = None) -> BackendResponse:
        """Route traffic through `node`, or stop using an exit node when it is None."""
        if node:
            validate_target(node)
            args = ["set", "--exit-node", node]
        else:
            args = ["set", "--exit-node="]
        async with self._connect_lock:
            return await self._execute(args)

    async def ping(self, target: str, count: int = 4) -> BackendResponse:
        validate_target(target)
        if not isinstance(count, int) or not MIN_PING_COUNT <= count <= MAX_PING_COUNT:
            raise ValueError(
                f"Count must be an integer between {MIN_PING_COUNT} and {MAX_PING_COUNT}"
            )
        return await self._execute(["ping", target, "-c", str(count)])

    async def version(self) -> BackendResponse:
        return await self._execute(["version"])

    async def is_available(self) -> bool:
        result = await self.version()
        if not result.success:
            logger.debug("CLI not available: %s", result.error)
        return result.success

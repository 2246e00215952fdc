from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Literal, Optional

from mcp import types
from pydantic import BaseModel, ConfigDict, Field

from ..backend import ConnectOptions
from ..models import ToolContext, tool_error, tool_success
from . import ToolRegistry

logger = logging.getLogger(__name__)

_NEVER_SEEN = "0001-01-01T00:00:00Z"


class NetworkStatusArgs(BaseModel):
    format: Literal["json", "summary"] = Field(default="json", description="Output format (json or summary)")


class ConnectNetworkArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    accept_routes: bool = Field(
        default=False, alias="acceptRoutes", description="Accept subnet routes from other devices"
    )
    accept_dns: bool = Field(
        default=False, alias="acceptDNS", description="Accept DNS configuration from the network"
    )
    hostname: Optional[str] = Field(default=None, description="Set a custom hostname for this device")
    advertise_routes: Optional[List[str]] = Field(
        default=None, alias="advertiseRoutes", description="CIDR routes to advertise to other devices"
    )
    auth_key: Optional[str] = Field(
        default=None, alias="authKey", description="Authentication key for unattended setup"
    )
    login_server: Optional[str] = Field(
        default=None, alias="loginServer", description="Custom coordination server URL"
    )


class PingPeerArgs(BaseModel):
    target: str = Field(min_length=1, description="Hostname or IP address of the target device")
    count: int = Field(default=4, ge=1, le=100, description="Number of ping packets to send")


class NoArgs(BaseModel):
    pass


def format_status_summary(status: Dict[str, Any]) -> str:
    me = status.get("Self") or {}
    lines = [
        "**Network Status**",
        "",
        f"Version: {status.get('Version', 'unknown')}",
        f"Backend state: {status.get('BackendState', 'unknown')}",
        f"TUN interface: {'Active' if status.get('TUN') else 'Inactive'}",
        f"IPs: {', '.join(status.get('TailscaleIPs') or [])}",
        "",
        "**This device:**",
        f"  - Hostname: {me.get('HostName', '?')}",
        f"  - DNS name: {me.get('DNSName', '?')}",
        f"  - OS: {me.get('OS', '?')}",
        f"  - IPs: {', '.join(me.get('TailscaleIPs') or [])}",
        f"  - Online: {'yes' if me.get('Online') else 'no'}",
    ]
    if me.get("ExitNode"):
        lines.append("  - Exit node: Yes")

    peers = list((status.get("Peer") or {}).values())
    if peers:
        lines += ["", f"**Connected peers ({len(peers)}):**"]
        for peer in peers:
            state = "online" if peer.get("Online") else "offline"
            lines.append(f"  [{state}] {peer.get('HostName', '?')} ({peer.get('DNSName', '?')})")
            lines.append(f"    - OS: {peer.get('OS', '?')}")
            lines.append(f"    - IPs: {', '.join(peer.get('TailscaleIPs') or [])}")
            last_seen = peer.get("LastSeen")
            if last_seen and last_seen != _NEVER_SEEN:
                lines.append(f"    - Last seen: {last_seen}")
            if peer.get("ExitNode"):
                lines.append("    - Exit node: Yes")
            if peer.get("Active"):
                lines.append("    - Active connection")
    return "\n".join(lines)


async def _handle_network_status(args: NetworkStatusArgs, context: ToolContext) -> types.CallToolResult:
    result = await context.backend.get_status()
    if not result.success:
        return tool_error(result.error)
    if args.format == "summary" and isinstance(result.data, dict):
        return tool_success(format_status_summary(result.data))
    return tool_success(json.dumps(result.data, indent=2, default=str))


async def _handle_connect(args: ConnectNetworkArgs, context: ToolContext) -> types.CallToolResult:
    options = ConnectOptions(
        accept_routes=args.accept_routes,
        accept_dns=args.accept_dns,
        hostname=args.hostname,
        advertise_routes=args.advertise_routes or [],
        auth_key=args.auth_key,
        login_server=args.login_server,
    )
    logger.debug("Connecting to network (hostname=%s)", options.hostname)
    result = await context.backend.connect(options)
    if not result.success:
        return tool_error(result.error)
    return tool_success(f"Successfully connected to network\n\n{result.data}")


async def _handle_disconnect(args: NoArgs, context: ToolContext) -> types.CallToolResult:
    result = await context.backend.disconnect()
    if not result.success:
        return tool_error(result.error)
    return tool_success(f"Successfully disconnected from network\n\n{result.data}")


async def _handle_ping(args: PingPeerArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Pinging %s (%s packets)", args.target, args.count)
    result = await context.backend.ping(args.target, args.count)
    if not result.success:
        return tool_error(result.error)
    return tool_success(f"Ping results for {args.target}:\n\n{result.data}")


async def _handle_version(args: NoArgs, context: ToolContext) -> types.CallToolResult:
    result = await context.backend.get_version()
    if not result.success:
        return tool_error(result.error)
    return tool_success(f"Version information:\n\n{result.data}")


def register_tools(registry: ToolRegistry) -> None:
    registry.add_tool(
        "get_network_status",
        "Get current network status",
        NetworkStatusArgs,
        _handle_network_status,
    )
    registry.add_tool("connect_network", "Connect to the network", ConnectNetworkArgs, _handle_connect)
    registry.add_tool("disconnect_network", "Disconnect from the network", NoArgs, _handle_disconnect)
    registry.add_tool("ping_peer", "Ping a peer device", PingPeerArgs, _handle_ping)
    registry.add_tool("get_version", "Get version information", NoArgs, _handle_version)

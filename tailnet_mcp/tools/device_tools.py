from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal

from mcp import types
from pydantic import BaseModel, ConfigDict, Field

from ..models import ToolContext, tool_error, tool_success
from . import ToolRegistry

logger = logging.getLogger(__name__)


class ListDevicesArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    include_routes: bool = Field(
        default=False,
        alias="includeRoutes",
        description="Include route information for each device",
    )


class DeviceActionArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(alias="deviceId", min_length=1, description="The ID of the device to act on")
    action: Literal["authorize", "deauthorize", "delete", "expire-key"] = Field(
        description="The action to perform on the device",
    )


class ManageRoutesArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(alias="deviceId", min_length=1, description="The ID of the device")
    routes: List[str] = Field(description="Array of CIDR routes to manage")
    action: Literal["enable", "disable"] = Field(description="Whether to enable or disable the routes")


def format_device(device: Dict[str, Any], include_routes: bool) -> str:
    lines = [
        f"**{device.get('name', '?')}** ({device.get('hostname', '?')})",
        f"  - ID: {device.get('id')}",
        f"  - OS: {device.get('os', 'unknown')}",
        f"  - Addresses: {', '.join(device.get('addresses') or [])}",
        f"  - Authorized: {'yes' if device.get('authorized') else 'no'}",
        f"  - Last seen: {device.get('lastSeen', 'unknown')}",
        f"  - Client version: {device.get('clientVersion', 'unknown')}",
    ]
    advertised = device.get("advertisedRoutes") or []
    if include_routes and advertised:
        enabled = device.get("enabledRoutes") or []
        lines.append(f"  - Advertised routes: {', '.join(advertised)}")
        lines.append(f"  - Enabled routes: {', '.join(enabled) if enabled else '-'}")
    return "\n".join(lines)


async def _handle_list_devices(args: ListDevicesArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Listing devices (include_routes=%s)", args.include_routes)
    result = await context.backend.list_devices()
    if not result.success:
        return tool_error(f"Failed to list devices: {result.error}")

    devices = result.data or []
    blocks = [f"Found {len(devices)} devices:"]
    for device in devices:
        if isinstance(device, str):
            # CLI answers with bare hostnames.
            blocks.append(f"**{device}**\n  - Source: CLI (limited info available)")
        else:
            blocks.append(format_device(device, args.include_routes))
    return tool_success("\n\n".join(blocks))


async def _handle_device_action(args: DeviceActionArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Performing device action %s on %s", args.action, args.device_id)
    backend = context.backend
    actions = {
        "authorize": backend.authorize_device,
        "deauthorize": backend.deauthorize_device,
        "delete": backend.delete_device,
        "expire-key": backend.expire_device_key,
    }
    result = await actions[args.action](args.device_id)
    if not result.success:
        return tool_error(f"Failed to perform device action: {result.error}")
    return tool_success(f'Successfully performed action "{args.action}" on device {args.device_id}')


async def _handle_manage_routes(args: ManageRoutesArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Managing routes %s for %s: %s", args.routes, args.device_id, args.action)
    if args.action == "enable":
        result = await context.backend.enable_device_routes(args.device_id, args.routes)
    else:
        result = await context.backend.disable_device_routes(args.device_id, args.routes)
    if not result.success:
        return tool_error(f"Failed to manage routes: {result.error}")
    return tool_success(
        f"Successfully {args.action}d routes {', '.join(args.routes)} for device {args.device_id}"
    )


def register_tools(registry: ToolRegistry) -> None:
    registry.add_tool(
        "list_devices",
        "List all devices in the network",
        ListDevicesArgs,
        _handle_list_devices,
    )
    registry.add_tool(
        "device_action",
        "Perform actions on a specific device",
        DeviceActionArgs,
        _handle_device_action,
    )
    registry.add_tool(
        "manage_routes",
        "Enable or disable routes for a device",
        ManageRoutesArgs,
        _handle_manage_routes,
    )

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Literal, Optional

from mcp import types
from pydantic import BaseModel, ConfigDict, Field

from ..backend import EXIT_NODE_ROUTES
from ..models import ToolContext, tool_error, tool_success
from . import ToolRegistry

logger = logging.getLogger(__name__)


class TailnetInfoArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    include_details: bool = Field(
        default=False, alias="includeDetails", description="Include advanced configuration details"
    )


class FileSharingArgs(BaseModel):
    operation: Literal["get_status", "enable", "disable"] = Field(description="File sharing operation to perform")


class ExitNodeArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    operation: Literal["list", "set", "clear", "advertise", "stop_advertising"] = Field(
        description="Exit node operation to perform"
    )
    device_id: Optional[str] = Field(
        default=None, alias="deviceId", min_length=1, description="Device ID for exit node operations"
    )
    routes: Optional[List[str]] = Field(
        default=None,
        description='Routes to advertise (e.g., ["0.0.0.0/0", "::/0"] for full exit node)',
    )


class WebhookConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    endpoint_url: str = Field(alias="endpointUrl", min_length=1)
    description: Optional[str] = None
    events: List[str]
    secret: Optional[str] = None


class WebhookArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    operation: Literal["list", "create", "delete", "test"] = Field(description="Webhook operation to perform")
    webhook_id: Optional[str] = Field(
        default=None, alias="webhookId", min_length=1, description="Webhook ID for delete/test operations"
    )
    config: Optional[WebhookConfig] = Field(default=None, description="Webhook configuration for create operation")


class DeviceTagArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    operation: Literal["get_tags", "set_tags", "add_tags", "remove_tags"] = Field(
        description="Device tagging operation to perform"
    )
    device_id: str = Field(alias="deviceId", min_length=1, description="Device ID for tagging operations")
    tags: Optional[List[str]] = Field(
        default=None,
        description='Array of tags to manage (e.g., ["tag:server", "tag:production"])',
    )


def _enabled(value: Any) -> str:
    return "Enabled" if value else "Disabled"


def format_tailnet_info(info: Dict[str, Any], include_details: bool) -> str:
    lines = [
        "**Tailnet Information**",
        "",
        "**Basic Details:**",
        f"  - Name: {info.get('name') or 'Unknown'}",
        f"  - Organization: {info.get('organization') or 'Unknown'}",
        f"  - Created: {info.get('created') or 'Unknown'}",
        "",
        "**Settings:**",
        f"  - DNS: {'Configured' if info.get('dns') else 'Not configured'}",
        f"  - File sharing: {_enabled(info.get('fileSharing'))}",
        f"  - Service collection: {_enabled(info.get('serviceCollection'))}",
        "",
        "**Security:**",
        f"  - Network lock: {_enabled(info.get('networkLockEnabled'))}",
        f"  - OIDC identity provider: {info.get('oidcIdentityProviderURL') or 'Not configured'}",
    ]
    if include_details:
        lines += [
            "",
            "**Advanced Details:**",
            f"  - Key expiry disabled: {'Yes' if info.get('keyExpiryDisabled') else 'No'}",
            f"  - Machine authorization timeout: {info.get('machineAuthorizationTimeout') or 'Default'}",
            f"  - Device approval required: {'Yes' if info.get('deviceApprovalRequired') else 'No'}",
        ]
    return "\n".join(lines)


async def _handle_tailnet_info(args: TailnetInfoArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Getting tailnet information (details=%s)", args.include_details)
    result = await context.backend.get_tailnet_info()
    if not result.success:
        return tool_error(f"Failed to get tailnet info: {result.error}")
    info = result.data if isinstance(result.data, dict) else {}
    return tool_success(format_tailnet_info(info, args.include_details))


async def _handle_file_sharing(args: FileSharingArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Managing file sharing: %s", args.operation)
    backend = context.backend
    if args.operation == "get_status":
        result = await backend.get_file_sharing_status()
        if not result.success:
            return tool_error(f"Failed to get file sharing status: {result.error}")
        enabled = isinstance(result.data, dict) and result.data.get("fileSharing")
        return tool_success(f"File Sharing Status: {_enabled(enabled)}")

    enable = args.operation == "enable"
    result = await backend.set_file_sharing_status(enable)
    if not result.success:
        return tool_error(f"Failed to {args.operation} file sharing: {result.error}")
    return tool_success(f"File sharing {args.operation}d successfully")


def format_exit_node(node: Dict[str, Any]) -> str:
    return "\n".join(
        [
            f"**{node.get('name', '?')}** ({node.get('hostname', '?')})",
            f"  - ID: {node.get('id')}",
            f"  - OS: {node.get('os', 'unknown')}",
            f"  - Routes: {', '.join(node.get('advertisedRoutes') or []) or 'None'}",
            f"  - Status: {'Authorized' if node.get('authorized') else 'Unauthorized'}",
        ]
    )


async def _handle_exit_nodes(args: ExitNodeArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Managing exit nodes: %s", args.operation)
    backend = context.backend
    operation = args.operation

    if operation == "list":
        result = await backend.list_exit_nodes()
        if not result.success:
            return tool_error(f"Failed to list exit nodes: {result.error}")
        nodes = result.data or []
        if not nodes:
            return tool_success("No exit nodes found in the network")
        blocks = "\n\n".join(format_exit_node(node) for node in nodes)
        return tool_success(f"Exit Nodes ({len(nodes)}):\n\n{blocks}")

    if operation == "set":
        result = await backend.set_exit_node(args.device_id)
        if not result.success:
            return tool_error(f"Failed to set exit node: {result.error}")
        return tool_success(f"Exit node set to: {args.device_id or 'auto'}")

    if operation == "clear":
        result = await backend.set_exit_node(None)
        if not result.success:
            return tool_error(f"Failed to clear exit node: {result.error}")
        return tool_success("Exit node cleared successfully")

    if not args.device_id:
        return tool_error(f"Device ID is required for {operation} operation")

    if operation == "advertise":
        if not args.routes:
            return tool_error("Routes are required for advertise operation")
        result = await backend.enable_device_routes(args.device_id, args.routes)
        if not result.success:
            return tool_error(f"Failed to advertise exit node: {result.error}")
        return tool_success(f"Device {args.device_id} is now advertising routes: {', '.join(args.routes)}")

    routes = args.routes or list(EXIT_NODE_ROUTES)
    result = await backend.disable_device_routes(args.device_id, routes)
    if not result.success:
        return tool_error(f"Failed to stop advertising exit node: {result.error}")
    return tool_success(f"Device {args.device_id} stopped advertising routes: {', '.join(routes)}")


def format_webhook(index: int, webhook: Dict[str, Any]) -> str:
    return "\n".join(
        [
            f"**Webhook {index}**",
            f"  - ID: {webhook.get('id')}",
            f"  - URL: {webhook.get('endpointUrl')}",
            f"  - Events: {', '.join(webhook.get('events') or []) or 'None'}",
            f"  - Description: {webhook.get('description') or 'No description'}",
            f"  - Created: {webhook.get('created', 'unknown')}",
        ]
    )


async def _handle_webhooks(args: WebhookArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Managing webhooks: %s", args.operation)
    backend = context.backend

    if args.operation == "list":
        result = await backend.list_webhooks()
        if not result.success:
            return tool_error(f"Failed to list webhooks: {result.error}")
        data = result.data if isinstance(result.data, dict) else {}
        webhooks = [w for w in data.get("webhooks") or [] if isinstance(w, dict)]
        if not webhooks:
            return tool_success("No webhooks configured")
        blocks = "\n\n".join(format_webhook(i, w) for i, w in enumerate(webhooks, start=1))
        return tool_success(f"Found {len(webhooks)} webhooks:\n\n{blocks}")

    if args.operation == "create":
        if args.config is None:
            return tool_error("Webhook configuration is required for create operation")
        result = await backend.create_webhook(args.config.model_dump(by_alias=True, exclude_none=True))
        if not result.success:
            return tool_error(f"Failed to create webhook: {result.error}")
        created = result.data if isinstance(result.data, dict) else {}
        return tool_success(
            "Webhook created successfully:\n"
            f"  - ID: {created.get('id')}\n"
            f"  - URL: {created.get('endpointUrl')}\n"
            f"  - Events: {', '.join(created.get('events') or [])}"
        )

    if not args.webhook_id:
        return tool_error(f"Webhook ID is required for {args.operation} operation")

    if args.operation == "delete":
        result = await backend.delete_webhook(args.webhook_id)
        if not result.success:
            return tool_error(f"Failed to delete webhook: {result.error}")
        return tool_success(f"Webhook {args.webhook_id} deleted successfully")

    result = await backend.test_webhook(args.webhook_id)
    if not result.success:
        return tool_error(f"Failed to test webhook: {result.error}")
    return tool_success(f"Webhook test successful. Response: {json.dumps(result.data, indent=2, default=str)}")


def _tags_of(data: Any) -> List[str]:
    return list(data.get("tags") or []) if isinstance(data, dict) else []


async def _handle_device_tags(args: DeviceTagArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Managing device tags for %s: %s", args.device_id, args.operation)
    backend = context.backend

    if args.operation == "get_tags":
        result = await backend.get_device_tags(args.device_id)
        if not result.success:
            return tool_error(f"Failed to get device tags: {result.error}")
        tags = _tags_of(result.data)
        listing = "\n".join(f"  - {tag}" for tag in tags) if tags else "  No tags assigned"
        return tool_success(f"Device Tags for {args.device_id}:\n{listing}")

    if args.tags is None:
        return tool_error(f"Tags array is required for {args.operation} operation")

    if args.operation == "set_tags":
        result = await backend.set_device_tags(args.device_id, args.tags)
        if not result.success:
            return tool_error(f"Failed to set device tags: {result.error}")
        return tool_success(f"Device tags updated to: {', '.join(args.tags)}")

    current = await backend.get_device_tags(args.device_id)
    if not current.success:
        return tool_error(f"Failed to get current tags: {current.error}")

    if args.operation == "add_tags":
        updated = list(dict.fromkeys(_tags_of(current.data) + args.tags))
        action, done = "add", "Added"
    else:
        updated = [tag for tag in _tags_of(current.data) if tag not in args.tags]
        action, done = "remove", "Removed"

    result = await backend.set_device_tags(args.device_id, updated)
    if not result.success:
        return tool_error(f"Failed to {action} device tags: {result.error}")
    return tool_success(
        f"{done} tags: {', '.join(args.tags)}. Current tags: {', '.join(updated) or 'none'}"
    )


def register_tools(registry: ToolRegistry) -> None:
    registry.add_tool(
        "get_tailnet_info",
        "Get detailed network information",
        TailnetInfoArgs,
        _handle_tailnet_info,
    )
    registry.add_tool(
        "manage_file_sharing",
        "Manage network file sharing settings",
        FileSharingArgs,
        _handle_file_sharing,
    )
    registry.add_tool("manage_exit_nodes", "Manage exit nodes and routing", ExitNodeArgs, _handle_exit_nodes)
    registry.add_tool(
        "manage_webhooks",
        "Manage webhooks for event notifications",
        WebhookArgs,
        _handle_webhooks,
    )
    registry.add_tool(
        "manage_device_tags",
        "Manage device tags for organization and ACL targeting",
        DeviceTagArgs,
        _handle_device_tags,
    )

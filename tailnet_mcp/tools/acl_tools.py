from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Literal, Optional

from mcp import types
from pydantic import BaseModel, ConfigDict, Field

from ..models import ToolContext, tool_error, tool_success
from . import ToolRegistry

logger = logging.getLogger(__name__)


class ACLRule(BaseModel):
    action: Literal["accept", "drop"]
    src: List[str]
    dst: List[str]


class ACLConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    acls: Optional[List[ACLRule]] = Field(default=None, description="Access control rules")
    groups: Optional[Dict[str, List[str]]] = Field(default=None, description="User groups definition")
    tag_owners: Optional[Dict[str, List[str]]] = Field(
        default=None, alias="tagOwners", description="Tag ownership mapping"
    )

    def to_policy(self) -> str:
        return json.dumps(self.model_dump(by_alias=True, exclude_none=True), indent=2)


class ManageACLArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    operation: Literal["get", "update", "validate"] = Field(description="ACL operation to perform")
    acl_config: Optional[ACLConfig] = Field(
        default=None,
        alias="aclConfig",
        description="ACL configuration (required for update/validate operations)",
    )


class ManageDNSArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    operation: Literal[
        "get_nameservers",
        "set_nameservers",
        "get_preferences",
        "set_preferences",
        "get_searchpaths",
        "set_searchpaths",
    ] = Field(description="DNS operation to perform")
    nameservers: Optional[List[str]] = Field(
        default=None, description="DNS nameservers (for set_nameservers operation)"
    )
    magic_dns: Optional[bool] = Field(
        default=None, alias="magicDNS", description="Enable/disable MagicDNS (for set_preferences operation)"
    )
    search_paths: Optional[List[str]] = Field(
        default=None, alias="searchPaths", description="DNS search paths (for set_searchpaths operation)"
    )


class DeviceCreateCapabilities(BaseModel):
    reusable: Optional[bool] = None
    ephemeral: Optional[bool] = None
    preauthorized: Optional[bool] = None
    tags: Optional[List[str]] = None


class DeviceCapabilities(BaseModel):
    create: Optional[DeviceCreateCapabilities] = None


class KeyCapabilities(BaseModel):
    devices: Optional[DeviceCapabilities] = None


class KeyConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    description: Optional[str] = None
    expiry_seconds: Optional[int] = Field(default=None, alias="expirySeconds", ge=0)
    capabilities: Optional[KeyCapabilities] = None

    def to_request(self) -> Dict[str, Any]:
        body = self.model_dump(by_alias=True, exclude_none=True)
        create = (body.get("capabilities") or {}).get("devices", {}).get("create") or {}
        body["capabilities"] = {"devices": {"create": create}}
        return body


class ManageKeysArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    operation: Literal["list", "create", "delete"] = Field(description="Key management operation")
    key_config: Optional[KeyConfig] = Field(
        default=None, alias="keyConfig", description="Key configuration (for create operation)"
    )
    key_id: Optional[str] = Field(
        default=None, alias="keyId", min_length=1, description="Authentication key ID (for delete operation)"
    )


class ManageNetworkLockArgs(BaseModel):
    operation: Literal["status", "enable", "disable"] = Field(description="Network lock operation to perform")


class AccessTest(BaseModel):
    src: str = Field(min_length=1)
    dst: str = Field(min_length=1)
    proto: Optional[str] = None


class ManagePolicyFileArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    operation: Literal["get", "update", "test_access"] = Field(description="Policy file operation to perform")
    policy: Optional[str] = Field(
        default=None, description="Policy content (HuJSON format) for update operation"
    )
    test_request: Optional[AccessTest] = Field(
        default=None, alias="testRequest", description="Access test parameters for test_access operation"
    )


def _bullets(items: List[str], empty: str) -> str:
    if not items:
        return f"  {empty}"
    return "\n".join(f"  - {item}" for item in items)


def _field(data: Any, key: str, default: Any = None) -> Any:
    return data.get(key, default) if isinstance(data, dict) else default


async def _handle_acl(args: ManageACLArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Managing ACL configuration: %s", args.operation)
    backend = context.backend

    if args.operation == "get":
        result = await backend.get_acl()
        if not result.success:
            return tool_error(f"Failed to get ACL: {result.error}")
        body = result.data if isinstance(result.data, str) else json.dumps(result.data, indent=2)
        return tool_success(f"Current ACL configuration:\n\n{body}")

    if args.acl_config is None:
        return tool_error(f"ACL configuration is required for {args.operation} operation")
    policy = args.acl_config.to_policy()

    if args.operation == "update":
        result = await backend.update_acl(policy)
        if not result.success:
            return tool_error(f"Failed to update ACL: {result.error}")
        return tool_success("ACL configuration updated successfully")

    result = await backend.validate_acl(policy)
    if not result.success:
        return tool_error(f"ACL validation failed: {result.error}")
    return tool_success("ACL configuration is valid")


async def _handle_dns(args: ManageDNSArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Managing DNS configuration: %s", args.operation)
    backend = context.backend
    operation = args.operation

    if operation == "get_nameservers":
        result = await backend.get_dns_nameservers()
        if not result.success:
            return tool_error(f"Failed to get nameservers: {result.error}")
        nameservers = _field(result.data, "dns") or []
        return tool_success(f"DNS Nameservers:\n{_bullets(nameservers, 'No custom nameservers configured')}")

    if operation == "set_nameservers":
        if args.nameservers is None:
            return tool_error("Nameservers array is required for set_nameservers operation")
        result = await backend.set_dns_nameservers(args.nameservers)
        if not result.success:
            return tool_error(f"Failed to set nameservers: {result.error}")
        return tool_success(f"DNS nameservers updated to: {', '.join(args.nameservers)}")

    if operation == "get_preferences":
        result = await backend.get_dns_preferences()
        if not result.success:
            return tool_error(f"Failed to get DNS preferences: {result.error}")
        magic = "Enabled" if _field(result.data, "magicDNS") else "Disabled"
        return tool_success(f"DNS Preferences:\n  MagicDNS: {magic}")

    if operation == "set_preferences":
        if args.magic_dns is None:
            return tool_error("magicDNS boolean is required for set_preferences operation")
        result = await backend.set_dns_preferences(args.magic_dns)
        if not result.success:
            return tool_error(f"Failed to set DNS preferences: {result.error}")
        return tool_success(f"MagicDNS {'enabled' if args.magic_dns else 'disabled'}")

    if operation == "get_searchpaths":
        result = await backend.get_dns_search_paths()
        if not result.success:
            return tool_error(f"Failed to get search paths: {result.error}")
        paths = _field(result.data, "searchPaths") or []
        return tool_success(f"DNS Search Paths:\n{_bullets(paths, 'No search paths configured')}")

    if args.search_paths is None:
        return tool_error("searchPaths array is required for set_searchpaths operation")
    result = await backend.set_dns_search_paths(args.search_paths)
    if not result.success:
        return tool_error(f"Failed to set search paths: {result.error}")
    return tool_success(f"DNS search paths updated to: {', '.join(args.search_paths)}")


def format_auth_key(index: int, key: Dict[str, Any]) -> str:
    create = ((key.get("capabilities") or {}).get("devices") or {}).get("create") or {}
    return "\n".join(
        [
            f"**Key {index}**",
            f"  - ID: {key.get('id')}",
            f"  - Description: {key.get('description') or 'No description'}",
            f"  - Created: {key.get('created', 'unknown')}",
            f"  - Expires: {key.get('expires', 'unknown')}",
            f"  - Revoked: {'Yes' if key.get('revoked') else 'No'}",
            f"  - Reusable: {'Yes' if create.get('reusable') else 'No'}",
            f"  - Preauthorized: {'Yes' if create.get('preauthorized') else 'No'}",
        ]
    )


async def _handle_keys(args: ManageKeysArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Managing authentication keys: %s", args.operation)
    backend = context.backend

    if args.operation == "list":
        result = await backend.list_auth_keys()
        if not result.success:
            return tool_error(f"Failed to list keys: {result.error}")
        keys = [k for k in _field(result.data, "keys") or [] if isinstance(k, dict)]
        if not keys:
            return tool_success("No authentication keys found")
        blocks = [format_auth_key(i, key) for i, key in enumerate(keys, start=1)]
        return tool_success(f"Found {len(keys)} authentication keys:\n\n" + "\n\n".join(blocks))

    if args.operation == "create":
        if args.key_config is None:
            return tool_error("Key configuration is required for create operation")
        result = await backend.create_auth_key(args.key_config.to_request())
        if not result.success:
            return tool_error(f"Failed to create key: {result.error}")
        created = result.data if isinstance(result.data, dict) else {}
        return tool_success(
            "Authentication key created successfully:\n"
            f"  - ID: {created.get('id')}\n"
            f"  - Key: {created.get('key')}\n"
            f"  - Description: {created.get('description') or 'No description'}"
        )

    if not args.key_id:
        return tool_error("Key ID is required for delete operation")
    result = await backend.delete_auth_key(args.key_id)
    if not result.success:
        return tool_error(f"Failed to delete key: {result.error}")
    return tool_success(f"Authentication key {args.key_id} deleted successfully")


async def _handle_network_lock(args: ManageNetworkLockArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Managing network lock: %s", args.operation)
    backend = context.backend

    if args.operation == "status":
        result = await backend.get_network_lock_status()
        if not result.success:
            return tool_error(f"Failed to get network lock status: {result.error}")
        status = result.data
        return tool_success(
            "Network Lock Status:\n"
            f"  - Enabled: {'Yes' if _field(status, 'enabled') else 'No'}\n"
            f"  - Node Key: {_field(status, 'nodeKey') or 'Not available'}\n"
            f"  - Trusted Keys: {len(_field(status, 'trustedKeys') or [])}"
        )

    if args.operation == "enable":
        result = await backend.enable_network_lock()
        if not result.success:
            return tool_error(f"Failed to enable network lock: {result.error}")
        return tool_success(
            f"Network lock enabled successfully. Key: {_field(result.data, 'key') or 'Generated'}"
        )

    result = await backend.disable_network_lock()
    if not result.success:
        return tool_error(f"Failed to disable network lock: {result.error}")
    return tool_success("Network lock disabled successfully")


async def _handle_policy_file(args: ManagePolicyFileArgs, context: ToolContext) -> types.CallToolResult:
    logger.debug("Managing policy file: %s", args.operation)
    backend = context.backend

    if args.operation == "get":
        result = await backend.get_policy_file()
        if not result.success:
            return tool_error(f"Failed to get policy file: {result.error}")
        body = result.data if isinstance(result.data, str) else json.dumps(result.data, indent=2)
        return tool_success(f"Policy File (HuJSON format):\n\n{body}")

    if args.operation == "update":
        if not args.policy:
            return tool_error("Policy content is required for update operation")
        result = await backend.update_acl(args.policy)
        if not result.success:
            return tool_error(f"Failed to update policy file: {result.error}")
        return tool_success("Policy file updated successfully")

    if args.test_request is None:
        return tool_error("Test request parameters are required for test_access operation")
    test = args.test_request
    result = await backend.test_acl_access(test.src, test.dst, test.proto)
    if not result.success:
        return tool_error(f"Failed to test access: {result.error}")
    outcome = result.data
    return tool_success(
        "ACL Access Test Result:\n"
        f"  - Source: {test.src}\n"
        f"  - Destination: {test.dst}\n"
        f"  - Protocol: {test.proto or 'any'}\n"
        f"  - Result: {'ALLOWED' if _field(outcome, 'allowed') else 'DENIED'}\n"
        f"  - Rule: {_field(outcome, 'rule') or 'No matching rule'}\n"
        f"  - Match: {_field(outcome, 'match') or 'N/A'}"
    )


def register_tools(registry: ToolRegistry) -> None:
    registry.add_tool("manage_acl", "Manage network Access Control Lists (ACLs)", ManageACLArgs, _handle_acl)
    registry.add_tool("manage_dns", "Manage network DNS configuration", ManageDNSArgs, _handle_dns)
    registry.add_tool("manage_keys", "Manage authentication keys", ManageKeysArgs, _handle_keys)
    registry.add_tool(
        "manage_network_lock",
        "Manage network lock (key authority) for enhanced security",
        ManageNetworkLockArgs,
        _handle_network_lock,
    )
    registry.add_tool(
        "manage_policy_file",
        "Manage policy files and test ACL access rules",
        ManagePolicyFileArgs,
        _handle_policy_file,
    )

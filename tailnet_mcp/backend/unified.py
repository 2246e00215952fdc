from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional

from .api_client import TailnetAPIClient
from .base import EXIT_NODE_ROUTES, Backend, BackendResponse, ConnectOptions
from .cli_client import TailnetCLI

logger = logging.getLogger(__name__)


class UnifiedBackend(Backend):
    """
    Routes each operation to the management API or the local CLI.

    Device and tailnet administration is API-only and node connectivity is
    CLI-only. Read operations go to whichever side is available, honoring
    `prefer_api` when both are.
    """

    def __init__(self, api: TailnetAPIClient, cli: TailnetCLI, prefer_api: bool = False) -> None:
        self._api = api
        self._cli = cli
        self._prefer_api = prefer_api
        self.api_available = False
        self.cli_available = False

    @classmethod
    def from_settings(cls, settings, transport: str) -> "UnifiedBackend":
        api = TailnetAPIClient(
            api_key=settings.api_key,
            tailnet=settings.tailnet,
            base_url=settings.api_base_url,
            timeout=settings.api_timeout_seconds,
        )
        cli = TailnetCLI(settings.cli_path, timeout=settings.cli_timeout_seconds)
        return cls(api, cli, prefer_api=settings.prefers_api(transport))

    async def initialize(self) -> None:
        logger.debug("Initializing unified backend...")
        api_check = await self._api.test_connection()
        self.api_available = api_check.success
        if not self.api_available:
            logger.debug("Management API is not available: %s", api_check.error)
        self.cli_available = await self._cli.is_available()
        logger.info(
            "Backend initialized - API: %s, CLI: %s, prefer API: %s",
            self.api_available,
            self.cli_available,
            self._prefer_api,
        )

    async def aclose(self) -> None:
        await self._api.aclose()

    def _pick(self) -> Literal["api", "cli"]:
        if not self.api_available:
            return "cli"
        if not self.cli_available:
            return "api"
        return "api" if self._prefer_api else "cli"

    def _require(self, side: Literal["api", "cli"], operation: str) -> Optional[BackendResponse]:
        available = self.api_available if side == "api" else self.cli_available
        if available:
            return None
        what = "Management API" if side == "api" else "Local CLI"
        return BackendResponse.fail(side, f"{what} is not available for {operation}")

    async def get_status(self) -> BackendResponse:
        if self._pick() == "api":
            return await self._api.get_tailnet_info()
        return await self._cli.get_status()

    async def list_devices(self) -> BackendResponse:
        if self._pick() == "api":
            return await self._api.list_devices()
        return await self._cli.list_devices()

    async def get_version(self) -> BackendResponse:
        return self._require("cli", "version information") or await self._cli.version()

    async def ping(self, target: str, count: int = 4) -> BackendResponse:
        return self._require("cli", "ping") or await self._cli.ping(target, count)

    async def connect(self, options: ConnectOptions) -> BackendResponse:
        return self._require("cli", "connect") or await self._cli.up(options)

    async def disconnect(self) -> BackendResponse:
        return self._require("cli", "disconnect") or await self._cli.down()

    async def authorize_device(self, device_id: str) -> BackendResponse:
        return self._require("api", "device authorization") or await self._api.authorize_device(device_id)

    async def deauthorize_device(self, device_id: str) -> BackendResponse:
        return self._require("api", "device authorization") or await self._api.deauthorize_device(device_id)

    async def delete_device(self, device_id: str) -> BackendResponse:
        return self._require("api", "device deletion") or await self._api.delete_device(device_id)

    async def expire_device_key(self, device_id: str) -> BackendResponse:
        return self._require("api", "key expiry") or await self._api.expire_device_key(device_id)

    async def enable_device_routes(self, device_id: str, routes: List[str]) -> BackendResponse:
        return self._require("api", "route management") or await self._api.enable_device_routes(device_id, routes)

    async def disable_device_routes(self, device_id: str, routes: List[str]) -> BackendResponse:
        return self._require("api", "route management") or await self._api.disable_device_routes(device_id, routes)

    async def set_exit_node(self, node: Optional[str] = None) -> BackendResponse:
        return self._require("cli", "exit node selection") or await self._cli.set_exit_node(node)

    async def list_exit_nodes(self) -> BackendResponse:
        unavailable = self._require("api", "exit node listing")
        if unavailable:
            return unavailable
        result = await self._api.list_devices()
        if result.success:
            result.data = [
                device
                for device in result.data
                if any(route in EXIT_NODE_ROUTES for route in device.get("advertisedRoutes") or [])
            ]
        return result

    async def get_device_tags(self, device_id: str) -> BackendResponse:
        return self._require("api", "device tagging") or await self._api.get_device_tags(device_id)

    async def set_device_tags(self, device_id: str, tags: List[str]) -> BackendResponse:
        return self._require("api", "device tagging") or await self._api.set_device_tags(device_id, tags)

    async def get_tailnet_info(self) -> BackendResponse:
        return self._require("api", "tailnet information") or await self._api.get_tailnet_info()

    async def get_file_sharing_status(self) -> BackendResponse:
        return self._require("api", "file sharing") or await self._api.get_file_sharing_status()

    async def set_file_sharing_status(self, enabled: bool) -> BackendResponse:
        return self._require("api", "file sharing") or await self._api.set_file_sharing_status(enabled)

    async def get_acl(self) -> BackendResponse:
        return self._require("api", "ACL management") or await self._api.get_acl()

    async def update_acl(self, policy: str) -> BackendResponse:
        return self._require("api", "ACL management") or await self._api.update_acl(policy)

    async def validate_acl(self, policy: str) -> BackendResponse:
        return self._require("api", "ACL management") or await self._api.validate_acl(policy)

    async def get_policy_file(self) -> BackendResponse:
        return self._require("api", "policy files") or await self._api.get_policy_file()

    async def test_acl_access(self, src: str, dst: str, proto: Optional[str] = None) -> BackendResponse:
        return self._require("api", "policy files") or await self._api.test_acl_access(src, dst, proto)

    async def get_dns_nameservers(self) -> BackendResponse:
        return self._require("api", "DNS management") or await self._api.get_dns_nameservers()

    async def set_dns_nameservers(self, nameservers: List[str]) -> BackendResponse:
        return self._require("api", "DNS management") or await self._api.set_dns_nameservers(nameservers)

    async def get_dns_preferences(self) -> BackendResponse:
        return self._require("api", "DNS management") or await self._api.get_dns_preferences()

    async def set_dns_preferences(self, magic_dns: bool) -> BackendResponse:
        return self._require("api", "DNS management") or await self._api.set_dns_preferences(magic_dns)

    async def get_dns_search_paths(self) -> BackendResponse:
        return self._require("api", "DNS management") or await self._api.get_dns_search_paths()

    async def set_dns_search_paths(self, search_paths: List[str]) -> BackendResponse:
        return self._require("api", "DNS management") or await self._api.set_dns_search_paths(search_paths)

    async def list_auth_keys(self) -> BackendResponse:
        return self._require("api", "key management") or await self._api.list_auth_keys()

    async def create_auth_key(self, key_config: Dict[str, Any]) -> BackendResponse:
        return self._require("api", "key management") or await self._api.create_auth_key(key_config)

    async def delete_auth_key(self, key_id: str) -> BackendResponse:
        return self._require("api", "key management") or await self._api.delete_auth_key(key_id)

    async def get_network_lock_status(self) -> BackendResponse:
        return self._require("api", "network lock") or await self._api.get_network_lock_status()

    async def enable_network_lock(self) -> BackendResponse:
        return self._require("api", "network lock") or await self._api.enable_network_lock()

    async def disable_network_lock(self) -> BackendResponse:
        return self._require("api", "network lock") or await self._api.disable_network_lock()

    async def list_webhooks(self) -> BackendResponse:
        return self._require("api", "webhooks") or await self._api.list_webhooks()

    async def create_webhook(self, config: Dict[str, Any]) -> BackendResponse:
        return self._require("api", "webhooks") or await self._api.create_webhook(config)

    async def delete_webhook(self, webhook_id: str) -> BackendResponse:
        return self._require("api", "webhooks") or await self._api.delete_webhook(webhook_id)

    async def test_webhook(self, webhook_id: str) -> BackendResponse:
        return self._require("api", "webhooks") or await self._api.test_webhook(webhook_id)

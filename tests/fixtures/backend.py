"""Fake backend with canned responses for deterministic tool tests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from tailnet_mcp.backend import Backend, BackendResponse, ConnectOptions


class FakeBackend(Backend):
    """Backend that records calls and answers from a canned table."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.responses: Dict[str, BackendResponse] = {}
        self.closed = False

    def _answer(self, operation: str, *args: Any, data: Any = "ok") -> BackendResponse:
        self.calls.append((operation, args))
        return self.responses.get(operation) or BackendResponse.ok("cli", data)

    async def aclose(self) -> None:
        self.closed = True

    async def get_status(self) -> BackendResponse:
        return self._answer("get_status", data={"BackendState": "Running"})

    async def list_devices(self) -> BackendResponse:
        return self._answer("list_devices", data=[])

    async def get_version(self) -> BackendResponse:
        return self._answer("get_version", data="1.62.0")

    async def ping(self, target: str, count: int = 4) -> BackendResponse:
        return self._answer("ping", target, count, data=f"pong from {target}")

    async def connect(self, options: ConnectOptions) -> BackendResponse:
        return self._answer("connect", options)

    async def disconnect(self) -> BackendResponse:
        return self._answer("disconnect")

    async def authorize_device(self, device_id: str) -> BackendResponse:
        return self._answer("authorize_device", device_id)

    async def deauthorize_device(self, device_id: str) -> BackendResponse:
        return self._answer("deauthorize_device", device_id)

    async def delete_device(self, device_id: str) -> BackendResponse:
        return self._answer("delete_device", device_id)

    async def expire_device_key(self, device_id: str) -> BackendResponse:
        return self._answer("expire_device_key", device_id)

    async def enable_device_routes(self, device_id: str, routes: List[str]) -> BackendResponse:
        return self._answer("enable_device_routes", device_id, routes)

    async def disable_device_routes(self, device_id: str, routes: List[str]) -> BackendResponse:
        return self._answer("disable_device_routes", device_id, routes)

    async def set_exit_node(self, node: Optional[str] = None) -> BackendResponse:
        return self._answer("set_exit_node", node)

    async def list_exit_nodes(self) -> BackendResponse:
        return self._answer("list_exit_nodes", data=[])

    async def get_device_tags(self, device_id: str) -> BackendResponse:
        return self._answer("get_device_tags", device_id, data={"tags": []})

    async def set_device_tags(self, device_id: str, tags: List[str]) -> BackendResponse:
        return self._answer("set_device_tags", device_id, tags)

    async def get_tailnet_info(self) -> BackendResponse:
        return self._answer("get_tailnet_info", data={"name": "example.com"})

    async def get_file_sharing_status(self) -> BackendResponse:
        return self._answer("get_file_sharing_status", data={"fileSharing": False})

    async def set_file_sharing_status(self, enabled: bool) -> BackendResponse:
        return self._answer("set_file_sharing_status", enabled)

    async def get_acl(self) -> BackendResponse:
        return self._answer("get_acl", data={"acls": []})

    async def update_acl(self, policy: str) -> BackendResponse:
        return self._answer("update_acl", policy)

    async def validate_acl(self, policy: str) -> BackendResponse:
        return self._answer("validate_acl", policy)

    async def get_policy_file(self) -> BackendResponse:
        return self._answer("get_policy_file", data="{}")

    async def test_acl_access(self, src: str, dst: str, proto: Optional[str] = None) -> BackendResponse:
        return self._answer("test_acl_access", src, dst, proto, data={"allowed": True})

    async def get_dns_nameservers(self) -> BackendResponse:
        return self._answer("get_dns_nameservers", data={"dns": []})

    async def set_dns_nameservers(self, nameservers: List[str]) -> BackendResponse:
        return self._answer("set_dns_nameservers", nameservers)

    async def get_dns_preferences(self) -> BackendResponse:
        return self._answer("get_dns_preferences", data={"magicDNS": False})

    async def set_dns_preferences(self, magic_dns: bool) -> BackendResponse:
        return self._answer("set_dns_preferences", magic_dns)

    async def get_dns_search_paths(self) -> BackendResponse:
        return self._answer("get_dns_search_paths", data={"searchPaths": []})

    async def set_dns_search_paths(self, search_paths: List[str]) -> BackendResponse:
        return self._answer("set_dns_search_paths", search_paths)

    async def list_auth_keys(self) -> BackendResponse:
        return self._answer("list_auth_keys", data={"keys": []})

    async def create_auth_key(self, key_config: Dict[str, Any]) -> BackendResponse:
        return self._answer("create_auth_key", key_config, data={"id": "k1", "key": "tskey-auth-k1"})

    async def delete_auth_key(self, key_id: str) -> BackendResponse:
        return self._answer("delete_auth_key", key_id)

    async def get_network_lock_status(self) -> BackendResponse:
        return self._answer("get_network_lock_status", data={"enabled": False})

    async def enable_network_lock(self) -> BackendResponse:
        return self._answer("enable_network_lock", data={})

    async def disable_network_lock(self) -> BackendResponse:
        return self._answer("disable_network_lock")

    async def list_webhooks(self) -> BackendResponse:
        return self._answer("list_webhooks", data={"webhooks": []})

    async def create_webhook(self, config: Dict[str, Any]) -> BackendResponse:
        return self._answer("create_webhook", config, data={"id": "w1", **config})

    async def delete_webhook(self, webhook_id: str) -> BackendResponse:
        return self._answer("delete_webhook", webhook_id)

    async def test_webhook(self, webhook_id: str) -> BackendResponse:
        return self._answer("test_webhook", webhook_id, data={"status": "sent"})


def result_text(result: Any) -> str:
    """Concatenated text content of a CallToolResult."""
    return "".join(item.text for item in result.content)


def response_ok(source: str = "api", data: Optional[Any] = None) -> BackendResponse:
    return BackendResponse.ok(source, data)  # type: ignore[arg-type]

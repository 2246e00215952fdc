from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


# Advertising either default route makes a device an exit node.
EXIT_NODE_ROUTES = ("0.0.0.0/0", "::/0")


class BackendResponse(BaseModel):
    """
    Uniform envelope returned by every backend operation.

    `source` records which side (management API or local CLI) answered.
    """

    success: bool
    data: Any = None
    error: Optional[str] = None
    source: Literal["api", "cli"]
    status_code: Optional[int] = None

    @classmethod
    def ok(cls, source: Literal["api", "cli"], data: Any = None, status_code: Optional[int] = None) -> "BackendResponse":
        return cls(success=True, data=data, source=source, status_code=status_code)

    @classmethod
    def fail(cls, source: Literal["api", "cli"], error: str, status_code: Optional[int] = None) -> "BackendResponse":
        return cls(success=False, error=error, source=source, status_code=status_code)


class ConnectOptions(BaseModel):
    """Options for bringing the local node up on the network."""

    accept_routes: bool = False
    accept_dns: bool = False
    hostname: Optional[str] = None
    advertise_routes: List[str] = Field(default_factory=list)
    auth_key: Optional[str] = None
    login_server: Optional[str] = None


class Backend(ABC):
    """
    Operations the tool handlers may call.

    Implementations must bound every call with a timeout and report failures
    through `BackendResponse` rather than raising, except for argument
    validation errors which raise `ValueError`.
    """

    async def initialize(self) -> None:
        """Check availability; called once before serving."""

    async def aclose(self) -> None:
        """Release network resources."""

    @abstractmethod
    async def get_status(self) -> BackendResponse: ...

    @abstractmethod
    async def list_devices(self) -> BackendResponse: ...

    @abstractmethod
    async def get_version(self) -> BackendResponse: ...

    @abstractmethod
    async def ping(self, target: str, count: int = 4) -> BackendResponse: ...

    @abstractmethod
    async def connect(self, options: ConnectOptions) -> BackendResponse: ...

    @abstractmethod
    async def disconnect(self) -> BackendResponse: ...

    @abstractmethod
    async def authorize_device(self, device_id: str) -> BackendResponse: ...

    @abstractmethod
    async def deauthorize_device(self, device_id: str) -> BackendResponse: ...

    @abstractmethod
    async def delete_device(self, device_id: str) -> BackendResponse: ...

    @abstractmethod
    async def expire_device_key(self, device_id: str) -> BackendResponse: ...

    @abstractmethod
    async def enable_device_routes(self, device_id: str, routes: List[str]) -> BackendResponse: ...

    @abstractmethod
    async def disable_device_routes(self, device_id: str, routes: List[str]) -> BackendResponse: ...

    @abstractmethod
    async def set_exit_node(self, node: Optional[str] = None) -> BackendResponse: ...

    @abstractmethod
    async def list_exit_nodes(self) -> BackendResponse: ...

    @abstractmethod
    async def get_device_tags(self, device_id: str) -> BackendResponse: ...

    @abstractmethod
    async def set_device_tags(self, device_id: str, tags: List[str]) -> BackendResponse: ...

    # Tailnet administration: management API only.

    @abstractmethod
    async def get_tailnet_info(self) -> BackendResponse: ...

    @abstractmethod
    async def get_file_sharing_status(self) -> BackendResponse: ...

    @abstractmethod
    async def set_file_sharing_status(self, enabled: bool) -> BackendResponse: ...

    @abstractmethod
    async def get_acl(self) -> BackendResponse: ...

    @abstractmethod
    async def update_acl(self, policy: str) -> BackendResponse: ...

    @abstractmethod
    async def validate_acl(self, policy: str) -> BackendResponse: ...

    @abstractmethod
    async def get_policy_file(self) -> BackendResponse: ...

    @abstractmethod
    async def test_acl_access(self, src: str, dst: str, proto: Optional[str] = None) -> BackendResponse: ...

    @abstractmethod
    async def get_dns_nameservers(self) -> BackendResponse: ...

    @abstractmethod
    async def set_dns_nameservers(self, nameservers: List[str]) -> BackendResponse: ...

    @abstractmethod
    async def get_dns_preferences(self) -> BackendResponse: ...

    @abstractmethod
    async def set_dns_preferences(self, magic_dns: bool) -> BackendResponse: ...

    @abstractmethod
    async def get_dns_search_paths(self) -> BackendResponse: ...

    @abstractmethod
    async def set_dns_search_paths(self, search_paths: List[str]) -> BackendResponse: ...

    @abstractmethod
    async def list_auth_keys(self) -> BackendResponse: ...

    @abstractmethod
    async def create_auth_key(self, key_config: Dict[str, Any]) -> BackendResponse: ...

    @abstractmethod
    async def delete_auth_key(self, key_id: str) -> BackendResponse: ...

    @abstractmethod
    async def get_network_lock_status(self) -> BackendResponse: ...

    @abstractmethod
    async def enable_network_lock(self) -> BackendResponse: ...

    @abstractmethod
    async def disable_network_lock(self) -> BackendResponse: ...

    @abstractmethod
    async def list_webhooks(self) -> BackendResponse: ...

    @abstractmethod
    async def create_webhook(self, config: Dict[str, Any]) -> BackendResponse: ...

    @abstractmethod
    async def delete_webhook(self, webhook_id: str) -> BackendResponse: ...

    @abstractmethod
    async def test_webhook(self, webhook_id: str) -> BackendResponse: ...

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import error_message
from .base import BackendResponse

logger = logging.getLogger(__name__)

HUJSON_CONTENT = {"Content-Type": "application/hujson"}


class TailnetAPIClient:
    """
    Async client for the coordination server's management API.

    Every method returns a `BackendResponse`; HTTP errors, network failures and
    timeouts are converted instead of raised.
    """

    def __init__(
        self,
        api_key: Optional[str],
        tailnet: str = "-",
        base_url: str = "https://api.tailscale.com/api/v2",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            logger.warning(
                "No API key provided. API operations will fail until TAILSCALE_API_KEY is set."
            )
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._has_key = bool(api_key)
        self._tailnet = tailnet
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return self._has_key

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        content: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> BackendResponse:
        logger.debug("API Request: %s %s", method, path)
        try:
            response = await self._client.request(
                method, path, json=json, content=content, headers=headers, params=params
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("API Response Error: %s %s -> %s", method, path, status)
            return BackendResponse.fail("api", error_message(e), status_code=status)
        except httpx.TimeoutException as e:
            logger.error("API timeout: %s %s", method, path)
            return BackendResponse.fail("api", error_message(e), status_code=0)
        except httpx.RequestError as e:
            logger.error("API network error: %s %s: %s", method, path, e)
            return BackendResponse.fail(
                "api", "Network error: Unable to connect to management API", status_code=0
            )

        logger.debug("API Response: %s %s", response.status_code, path)
        data: Any = None
        if response.content:
            try:
                data = response.json()
            except ValueError:
                data = response.text
        return BackendResponse.ok("api", data, status_code=response.status_code)

    # Devices

    async def list_devices(self) -> BackendResponse:
        result = await self._request("GET", f"/tailnet/{self._tailnet}/devices")
        if not result.success:
            return result
        if not isinstance(result.data, dict):
            return BackendResponse.fail(
                "api", "Unexpected device list response: expected an object", status_code=result.status_code
            )
        devices = result.data.get("devices") or []
        result.data = [d for d in devices if isinstance(d, dict) and "id" in d]
        return result

    async def get_device(self, device_id: str) -> BackendResponse:
        return await self._request("GET", f"/device/{device_id}")

    async def authorize_device(self, device_id: str) -> BackendResponse:
        return await self._request("POST", f"/device/{device_id}/authorized", json={"authorized": True})

    async def deauthorize_device(self, device_id: str) -> BackendResponse:
        return await self._request("POST", f"/device/{device_id}/authorized", json={"authorized": False})

    async def delete_device(self, device_id: str) -> BackendResponse:
        return await self._request("DELETE", f"/device/{device_id}")

    async def expire_device_key(self, device_id: str) -> BackendResponse:
        return await self._request("POST", f"/device/{device_id}/expire")

    async def enable_device_routes(self, device_id: str, routes: List[str]) -> BackendResponse:
        return await self._request("POST", f"/device/{device_id}/routes", json={"routes": routes})

    async def disable_device_routes(self, device_id: str, routes: List[str]) -> BackendResponse:
        return await self._request("DELETE", f"/device/{device_id}/routes", json={"routes": routes})

    async def get_device_tags(self, device_id: str) -> BackendResponse:
        result = await self.get_device(device_id)
        if result.success:
            device = result.data if isinstance(result.data, dict) else {}
            result.data = {"tags": list(device.get("tags") or [])}
        return result

    async def set_device_tags(self, device_id: str, tags: List[str]) -> BackendResponse:
        return await self._request("POST", f"/device/{device_id}/tags", json={"tags": tags})

    # Tailnet

    async def get_tailnet_info(self) -> BackendResponse:
        return await self._request("GET", f"/tailnet/{self._tailnet}")

    async def test_connection(self) -> BackendResponse:
        if not self._has_key:
            return BackendResponse.fail("api", "API key not configured")
        result = await self.get_tailnet_info()
        if result.success:
            result.data = {"status": "connected"}
        return result

    async def get_file_sharing_status(self) -> BackendResponse:
        return await self._request("GET", f"/tailnet/{self._tailnet}/settings")

    async def set_file_sharing_status(self, enabled: bool) -> BackendResponse:
        return await self._request("POST", f"/tailnet/{self._tailnet}/settings", json={"fileSharing": enabled})

    # Access policy

    async def get_acl(self) -> BackendResponse:
        return await self._request("GET", f"/tailnet/{self._tailnet}/acl")

    async def update_acl(self, policy: str) -> BackendResponse:
        return await self._request(
            "POST", f"/tailnet/{self._tailnet}/acl", content=policy, headers=HUJSON_CONTENT
        )

    async def validate_acl(self, policy: str) -> BackendResponse:
        return await self._request(
            "POST", f"/tailnet/{self._tailnet}/acl/validate", content=policy, headers=HUJSON_CONTENT
        )

    async def get_policy_file(self) -> BackendResponse:
        return await self._request(
            "GET", f"/tailnet/{self._tailnet}/acl", headers={"Accept": "application/hujson"}
        )

    async def test_acl_access(self, src: str, dst: str, proto: Optional[str] = None) -> BackendResponse:
        params = {"src": src, "dst": dst}
        if proto:
            params["proto"] = proto
        return await self._request("GET", f"/tailnet/{self._tailnet}/acl/test", params=params)

    # DNS

    async def get_dns_nameservers(self) -> BackendResponse:
        return await self._request("GET", f"/tailnet/{self._tailnet}/dns/nameservers")

    async def set_dns_nameservers(self, nameservers: List[str]) -> BackendResponse:
        return await self._request(
            "POST", f"/tailnet/{self._tailnet}/dns/nameservers", json={"dns": nameservers}
        )

    async def get_dns_preferences(self) -> BackendResponse:
        return await self._request("GET", f"/tailnet/{self._tailnet}/dns/preferences")

    async def set_dns_preferences(self, magic_dns: bool) -> BackendResponse:
        return await self._request(
            "POST", f"/tailnet/{self._tailnet}/dns/preferences", json={"magicDNS": magic_dns}
        )

    async def get_dns_search_paths(self) -> BackendResponse:
        return await self._request("GET", f"/tailnet/{self._tailnet}/dns/searchpaths")

    async def set_dns_search_paths(self, search_paths: List[str]) -> BackendResponse:
        return await self._request(
            "POST", f"/tailnet/{self._tailnet}/dns/searchpaths", json={"searchPaths": search_paths}
        )

    # Auth keys

    async def list_auth_keys(self) -> BackendResponse:
        return await self._request("GET", f"/tailnet/{self._tailnet}/keys")

    async def create_auth_key(self, key_config: Dict[str, Any]) -> BackendResponse:
        return await self._request("POST", f"/tailnet/{self._tailnet}/keys", json=key_config)

    async def delete_auth_key(self, key_id: str) -> BackendResponse:
        return await self._request("DELETE", f"/tailnet/{self._tailnet}/keys/{key_id}")

    # Network lock

    async def get_network_lock_status(self) -> BackendResponse:
        return await self._request("GET", f"/tailnet/{self._tailnet}/network-lock")

    async def enable_network_lock(self) -> BackendResponse:
        return await self._request("POST", f"/tailnet/{self._tailnet}/network-lock")

    async def disable_network_lock(self) -> BackendResponse:
        return await self._request("DELETE", f"/tailnet/{self._tailnet}/network-lock")

    # Webhooks

    async def list_webhooks(self) -> BackendResponse:
        return await self._request("GET", f"/tailnet/{self._tailnet}/webhooks")

    async def create_webhook(self, config: Dict[str, Any]) -> BackendResponse:
        return await self._request("POST", f"/tailnet/{self._tailnet}/webhooks", json=config)

    async def delete_webhook(self, webhook_id: str) -> BackendResponse:
        return await self._request("DELETE", f"/tailnet/{self._tailnet}/webhooks/{webhook_id}")

    async def test_webhook(self, webhook_id: str) -> BackendResponse:
        return await self._request("POST", f"/tailnet/{self._tailnet}/webhooks/{webhook_id}/test")

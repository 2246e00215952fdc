from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Tailnet MCP server.

    All values are loaded from environment variables with `TAILNET_MCP_` prefix.
    The backend credentials also honor the conventional `TAILSCALE_API_KEY`
    and `TAILSCALE_TAILNET` variables. A `.env` file is read during development.
    """

    model_config = SettingsConfigDict(
        env_prefix="TAILNET_MCP_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # General
    env: str = "development"
    transport: str = "stdio"  # "stdio" or "http"
    server_host: str = "0.0.0.0"
    server_port: int = 3000

    # HTTP sessions
    session_timeout_seconds: float = 60 * 60
    session_sweep_interval_seconds: float = 15 * 60
    verify_client_ip: Optional[bool] = None
    cors_origin: Optional[str] = None
    expose_sessions: Optional[bool] = None

    # Stdio transport
    heartbeat_interval_seconds: float = 30.0
    shutdown_grace_seconds: float = 5.0

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Backend
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("TAILNET_MCP_API_KEY", "TAILSCALE_API_KEY"),
    )
    tailnet: str = Field(
        default="-",
        validation_alias=AliasChoices("TAILNET_MCP_TAILNET", "TAILSCALE_TAILNET"),
    )
    api_base_url: str = "https://api.tailscale.com/api/v2"
    api_timeout_seconds: float = 30.0
    cli_path: str = "tailscale"
    cli_timeout_seconds: float = 30.0
    prefer_api: Optional[bool] = None

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    @property
    def client_ip_check_enabled(self) -> bool:
        """Source-address pinning: explicit setting wins, otherwise production only."""
        if self.verify_client_ip is not None:
            return self.verify_client_ip
        return self.is_production

    @property
    def allowed_origin(self) -> str:
        if self.cors_origin:
            return self.cors_origin
        return "http://localhost:3000" if self.is_production else "*"

    @property
    def sessions_endpoint_enabled(self) -> bool:
        if self.expose_sessions is not None:
            return self.expose_sessions
        return not self.is_production

    def prefers_api(self, transport: str) -> bool:
        # Unset: API for http, CLI for stdio.
        if self.prefer_api is not None:
            return self.prefer_api
        return transport == "http"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache settings from environment."""
    return Settings()

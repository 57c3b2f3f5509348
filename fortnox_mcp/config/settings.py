"""Configuration settings for the Fortnox MCP Server using Pydantic Settings.

This module provides type-safe configuration management with automatic validation,
environment variable loading, and documentation generation.
"""

import logging
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fortnox_mcp.core.constants import (
    FORTNOX_DEFAULT_SCOPES,
    REFRESH_TIMEOUT_DEFAULT,
    REQUEST_TIMEOUT_DEFAULT,
)
from fortnox_mcp.core.exceptions import MissingConfigurationError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Central configuration management with Pydantic validation.

    All settings are loaded from environment variables with automatic type conversion
    and validation. Default values are provided for non-critical settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
        validate_default=True,
        populate_by_name=True,
    )

    # ========================================
    # Debug Settings
    # ========================================
    debug: bool = Field(
        default=False,
        alias="MCP_DEBUG",
        description="Enable debug mode with verbose logging",
    )

    # ========================================
    # Server Settings
    # ========================================
    auth_mode: Literal["local", "remote"] = Field(
        default="local",
        description="local: credentials from env; remote: multi-tenant OAuth proxy",
    )

    transport: Literal["stdio", "http"] = Field(
        default="stdio",
        description="Transport mode (stdio or http). Remote mode always uses http",
    )

    host: str = Field(
        default="0.0.0.0",
        description="Server host address",
    )

    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Server port number",
    )

    server_url: str | None = Field(
        default=None,
        description="Public URL of the server, used as session token issuer",
    )

    jwt_secret: str | None = Field(
        default=None,
        description="Secret used to sign session tokens",
    )

    allowed_redirect_uris: str | None = Field(
        default=None,
        description="Comma-separated client redirect URIs that may receive session tokens; "
        "defaults to the server URL's origin",
    )

    # ========================================
    # Fortnox Application Credentials
    # ========================================
    fortnox_client_id: str | None = Field(
        default=None,
        description="Fortnox app client ID",
    )

    fortnox_client_secret: str | None = Field(
        default=None,
        description="Fortnox app client secret",
    )

    fortnox_scopes: str = Field(
        default=",".join(FORTNOX_DEFAULT_SCOPES),
        description="Comma-separated scopes requested during authorization",
    )

    # ========================================
    # Local Mode Credentials
    # ========================================
    fortnox_access_token: str | None = Field(
        default=None,
        description="Access token used in local mode",
    )

    fortnox_token_expires_at: float | None = Field(
        default=None,
        description="Expiry of the local access token (unix seconds)",
    )

    fortnox_scope: str | None = Field(
        default=None,
        description="Scope granted to the local access token",
    )

    # ========================================
    # Token Storage Settings
    # ========================================
    token_storage: Literal["memory", "file", "redis"] | None = Field(
        default=None,
        description="Token storage backend; auto-detected when unset",
    )

    token_storage_dir: str = Field(
        default=".fortnox_tokens",
        description="Directory for the file token storage backend",
    )

    redis_url: str | None = Field(
        default=None,
        description="Redis URL for the redis token storage backend",
    )

    # ========================================
    # Upstream Call Settings
    # ========================================
    request_timeout: float = Field(
        default=REQUEST_TIMEOUT_DEFAULT,
        gt=0,
        le=300,
        description="Timeout in seconds for Fortnox API requests",
    )

    refresh_timeout: float = Field(
        default=REFRESH_TIMEOUT_DEFAULT,
        gt=0,
        le=120,
        description="Timeout in seconds for the token refresh handshake",
    )

    rate_limit_max_wait: float = Field(
        default=10.0,
        ge=0,
        le=120,
        description="Longest time an API call may queue for a rate-limit slot",
    )

    # ========================================
    # Validators
    # ========================================
    @field_validator("server_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Normalize the server URL so issuer comparisons are exact."""
        if isinstance(v, str):
            return v.rstrip("/") or None
        return v

    @model_validator(mode="after")
    def force_http_in_remote_mode(self) -> "Settings":
        """Remote mode is only reachable over HTTP."""
        if self.auth_mode == "remote":
            self.transport = "http"
        return self

    # ========================================
    # Helper Methods
    # ========================================
    def has_client_credentials(self) -> bool:
        """Check if the Fortnox app credentials are configured."""
        return bool(self.fortnox_client_id and self.fortnox_client_secret)

    def get_scopes_list(self) -> list[str]:
        """Get authorization scopes as a list."""
        return [s.strip() for s in self.fortnox_scopes.split(",") if s.strip()]

    def get_allowed_redirect_uris(self) -> list[str]:
        """Get the client redirect URI allow-list."""
        if not self.allowed_redirect_uris:
            return []
        return [u.strip() for u in self.allowed_redirect_uris.split(",") if u.strip()]

    def validate_for_mode(self) -> None:
        """Fail fast when configuration required by the auth mode is absent.

        Raises:
            MissingConfigurationError: naming every missing variable
        """
        if self.auth_mode != "remote":
            return

        required = {
            "SERVER_URL": self.server_url,
            "JWT_SECRET": self.jwt_secret,
            "FORTNOX_CLIENT_ID": self.fortnox_client_id,
            "FORTNOX_CLIENT_SECRET": self.fortnox_client_secret,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise MissingConfigurationError(missing)

    def to_dict(self) -> dict[str, Any]:
        """Export settings as a dictionary (safe version without secrets)."""
        return {
            "debug": self.debug,
            "auth_mode": self.auth_mode,
            "transport": self.transport,
            "host": self.host,
            "port": self.port,
            "server_url": self.server_url,
            "has_jwt_secret": bool(self.jwt_secret),
            "allowed_redirect_uris": self.get_allowed_redirect_uris(),
            "has_client_credentials": self.has_client_credentials(),
            "has_access_token": bool(self.fortnox_access_token),
            "token_storage": self.token_storage,
            "has_redis": bool(self.redis_url),
            "request_timeout": self.request_timeout,
            "refresh_timeout": self.refresh_timeout,
        }


# Singleton pattern with proper typing
_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
        logger.info("Settings initialized from environment")
        logger.debug("Auth mode: %s", _settings_instance.auth_mode)
        if not _settings_instance.has_client_credentials():
            logger.warning(
                "FORTNOX_CLIENT_ID/FORTNOX_CLIENT_SECRET are missing. Token refresh will be unavailable.",
            )
    return _settings_instance


def reset_settings() -> None:
    """Reset settings instance (useful for testing)."""
    global _settings_instance
    _settings_instance = None

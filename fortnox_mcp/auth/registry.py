"""
Registry holding the process's active token provider.

API callers never construct providers themselves: they ask the registry.
The entry point initializes it once at startup; when nothing was
initialized, the first ``get`` falls back to the env-backed provider.
"""

import logging
from typing import TYPE_CHECKING, Literal

from fortnox_mcp.core.exceptions import ConfigurationError

from .providers import EnvTokenProvider, OAuthProxyProvider, TokenProvider
from .storage import TokenStorage, get_storage_from_env

if TYPE_CHECKING:
    from fortnox_mcp.config import Settings

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Holds at most one active token provider."""

    def __init__(self):
        self._provider: TokenProvider | None = None

    @property
    def is_initialized(self) -> bool:
        return self._provider is not None

    def initialize(self, provider: TokenProvider) -> None:
        """Set the active provider. A later call replaces an earlier one."""
        if self._provider is not None and self._provider is not provider:
            logger.info(
                "Replacing token provider %s with %s",
                type(self._provider).__name__,
                type(provider).__name__,
            )
        self._provider = provider

    def get(self) -> TokenProvider:
        """Get the active provider, defaulting to the env-backed one."""
        if self._provider is None:
            logger.debug("No token provider initialized, using environment credentials")
            self._provider = EnvTokenProvider.from_settings()
        return self._provider

    def create(
        self,
        mode: Literal["local", "remote"],
        settings: "Settings | None" = None,
        storage: TokenStorage | None = None,
    ) -> TokenProvider:
        """
        Build a provider for the given mode without installing it.

        Args:
            mode: "local" for env credentials, "remote" for stored OAuth credentials
            settings: Settings to build from (global settings by default)
            storage: Storage for remote mode (selected from settings by default)

        Raises:
            ConfigurationError: If the mode is unknown
            MissingConfigurationError: If remote mode is not fully configured
        """
        if settings is None:
            from fortnox_mcp.config import get_settings

            settings = get_settings()

        if mode == "local":
            return EnvTokenProvider.from_settings(settings)
        if mode == "remote":
            if storage is None:
                storage = get_storage_from_env(settings)
            return OAuthProxyProvider.from_settings(settings, storage).token_provider
        raise ConfigurationError(f"Unknown auth mode: {mode}")

    def reset(self) -> None:
        """Forget the active provider (useful for testing)."""
        self._provider = None


_default_registry = ProviderRegistry()


def get_registry() -> ProviderRegistry:
    return _default_registry


def initialize_token_provider(provider: TokenProvider) -> None:
    _default_registry.initialize(provider)


def get_token_provider() -> TokenProvider:
    return _default_registry.get()


def create_token_provider(
    mode: Literal["local", "remote"],
    settings: "Settings | None" = None,
    storage: TokenStorage | None = None,
) -> TokenProvider:
    return _default_registry.create(mode, settings, storage)


def reset_token_provider() -> None:
    _default_registry.reset()

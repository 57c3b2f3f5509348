"""Token storage package.

Provides different storage backends for persisting subject credentials:
memory (development), file (single host) and redis (shared).
"""

import logging
from typing import TYPE_CHECKING

from fortnox_mcp.core.exceptions import ConfigurationError

from .base import TokenStorage
from .file import FileTokenStorage
from .memory import MemoryTokenStorage
from .redis_store import RedisTokenStorage

if TYPE_CHECKING:
    from fortnox_mcp.config import Settings

logger = logging.getLogger(__name__)


def create_token_storage(
    storage_type: str,
    *,
    storage_dir: str = ".fortnox_tokens",
    redis_url: str | None = None,
) -> TokenStorage:
    """
    Create a token storage instance by type.

    Args:
        storage_type: One of "memory", "file" or "redis"
        storage_dir: Directory for the file backend
        redis_url: Connection URL for the redis backend

    Raises:
        ConfigurationError: If the type is unknown
    """
    if storage_type == "memory":
        return MemoryTokenStorage()
    if storage_type == "file":
        return FileTokenStorage(storage_dir)
    if storage_type == "redis":
        return RedisTokenStorage(redis_url)
    raise ConfigurationError(f"Unknown token storage type: {storage_type}")


def get_storage_from_env(settings: "Settings | None" = None) -> TokenStorage:
    """
    Get the storage backend selected by configuration.

    TOKEN_STORAGE wins when set; otherwise redis is used when REDIS_URL is
    configured, and memory as a last resort.
    """
    if settings is None:
        from fortnox_mcp.config import get_settings

        settings = get_settings()

    if settings.token_storage:
        logger.info("Using %s token storage", settings.token_storage)
        return create_token_storage(
            settings.token_storage,
            storage_dir=settings.token_storage_dir,
            redis_url=settings.redis_url,
        )

    if settings.redis_url:
        logger.info("REDIS_URL detected, using redis token storage")
        return RedisTokenStorage(settings.redis_url)

    logger.warning("Using in-memory token storage. Tokens will be lost on restart.")
    return MemoryTokenStorage()


__all__ = [
    "FileTokenStorage",
    "MemoryTokenStorage",
    "RedisTokenStorage",
    "TokenStorage",
    "create_token_storage",
    "get_storage_from_env",
]

"""Authentication and token management for the Fortnox MCP server."""

from .context import get_current_subject_id, subject_context, subject_id_ctx
from .credentials import CredentialSet, TokenResponse
from .providers import (
    DatabaseTokenProvider,
    EnvTokenProvider,
    OAuthProxyProvider,
    TokenProvider,
)
from .registry import (
    ProviderRegistry,
    create_token_provider,
    get_registry,
    get_token_provider,
    initialize_token_provider,
    reset_token_provider,
)
from .storage import (
    FileTokenStorage,
    MemoryTokenStorage,
    RedisTokenStorage,
    TokenStorage,
    create_token_storage,
    get_storage_from_env,
)

__all__ = [
    "CredentialSet",
    "DatabaseTokenProvider",
    "EnvTokenProvider",
    "FileTokenStorage",
    "MemoryTokenStorage",
    "OAuthProxyProvider",
    "ProviderRegistry",
    "RedisTokenStorage",
    "TokenProvider",
    "TokenResponse",
    "TokenStorage",
    "create_token_provider",
    "create_token_storage",
    "get_current_subject_id",
    "get_registry",
    "get_storage_from_env",
    "get_token_provider",
    "initialize_token_provider",
    "reset_token_provider",
    "subject_context",
    "subject_id_ctx",
]

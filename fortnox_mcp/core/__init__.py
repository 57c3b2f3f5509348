"""Core functionality for the Fortnox MCP server."""

from .constants import (
    CHARACTER_LIMIT,
    DEFAULT_PAGE_SIZE,
    FORTNOX_API_BASE_URL,
    FORTNOX_OAUTH_URL,
    MAX_PAGE_SIZE,
    RATE_LIMIT_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
    TOKEN_REFRESH_BUFFER_SECONDS,
)
from .decorators import track_request
from .exceptions import (
    AuthError,
    FortnoxMCPError,
    MCPToolError,
    MissingConfigurationError,
)
from .logging import configure_logging, logger

__all__ = [
    # Core
    "AuthError",
    "FortnoxMCPError",
    "MCPToolError",
    "MissingConfigurationError",
    "configure_logging",
    "logger",
    "track_request",
    # Constants - most commonly used
    "CHARACTER_LIMIT",
    "DEFAULT_PAGE_SIZE",
    "FORTNOX_API_BASE_URL",
    "FORTNOX_OAUTH_URL",
    "MAX_PAGE_SIZE",
    "RATE_LIMIT_REQUESTS",
    "RATE_LIMIT_WINDOW_SECONDS",
    "TOKEN_REFRESH_BUFFER_SECONDS",
]

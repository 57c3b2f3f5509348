"""Translation of provider and API errors into tool errors."""

import logging

from fortnox_mcp.core.exceptions import (
    AuthError,
    ConfigurationError,
    FortnoxMCPError,
    MCPToolError,
    QuotaExceededError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)

# JSON-RPC server error codes
AUTH_ERROR_CODE = -32001
RATE_LIMIT_ERROR_CODE = -32002
UPSTREAM_ERROR_CODE = -32003


def to_tool_error(error: Exception, action: str) -> MCPToolError:
    """Wrap an error raised while running a tool, keeping its category visible."""
    if isinstance(error, MCPToolError):
        return error
    if isinstance(error, AuthError):
        return MCPToolError(f"{action} failed: not authorized. {error}", code=AUTH_ERROR_CODE)
    if isinstance(error, QuotaExceededError):
        return MCPToolError(f"{action} failed: {error}", code=RATE_LIMIT_ERROR_CODE)
    if isinstance(error, UpstreamUnavailableError):
        return MCPToolError(
            f"{action} failed: Fortnox is unavailable. {error}",
            code=UPSTREAM_ERROR_CODE,
        )
    if isinstance(error, ConfigurationError):
        return MCPToolError(f"{action} failed: server misconfigured. {error}")
    if isinstance(error, FortnoxMCPError):
        return MCPToolError(f"{action} failed: {error}")

    logger.exception("Unexpected error during %s", action)
    return MCPToolError(f"{action} failed: {error!s}")

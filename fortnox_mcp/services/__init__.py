"""Services for the Fortnox MCP server: rate limiting, API access, formatting.

Import the API client from ``fortnox_mcp.services.api``.
"""

from .formatters import (
    build_pagination_meta,
    clamp_page_size,
    format_detail_markdown,
    format_pagination_info,
    to_json,
    truncate_response,
)
from .rate_limiter import FixedWindowRateLimiter, RateWindow, get_rate_limiter, reset_rate_limiter

__all__ = [
    "FixedWindowRateLimiter",
    "RateWindow",
    "build_pagination_meta",
    "clamp_page_size",
    "format_detail_markdown",
    "format_pagination_info",
    "get_rate_limiter",
    "reset_rate_limiter",
    "to_json",
    "truncate_response",
]

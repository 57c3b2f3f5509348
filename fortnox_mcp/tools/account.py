"""
Authorization status tools for MCP server.

- fortnox_auth_status: Expiry and scope of the caller's Fortnox credentials
"""

import json
import logging
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastmcp import FastMCP

from fortnox_mcp.auth.context import get_current_subject_id
from fortnox_mcp.auth.registry import get_token_provider
from fortnox_mcp.core import track_request

from .errors import to_tool_error

logger = logging.getLogger(__name__)


def register_account_tools(mcp: "FastMCP") -> None:
    """
    Register authorization status tools.

    Args:
        mcp: FastMCP instance to register tools with
    """

    @mcp.tool()
    @track_request("fortnox_auth_status")
    async def fortnox_auth_status() -> str:
        """
        Show whether this session holds Fortnox credentials and when they expire.

        Never returns the tokens themselves.

        Returns:
            JSON with authenticated flag, expiry, seconds remaining, scope and
            whether the credentials can be refreshed automatically.
        """
        subject_id = get_current_subject_id()
        try:
            credentials = await get_token_provider().get_credentials(subject_id)
        except Exception as e:
            raise to_tool_error(e, "Auth status") from e

        if credentials is None:
            return json.dumps({"authenticated": False}, indent=2)

        now = time.time()
        return json.dumps(
            {
                "authenticated": not credentials.is_expired(now),
                "expires_at": credentials.expires_at,
                "expires_in_seconds": max(0, int(credentials.seconds_remaining(now))),
                "scope": credentials.scope,
                "refreshable": credentials.is_refreshable,
            },
            indent=2,
        )

"""
Route and middleware registration for the FastMCP server.

Separates registration (this module) from route handlers (routes.py):
closure adapters inject the OAuth provider into each handler.
"""

from typing import TYPE_CHECKING

from starlette.middleware import Middleware

from fortnox_mcp.core import logger

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from .providers import OAuthProxyProvider


def setup_health_route(mcp: "FastMCP", mode: str) -> None:
    """Register the public /health endpoint."""
    from .routes import health

    @mcp.custom_route("/health", methods=["GET"])
    async def _health(request):
        """Health check."""
        return await health(request, mode)


def setup_oauth_routes(mcp: "FastMCP", oauth_provider: "OAuthProxyProvider") -> None:
    """
    Register the OAuth proxy endpoints with FastMCP server.

    Registers:
    - /oauth/fortnox/authorize (GET)
    - /oauth/fortnox/callback (GET)
    - /oauth/token (POST, session refresh)
    - /oauth/revoke (POST)

    Args:
        mcp: FastMCP server instance
        oauth_provider: OAuthProxyProvider handling the flow
    """
    from .routes import authorize, fortnox_callback, revoke_endpoint, token_endpoint

    @mcp.custom_route("/oauth/fortnox/authorize", methods=["GET"])
    async def _authorize(request):
        """Redirect to Fortnox consent."""
        return await authorize(request, oauth_provider)

    @mcp.custom_route("/oauth/fortnox/callback", methods=["GET"])
    async def _fortnox_callback(request):
        """Fortnox redirect target."""
        return await fortnox_callback(request, oauth_provider)

    @mcp.custom_route("/oauth/token", methods=["POST"])
    async def _token_endpoint(request):
        """Session token refresh."""
        return await token_endpoint(request, oauth_provider)

    @mcp.custom_route("/oauth/revoke", methods=["POST"])
    async def _revoke_endpoint(request):
        """Session revocation."""
        return await revoke_endpoint(request, oauth_provider)

    logger.info("OAuth endpoints registered (4 routes)")


def setup_middleware(oauth_provider: "OAuthProxyProvider | None" = None) -> list[Middleware]:
    """
    Configure authentication middleware.

    Args:
        oauth_provider: Provider validating session tokens; None in local mode

    Returns:
        List of configured Middleware instances
    """
    middleware = []

    if oauth_provider is not None:
        from .middleware import SessionAuthMiddleware

        middleware.append(Middleware(SessionAuthMiddleware, oauth_provider=oauth_provider))
        logger.info("Session token authentication enabled")
    else:
        logger.warning("No authentication middleware configured")

    return middleware

"""
Main entry point for the Fortnox MCP server.

Local mode serves a single tenant over stdio (or HTTP) with the token from
the environment. Remote mode serves many tenants over HTTP, proxying
authorization to Fortnox and issuing its own session tokens.
"""

import asyncio
import sys
import traceback

from fastmcp import FastMCP
from starlette.middleware import Middleware

from fortnox_mcp.auth import (
    EnvTokenProvider,
    OAuthProxyProvider,
    get_storage_from_env,
    initialize_token_provider,
)
from fortnox_mcp.auth.setup import setup_health_route, setup_middleware, setup_oauth_routes
from fortnox_mcp.config import Settings, get_settings
from fortnox_mcp.core import logger
from fortnox_mcp.core.exceptions import MissingConfigurationError
from fortnox_mcp.tools import register_tools

SERVER_NAME = "Fortnox MCP Server"


def create_mcp_server(settings: Settings) -> tuple[FastMCP, list[Middleware]]:
    """
    Build the FastMCP server and its HTTP middleware for the configured mode.

    Initializes the token provider registry as a side effect.

    Raises:
        MissingConfigurationError: If the mode's required settings are absent
    """
    settings.validate_for_mode()

    mcp = FastMCP(SERVER_NAME)
    setup_health_route(mcp, settings.auth_mode)

    oauth_provider: OAuthProxyProvider | None = None
    if settings.auth_mode == "remote":
        logger.info("Configuring remote mode (OAuth proxy)...")
        storage = get_storage_from_env(settings)
        oauth_provider = OAuthProxyProvider.from_settings(settings, storage)
        initialize_token_provider(oauth_provider.token_provider)
        setup_oauth_routes(mcp, oauth_provider)
        logger.info("  - Issuer: %s", settings.server_url)
        logger.info("  - Callback: %s", oauth_provider.callback_url)
    else:
        logger.info("Configuring local mode (environment credentials)...")
        env_provider = EnvTokenProvider.from_settings(settings)
        initialize_token_provider(env_provider)

    register_tools(mcp)
    middleware = setup_middleware(oauth_provider)

    logger.info("FastMCP server initialized (auth mode: %s)", settings.auth_mode)
    return mcp, middleware


async def main() -> None:
    """
    Main async function to run the MCP server.
    """
    settings = get_settings()
    logger.debug("Settings: %s", settings.to_dict())

    try:
        mcp, middleware = create_mcp_server(settings)
    except MissingConfigurationError as e:
        logger.error("Configuration error: %s", e)
        raise

    # Flush output before starting server
    sys.stdout.flush()
    sys.stderr.flush()

    if settings.transport == "http":
        logger.info("Setting up HTTP server on %s:%s...", settings.host, settings.port)
        await mcp.run_async(
            transport="http",
            host=settings.host,
            port=settings.port,
            middleware=middleware,
        )
    else:
        logger.info("Setting up stdio server...")
        await mcp.run_async(transport="stdio")


def run() -> None:
    """Console script entry point."""
    try:
        logger.info("Starting %s...", SERVER_NAME)
        asyncio.run(main())
    except MissingConfigurationError:
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Shutting down")
    except Exception as e:
        logger.error("Error in main: %s", e)
        logger.error("Traceback: %s", traceback.format_exc())
        sys.exit(1)


if __name__ == "__main__":
    run()

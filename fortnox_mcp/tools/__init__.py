"""
MCP Tools Package.

Tools organized by category:
- company: Company information
- customers: Customer listing
- account: Authorization status of the caller

Each module provides a register_*_tools() function to register tools with FastMCP.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastmcp import FastMCP

from .account import register_account_tools
from .company import register_company_tools
from .customers import register_customer_tools

logger = logging.getLogger(__name__)


def register_tools(mcp: "FastMCP") -> None:
    """
    Register all MCP tools with the FastMCP instance.

    Args:
        mcp: FastMCP instance to register tools with
    """
    logger.info("Registering all MCP tools...")

    register_company_tools(mcp)
    register_customer_tools(mcp)
    register_account_tools(mcp)

    logger.info("All MCP tools registered successfully")


__all__ = [
    "register_account_tools",
    "register_company_tools",
    "register_customer_tools",
    "register_tools",
]

"""
Customer tools for MCP server.

- fortnox_list_customers: Paginated customer listing with filters
"""

import logging
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from fastmcp import FastMCP

from fortnox_mcp.core import track_request
from fortnox_mcp.services.api import fortnox_request
from fortnox_mcp.services.formatters import (
    build_pagination_meta,
    clamp_page_size,
    format_pagination_info,
    to_json,
    truncate_response,
)

from .errors import to_tool_error

logger = logging.getLogger(__name__)


def register_customer_tools(mcp: "FastMCP") -> None:
    """
    Register customer tools.

    Args:
        mcp: FastMCP instance to register tools with
    """

    @mcp.tool()
    @track_request("fortnox_list_customers")
    async def fortnox_list_customers(
        limit: int = 20,
        page: int = 1,
        filter: Literal["active", "inactive"] | None = None,
        search_name: str | None = None,
        customer_number: str | None = None,
        organisation_number: str | None = None,
        response_format: Literal["markdown", "json"] = "markdown",
    ) -> str:
        """
        List customers from Fortnox accounting system.

        Retrieves a paginated list of customers with optional filtering by
        status, name, or customer number.

        Args:
            limit: Max results per page, 1-100 (default: 20)
            page: Page number for pagination (default: 1)
            filter: Filter by customer status ('active' or 'inactive')
            search_name: Search customers by name (partial match)
            customer_number: Filter by specific customer number
            organisation_number: Filter by organisation number
            response_format: Output format, 'markdown' or 'json'

        Returns:
            List of customers with customer number, name, email, city, and
            organisation number.
        """
        limit = clamp_page_size(limit)
        page = max(1, page)

        try:
            data = await fortnox_request(
                "/3/customers",
                params={
                    "limit": limit,
                    "page": page,
                    "filter": filter,
                    "name": search_name,
                    "customernumber": customer_number,
                    "organisationnumber": organisation_number,
                },
            )
        except Exception as e:
            raise to_tool_error(e, "List customers") from e

        customers = data.get("Customers", [])
        meta = data.get("MetaInformation", {})
        total = meta.get("@TotalResources", len(customers))
        pagination = build_pagination_meta(total, page, limit, len(customers))

        if response_format == "json":
            return to_json({"customers": customers, **pagination})

        if not customers:
            return "No customers found."

        lines = ["# Customers", "", format_pagination_info(total, page, limit, len(customers)), ""]
        for customer in customers:
            lines.append(f"## {customer.get('Name', '-')} ({customer.get('CustomerNumber', '-')})")
            for label, key in (
                ("Email", "Email"),
                ("City", "City"),
                ("Organisation Number", "OrganisationNumber"),
            ):
                if customer.get(key):
                    lines.append(f"- **{label}**: {customer[key]}")
            lines.append("")
        if pagination["has_more"]:
            lines.append(f"More results available. Use page={page + 1} to see the next page.")

        return truncate_response("\n".join(lines))

"""
Company information tools for MCP server.

- fortnox_get_company_info: Details of the company behind the credentials
"""

import logging
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from fastmcp import FastMCP

from fortnox_mcp.core import track_request
from fortnox_mcp.services.api import fortnox_request
from fortnox_mcp.services.formatters import format_detail_markdown, to_json

from .errors import to_tool_error

logger = logging.getLogger(__name__)


def register_company_tools(mcp: "FastMCP") -> None:
    """
    Register company information tools.

    Args:
        mcp: FastMCP instance to register tools with
    """

    @mcp.tool()
    @track_request("fortnox_get_company_info")
    async def fortnox_get_company_info(
        response_format: Literal["markdown", "json"] = "markdown",
    ) -> str:
        """
        Retrieve information about the company connected to this Fortnox account.

        Returns company name, organisation number, addresses, contact details,
        and other company information.

        Args:
            response_format: Output format, 'markdown' or 'json'

        Returns:
            Company details including name, organisation number, address, and
            contact information.
        """
        try:
            data = await fortnox_request("/3/companyinformation")
        except Exception as e:
            raise to_tool_error(e, "Get company info") from e

        company = data.get("CompanyInformation", {})
        if response_format == "json":
            return to_json(company)

        return format_detail_markdown(
            company.get("CompanyName") or "Company Information",
            {
                "Organisation Number": company.get("OrganizationNumber"),
                "Address": company.get("Address"),
                "Zip Code": company.get("ZipCode"),
                "City": company.get("City"),
                "Country": company.get("Country"),
                "Email": company.get("Email"),
                "Phone": company.get("Phone1"),
                "Website": company.get("WWW"),
                "Database Number": company.get("DatabaseNumber"),
            },
        )

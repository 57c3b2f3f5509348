"""
Fortnox MCP Server - MCP tools for the Fortnox accounting API.

This package provides the token provider layer that lets the server run
either with locally configured credentials or as a multi-tenant OAuth proxy
in front of the Fortnox authorization service.
"""

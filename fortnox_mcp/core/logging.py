"""Logging configuration for the Fortnox MCP server.

Every record carries the id of the tool request it belongs to. Logs go to
stderr: stdout carries the stdio MCP transport.
"""

import logging
import os
import sys
from contextvars import ContextVar

PACKAGE_LOGGER = "fortnox_mcp"
LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(request_id)s%(message)s"

# Id of the tool request being served, set by track_request
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


class RequestIdFilter(logging.Filter):
    """Adds ``request_id`` to log records."""

    def filter(self, record):
        request_id = request_id_ctx.get()
        record.request_id = f"[{request_id}] " if request_id else ""
        return True


def _debug_enabled() -> bool:
    return os.getenv("MCP_DEBUG", "").lower() in ("true", "1", "yes")


def configure_logging() -> logging.Logger:
    """Configure stderr logging and return the package logger.

    Safe to call more than once; the request id filter is attached once per
    handler.
    """
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    for handler in logging.root.handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())

    # Module loggers (fortnox_mcp.*) inherit this level
    logger = logging.getLogger(PACKAGE_LOGGER)
    if _debug_enabled():
        logger.setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled")

    # httpx logs every request URL at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger


def mask_token(token: str | None) -> str:
    """Shorten a secret so it can appear in log lines."""
    if not token:
        return "<none>"
    if len(token) <= 8:
        return "****"
    return f"{token[:4]}...{token[-4:]}"


logger = configure_logging()

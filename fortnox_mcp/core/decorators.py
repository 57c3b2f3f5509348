"""Decorators for the Fortnox MCP server."""

import functools
import time
import traceback
import uuid
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from .exceptions import AuthError, MCPToolError, UpstreamError
from .logging import logger, request_id_ctx

P = ParamSpec("P")
R = TypeVar("R")


def _describe_failure(error: BaseException) -> tuple[str, bool]:
    """Classify a tool failure as (category, is_server_fault)."""
    cause = error.__cause__ if isinstance(error, MCPToolError) and error.__cause__ else error
    if isinstance(cause, AuthError):
        return "authorization", False
    if isinstance(cause, UpstreamError):
        return "upstream", False
    return "error", True


def track_request(
    tool_name: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator to track MCP tool requests with timing and error handling.

    Authorization and upstream failures are logged as warnings: they are
    the caller's or Fortnox's problem, not a server fault.

    Args:
        tool_name: Name of the tool being tracked

    Returns:
        Decorated function with request tracking
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            token = request_id_ctx.set(uuid.uuid4().hex[:8])
            start = time.perf_counter()

            logger.info("Starting %s request", tool_name)
            logger.debug("Arguments: %s", kwargs)

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                duration_ms = (time.perf_counter() - start) * 1000
                category, server_fault = _describe_failure(e)
                if server_fault:
                    logger.error("Failed %s after %.0fms: %s", tool_name, duration_ms, e)
                    logger.debug("Traceback: %s", traceback.format_exc())
                else:
                    logger.warning(
                        "Failed %s after %.0fms (%s): %s",
                        tool_name,
                        duration_ms,
                        category,
                        e,
                    )
                raise
            else:
                duration_ms = (time.perf_counter() - start) * 1000
                logger.info("Completed %s in %.0fms", tool_name, duration_ms)
                return result
            finally:
                request_id_ctx.reset(token)

        return wrapper

    return decorator

"""Request-scoped subject propagation.

The HTTP middleware resolves the caller's subject and stores it here so that
tools, which only see their own arguments, can look it up.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

subject_id_ctx: ContextVar[str | None] = ContextVar("subject_id", default=None)


def get_current_subject_id() -> str | None:
    """Get the subject of the request being served, if any."""
    subject_id = subject_id_ctx.get()
    if subject_id:
        return subject_id

    # Fall back to the HTTP request FastMCP is handling
    try:
        from fastmcp.server.dependencies import get_http_request

        request = get_http_request()
    except RuntimeError:
        return None
    return getattr(request.state, "subject_id", None)


@contextmanager
def subject_context(subject_id: str | None) -> Iterator[None]:
    """Run a block with ``subject_id`` as the current subject."""
    token = subject_id_ctx.set(subject_id)
    try:
        yield
    finally:
        subject_id_ctx.reset(token)

"""
Session token authentication middleware for the remote HTTP server.

Resolves the Bearer session token on every protected request to a subject
and makes it available to tools through the request context.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from fortnox_mcp.core.constants import OAUTH_PATH_PREFIX, PUBLIC_PATHS
from fortnox_mcp.core.exceptions import (
    AuthError,
    FortnoxMCPError,
    InvalidRequestError,
    QuotaExceededError,
    UpstreamUnavailableError,
)

from .context import subject_id_ctx
from .providers import OAuthProxyProvider

logger = logging.getLogger(__name__)


def error_response(error: Exception) -> JSONResponse:
    """Translate a provider error into an HTTP JSON response.

    Authorization failures map to 401, rate limiting to 429, rejected client
    requests to 400, unreachable upstream to 503 and everything else to 500.
    """
    if isinstance(error, AuthError):
        return unauthorized_response(str(error))

    if isinstance(error, QuotaExceededError):
        return JSONResponse(
            {"error": "rate_limited", "message": str(error), "retry_after": error.retry_after},
            status_code=429,
            headers={"Retry-After": str(max(1, round(error.retry_after)))},
        )

    if isinstance(error, InvalidRequestError):
        return JSONResponse(
            {"error": "invalid_request", "message": str(error)},
            status_code=400,
        )

    if isinstance(error, UpstreamUnavailableError):
        return JSONResponse(
            {"error": "upstream_unavailable", "message": str(error)},
            status_code=503,
        )

    if isinstance(error, FortnoxMCPError):
        message = str(error)
    else:
        logger.exception("Unhandled error: %s", error)
        message = "Internal server error"
    return JSONResponse({"error": "server_error", "message": message}, status_code=500)


def unauthorized_response(message: str) -> JSONResponse:
    """Create 401 Unauthorized response with WWW-Authenticate header."""
    return JSONResponse(
        {
            "error": "Unauthorized",
            "message": message,
        },
        status_code=401,
        headers={"WWW-Authenticate": 'Bearer realm="fortnox-mcp"'},
    )


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """
    Middleware requiring a valid session token outside public paths.

    Bypassed:
    - OPTIONS requests (CORS preflight), answered with 200
    - Health checks
    - /oauth/* (the authorization flow itself)
    """

    def __init__(self, app, oauth_provider: OAuthProxyProvider):
        """
        Initialize middleware.

        Args:
            app: ASGI application
            oauth_provider: Provider that validates session tokens
        """
        super().__init__(app)
        self.oauth_provider = oauth_provider

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=200)

        path = request.url.path
        if path in PUBLIC_PATHS or path.startswith(OAUTH_PATH_PREFIX):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return unauthorized_response("Missing or invalid Authorization header")

        try:
            subject_id = self.oauth_provider.get_user_id_from_auth(auth_header)
        except AuthError as e:
            logger.debug("Rejected session token: %s", e)
            return unauthorized_response(str(e))

        request.state.subject_id = subject_id
        token = subject_id_ctx.set(subject_id)
        try:
            return await call_next(request)
        finally:
            subject_id_ctx.reset(token)

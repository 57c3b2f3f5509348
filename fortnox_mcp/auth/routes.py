"""
OAuth endpoints for the remote server using Starlette.

Implements:
- Authorization start (redirect to Fortnox)
- Fortnox callback (code exchange, session token issuance)
- Session token refresh
- Revocation
- Health check
"""

import logging
from urllib.parse import urlencode

from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse

from fortnox_mcp.core.exceptions import (
    AuthError,
    FortnoxMCPError,
    InvalidRequestError,
    InvalidSessionTokenError,
)

from .middleware import error_response
from .providers import OAuthProxyProvider

logger = logging.getLogger(__name__)


async def authorize(request: Request, oauth_provider: OAuthProxyProvider):
    """Start the Fortnox authorization flow."""
    params = request.query_params
    try:
        url = oauth_provider.begin_authorization(
            redirect_uri=params.get("redirect_uri"),
            client_state=params.get("state"),
            client_id=params.get("client_id"),
        )
    except InvalidRequestError as e:
        return JSONResponse(
            {"error": "invalid_request", "error_description": str(e)},
            status_code=400,
        )
    return RedirectResponse(url, status_code=302)


async def fortnox_callback(request: Request, oauth_provider: OAuthProxyProvider):
    """Handle the redirect back from Fortnox."""
    params = request.query_params

    error = params.get("error")
    if error:
        logger.warning("Fortnox authorization denied: %s", error)
        return JSONResponse(
            {"error": error, "error_description": params.get("error_description", "")},
            status_code=400,
        )

    code = params.get("code")
    state = params.get("state")
    if not code or not state:
        return JSONResponse(
            {"error": "invalid_request", "error_description": "Missing code or state"},
            status_code=400,
        )

    try:
        result = await oauth_provider.handle_callback(code, state)
    except AuthError as e:
        return JSONResponse(
            {"error": "access_denied", "error_description": str(e)},
            status_code=400,
        )
    except FortnoxMCPError as e:
        return error_response(e)

    tokens = result["tokens"]
    redirect_uri = result["redirect_uri"]
    if redirect_uri:
        fragment = dict(tokens)
        if result["state"]:
            fragment["state"] = result["state"]
        return RedirectResponse(f"{redirect_uri}#{urlencode(fragment)}", status_code=302)

    body = dict(tokens)
    if result["state"]:
        body["state"] = result["state"]
    return JSONResponse(body)


async def token_endpoint(request: Request, oauth_provider: OAuthProxyProvider):
    """Token endpoint - exchanges a session refresh token for a new pair."""
    form = await request.form()
    grant_type = form.get("grant_type")
    refresh_token = form.get("refresh_token")

    if grant_type != "refresh_token":
        return JSONResponse({"error": "unsupported_grant_type"}, status_code=400)
    if not refresh_token:
        return JSONResponse(
            {"error": "invalid_request", "error_description": "Missing refresh_token"},
            status_code=400,
        )

    try:
        tokens = await oauth_provider.refresh_session(refresh_token)
    except AuthError as e:
        return JSONResponse(
            {"error": "invalid_grant", "error_description": str(e)},
            status_code=400,
        )
    except FortnoxMCPError as e:
        return error_response(e)

    return JSONResponse(tokens)


async def revoke_endpoint(request: Request, oauth_provider: OAuthProxyProvider):
    """Revoke the subject behind a session token.

    Answers 200 for unknown or invalid tokens too (RFC 7009).
    """
    form = await request.form()
    token = form.get("token")
    if not token:
        return JSONResponse(
            {"error": "invalid_request", "error_description": "Missing token"},
            status_code=400,
        )

    try:
        claims = oauth_provider.verify_session_token(token, expected_type=None)
    except InvalidSessionTokenError:
        logger.debug("Ignoring revocation of invalid token")
        return JSONResponse({})

    oauth_provider.revoke_session_token(token)
    try:
        await oauth_provider.revoke(claims["sub"])
    except FortnoxMCPError as e:
        return error_response(e)
    return JSONResponse({})


async def health(request: Request, mode: str):
    """Liveness probe."""
    return JSONResponse({"status": "ok", "mode": mode})

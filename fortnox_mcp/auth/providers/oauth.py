"""
OAuth proxy provider for remote (multi-tenant) mode.

Proxies authorization to Fortnox and issues its own session tokens to MCP
clients.

Flow:
1. The client opens /oauth/fortnox/authorize on this server
2. We redirect to the Fortnox consent page with a one-time state
3. Fortnox redirects back to /oauth/fortnox/callback with a code
4. We exchange the code, store the Fortnox credentials under a new subject
   and hand the client a pair of signed session tokens
5. The client sends the session access token as a Bearer token; we resolve
   it to the subject and use the stored Fortnox credentials for API calls
"""

import logging
import secrets
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode, urlsplit

import httpx
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError

from fortnox_mcp.auth.credentials import CredentialSet, TokenResponse
from fortnox_mcp.auth.storage import TokenStorage
from fortnox_mcp.core.constants import (
    FORTNOX_AUTHORIZE_URL,
    FORTNOX_DEFAULT_SCOPES,
    FORTNOX_TOKEN_URL,
    PENDING_AUTHORIZATION_MAX_AGE_SECONDS,
    REFRESH_TIMEOUT_DEFAULT,
    SESSION_ACCESS_TOKEN_EXPIRES_IN,
    SESSION_JWT_ALGORITHM,
    SESSION_REFRESH_TOKEN_EXPIRES_IN,
)
from fortnox_mcp.core.exceptions import (
    AuthError,
    ExpiredCredentialError,
    InvalidRequestError,
    InvalidSessionTokenError,
    MissingConfigurationError,
    QuotaExceededError,
    RefreshFailedError,
    UnknownSubjectError,
    UpstreamUnavailableError,
)
from fortnox_mcp.core.logging import mask_token
from fortnox_mcp.services.rate_limiter import FixedWindowRateLimiter, get_rate_limiter

from .database import DatabaseTokenProvider

if TYPE_CHECKING:
    from fortnox_mcp.config import Settings

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/oauth/fortnox/callback"
DEFAULT_CLIENT_ID = "mcp-client"


@dataclass
class PendingAuthorization:
    """Authorization started on this server, waiting for the Fortnox callback."""

    state: str
    client_id: str = DEFAULT_CLIENT_ID
    redirect_uri: str | None = None
    client_state: str | None = None
    created_at: float = field(default_factory=time.time)


class OAuthProxyProvider:
    """
    Fortnox OAuth client and session token issuer.

    Owns the refresh handshake used by its DatabaseTokenProvider and answers
    ``get_access_token`` by delegating to it.
    """

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        jwt_secret: str,
        server_url: str,
        storage: TokenStorage,
        scopes: list[str] | None = None,
        rate_limiter: FixedWindowRateLimiter | None = None,
        http_client: httpx.AsyncClient | None = None,
        refresh_timeout: float = REFRESH_TIMEOUT_DEFAULT,
        token_url: str = FORTNOX_TOKEN_URL,
        authorize_url: str = FORTNOX_AUTHORIZE_URL,
        allowed_redirect_uris: list[str] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the OAuth proxy.

        Args:
            client_id: Fortnox app client ID
            client_secret: Fortnox app client secret
            jwt_secret: Secret for signing session tokens
            server_url: Public URL of this server (session token issuer)
            storage: Where subject credentials are persisted
            scopes: Scopes requested during authorization
            rate_limiter: Limiter guarding the token endpoint (process-wide by default)
            http_client: Shared client; a short-lived one is used per call when omitted
            refresh_timeout: Timeout in seconds for token endpoint calls
            allowed_redirect_uris: Client redirect URIs session tokens may be
                delivered to; when empty, only URIs on the server's own origin
        """
        self.client_id = client_id
        self._client_secret = client_secret
        self._jwt_secret = jwt_secret
        self.server_url = server_url.rstrip("/")
        self.scopes = scopes or list(FORTNOX_DEFAULT_SCOPES)
        self._rate_limiter = rate_limiter
        self._http_client = http_client
        self.refresh_timeout = refresh_timeout
        self.token_url = token_url
        self.authorize_url = authorize_url
        self.allowed_redirect_uris = list(allowed_redirect_uris or [])
        self._clock = clock

        self._token_provider = DatabaseTokenProvider(storage, refresher=self, clock=clock)

        # In-memory state; a restart invalidates pending authorizations
        self._pending: dict[str, PendingAuthorization] = {}
        # jti -> exp of revoked session tokens, dropped once the token expires
        self._revoked_tokens: dict[str, float] = {}
        self._revoked_subjects: set[str] = set()

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        storage: TokenStorage,
        **kwargs: Any,
    ) -> "OAuthProxyProvider":
        """
        Build the proxy from remote-mode settings.

        Raises:
            MissingConfigurationError: If any remote-mode variable is absent
        """
        required = {
            "SERVER_URL": settings.server_url,
            "JWT_SECRET": settings.jwt_secret,
            "FORTNOX_CLIENT_ID": settings.fortnox_client_id,
            "FORTNOX_CLIENT_SECRET": settings.fortnox_client_secret,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise MissingConfigurationError(missing)

        return cls(
            client_id=settings.fortnox_client_id,
            client_secret=settings.fortnox_client_secret,
            jwt_secret=settings.jwt_secret,
            server_url=settings.server_url,
            storage=storage,
            scopes=settings.get_scopes_list(),
            refresh_timeout=settings.refresh_timeout,
            allowed_redirect_uris=settings.get_allowed_redirect_uris(),
            **kwargs,
        )

    @property
    def token_provider(self) -> DatabaseTokenProvider:
        """The database provider API callers should use."""
        return self._token_provider

    @property
    def callback_url(self) -> str:
        return f"{self.server_url}{CALLBACK_PATH}"

    @property
    def rate_limiter(self) -> FixedWindowRateLimiter:
        return self._rate_limiter or get_rate_limiter()

    # ========================================
    # Token provider interface
    # ========================================

    async def get_access_token(self, subject_id: str | None = None) -> str:
        return await self._token_provider.get_access_token(subject_id)

    async def get_credentials(self, subject_id: str | None = None) -> CredentialSet | None:
        return await self._token_provider.get_credentials(subject_id)

    # ========================================
    # Fortnox token endpoint
    # ========================================

    async def refresh(self, credentials: CredentialSet) -> CredentialSet:
        """
        Exchange the set's refresh token for a new credential set.

        Does not write storage.

        Raises:
            ExpiredCredentialError: If the set carries no refresh token
            QuotaExceededError: If the rate limiter refuses the call
            RefreshFailedError: If Fortnox rejects the refresh token
            UpstreamUnavailableError: On timeout, network or server error
        """
        if not credentials.is_refreshable:
            raise ExpiredCredentialError(
                f"Credentials for subject {credentials.subject_id} have no refresh token",
            )

        response = await self._post_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": credentials.refresh_token,
            },
            context="Token refresh failed",
            error_cls=RefreshFailedError,
        )
        return response.to_credentials(
            credentials.subject_id,
            now=self._clock(),
            previous_refresh_token=credentials.refresh_token,
        )

    async def exchange_authorization_code(
        self,
        code: str,
        redirect_uri: str,
        subject_id: str,
    ) -> CredentialSet:
        """Exchange a Fortnox authorization code and store the resulting credentials."""
        response = await self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
            },
            context="Authorization code exchange failed",
            error_cls=AuthError,
        )
        credentials = response.to_credentials(subject_id, now=self._clock())
        await self._token_provider.store_credentials(credentials)
        return credentials

    async def _post_token(
        self,
        form: dict[str, str],
        *,
        context: str,
        error_cls: type[AuthError],
    ) -> TokenResponse:
        # Fail fast; callers waiting on a refresh should not queue behind API traffic
        await self.rate_limiter.admit()

        try:
            if self._http_client is not None:
                response = await self._send_token_request(self._http_client, form)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._send_token_request(client, form)
        except httpx.TimeoutException as e:
            raise UpstreamUnavailableError(f"{context}: request to Fortnox timed out") from e
        except httpx.TransportError as e:
            raise UpstreamUnavailableError(
                f"{context}: unable to reach Fortnox ({e.__class__.__name__})",
            ) from e

        status = response.status_code
        if status == 429:
            retry_after = _parse_retry_after(
                response.headers.get("Retry-After"),
                default=self.rate_limiter.window_seconds,
            )
            raise QuotaExceededError(
                retry_after,
                f"{context}: Fortnox rate limit exceeded. Retry in {retry_after:.0f}s",
            )
        if status >= 500:
            raise UpstreamUnavailableError(f"{context}: Fortnox returned {status}")
        if status >= 400:
            description = _error_description(response)
            if error_cls is RefreshFailedError:
                raise RefreshFailedError(
                    f"{context}: {description}. The refresh token may be expired or revoked.",
                    status_code=status,
                )
            raise error_cls(f"{context}: {description}")

        try:
            token_response = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise error_cls(f"{context}: malformed token response from Fortnox") from e

        logger.debug("Token endpoint issued %s", mask_token(token_response.access_token))
        return token_response

    async def _send_token_request(
        self,
        client: httpx.AsyncClient,
        form: dict[str, str],
    ) -> httpx.Response:
        return await client.post(
            self.token_url,
            data=form,
            auth=(self.client_id, self._client_secret),
            headers={"Accept": "application/json"},
            timeout=self.refresh_timeout,
        )

    # ========================================
    # Authorization flow
    # ========================================

    def authorization_url(
        self,
        redirect_uri: str,
        scopes: list[str] | None = None,
        state: str | None = None,
    ) -> str:
        """Build the Fortnox consent URL."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "scope": " ".join(scopes or self.scopes),
            "response_type": "code",
            "access_type": "offline",
        }
        if state:
            params["state"] = state
        return f"{self.authorize_url}?{urlencode(params)}"

    def begin_authorization(
        self,
        redirect_uri: str | None = None,
        client_state: str | None = None,
        client_id: str | None = None,
    ) -> str:
        """
        Record a pending authorization and return the Fortnox URL to redirect to.

        Args:
            redirect_uri: Where the client wants the session tokens delivered
            client_state: Opaque value echoed back to the client
            client_id: Identifier of the MCP client starting the flow

        Raises:
            InvalidRequestError: If ``redirect_uri`` is not an allowed client URI
        """
        if redirect_uri is not None and not self.is_allowed_redirect_uri(redirect_uri):
            logger.warning("Rejected authorization with redirect URI %s", redirect_uri)
            raise InvalidRequestError(f"Redirect URI not allowed: {redirect_uri}")

        self._cleanup_pending()

        state = secrets.token_urlsafe(32)
        self._pending[state] = PendingAuthorization(
            state=state,
            client_id=client_id or DEFAULT_CLIENT_ID,
            redirect_uri=redirect_uri,
            client_state=client_state,
            created_at=self._clock(),
        )
        return self.authorization_url(self.callback_url, self.scopes, state)

    async def handle_callback(self, code: str, state: str) -> dict[str, Any]:
        """
        Complete the Fortnox authorization for a pending state.

        Returns:
            Dict with the issued session ``tokens``, the subject, and the
            client's ``redirect_uri``/``state`` (if it supplied them)

        Raises:
            AuthError: If the state is unknown/expired or the code exchange fails
        """
        pending = self._pending.pop(state, None)
        if pending is None:
            raise AuthError("Invalid or expired OAuth state")
        if self._clock() - pending.created_at > PENDING_AUTHORIZATION_MAX_AGE_SECONDS:
            raise AuthError("Invalid or expired OAuth state")

        subject_id = f"{pending.client_id}:{uuid.uuid4()}"
        credentials = await self.exchange_authorization_code(
            code,
            self.callback_url,
            subject_id,
        )
        logger.info("Authorized new subject %s", subject_id)

        scopes = credentials.scope.split() if credentials.scope else self.scopes
        return {
            "subject_id": subject_id,
            "tokens": self.issue_session_tokens(subject_id, pending.client_id, scopes),
            "redirect_uri": pending.redirect_uri,
            "state": pending.client_state,
        }

    def is_allowed_redirect_uri(self, redirect_uri: str) -> bool:
        """Check a client redirect URI against the allow-list.

        Listed URIs must match exactly. Without a list, the URI must share
        scheme and host with the server URL.
        """
        if self.allowed_redirect_uris:
            return redirect_uri in self.allowed_redirect_uris

        target = urlsplit(redirect_uri)
        own = urlsplit(self.server_url)
        if not target.netloc:
            return False
        return (target.scheme.lower(), target.netloc.lower()) == (
            own.scheme.lower(),
            own.netloc.lower(),
        )

    def _cleanup_pending(self) -> None:
        now = self._clock()
        expired = [
            state
            for state, pending in self._pending.items()
            if now - pending.created_at > PENDING_AUTHORIZATION_MAX_AGE_SECONDS
        ]
        for state in expired:
            del self._pending[state]

    # ========================================
    # Session tokens
    # ========================================

    def issue_session_tokens(
        self,
        subject_id: str,
        client_id: str,
        scopes: list[str],
    ) -> dict[str, Any]:
        """Issue a signed access/refresh session token pair."""
        scope = " ".join(scopes)
        access_token = self._create_session_token(
            subject_id, client_id, scope, "access", SESSION_ACCESS_TOKEN_EXPIRES_IN
        )
        refresh_token = self._create_session_token(
            subject_id, client_id, scope, "refresh", SESSION_REFRESH_TOKEN_EXPIRES_IN
        )
        return {
            "access_token": access_token,
            "token_type": "Bearer",
            "expires_in": SESSION_ACCESS_TOKEN_EXPIRES_IN,
            "refresh_token": refresh_token,
            "scope": scope,
        }

    def _create_session_token(
        self,
        subject_id: str,
        client_id: str,
        scope: str,
        token_type: str,
        expires_in: int,
    ) -> str:
        now = datetime.now(timezone.utc)
        to_encode = {
            "sub": subject_id,
            "client_id": client_id,
            "scope": scope,
            "type": token_type,
            "iss": self.server_url,
            "iat": now,
            "exp": now + timedelta(seconds=expires_in),
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(to_encode, self._jwt_secret, algorithm=SESSION_JWT_ALGORITHM)

    def verify_session_token(
        self,
        token: str,
        expected_type: str | None = "access",
    ) -> dict[str, Any]:
        """
        Validate a session token and return its claims.

        Args:
            token: The encoded JWT
            expected_type: "access", "refresh", or None to accept either

        Raises:
            InvalidSessionTokenError: If the token is invalid, expired, revoked
                or of the wrong type
        """
        if not token:
            raise InvalidSessionTokenError("Missing session token")

        try:
            claims = jwt.decode(
                token,
                self._jwt_secret,
                algorithms=[SESSION_JWT_ALGORITHM],
                issuer=self.server_url,
            )
        except ExpiredSignatureError as e:
            raise InvalidSessionTokenError("Token expired") from e
        except JWTError as e:
            raise InvalidSessionTokenError("Invalid token") from e

        if _revocation_key(claims, token) in self._revoked_tokens:
            raise InvalidSessionTokenError("Token has been revoked")
        if expected_type is not None and claims.get("type") != expected_type:
            raise InvalidSessionTokenError(f"Expected {expected_type} token")
        if not claims.get("sub"):
            raise InvalidSessionTokenError("Token has no subject")
        if claims["sub"] in self._revoked_subjects:
            raise InvalidSessionTokenError("Token has been revoked")

        return claims

    def get_user_id_from_auth(self, authorization: str | None) -> str:
        """
        Resolve the subject from an Authorization header value or raw token.

        Raises:
            InvalidSessionTokenError: If the token does not validate
        """
        if not authorization:
            raise InvalidSessionTokenError("Missing session token")

        token = authorization.strip()
        if token[:7].lower() == "bearer ":
            token = token[7:].strip()

        return self.verify_session_token(token, "access")["sub"]

    async def refresh_session(self, refresh_token: str) -> dict[str, Any]:
        """
        Exchange a session refresh token for a new session token pair.

        The refresh token is consumed before the storage lookup, so of two
        concurrent redemptions only one gets past verification.

        Raises:
            InvalidSessionTokenError: If the refresh token does not validate
            UnknownSubjectError: If the subject's credentials are gone
        """
        claims = self.verify_session_token(refresh_token, "refresh")
        self._revoke_claims(claims, refresh_token)
        subject_id = claims["sub"]

        if not await self._token_provider.storage.exists(subject_id):
            raise UnknownSubjectError(subject_id)

        scopes = claims.get("scope", "").split()
        return self.issue_session_tokens(
            subject_id,
            claims.get("client_id", DEFAULT_CLIENT_ID),
            scopes,
        )

    def revoke_session_token(self, token: str) -> None:
        """Revoke one session token. Tokens that do not decode are ignored."""
        try:
            claims = jwt.decode(
                token,
                self._jwt_secret,
                algorithms=[SESSION_JWT_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError:
            logger.debug("Ignoring revocation of undecodable token")
            return
        self._revoke_claims(claims, token)

    @property
    def revoked_token_count(self) -> int:
        return len(self._revoked_tokens)

    def _revoke_claims(self, claims: dict[str, Any], token: str) -> None:
        self._prune_revoked_tokens()
        expires_at = claims.get("exp")
        if not isinstance(expires_at, (int, float)):
            expires_at = self._clock() + SESSION_REFRESH_TOKEN_EXPIRES_IN
        self._revoked_tokens[_revocation_key(claims, token)] = float(expires_at)

    def _prune_revoked_tokens(self) -> None:
        # Once expired, jwt.decode rejects a token without the deny list
        now = self._clock()
        expired = [key for key, exp in self._revoked_tokens.items() if exp <= now]
        for key in expired:
            del self._revoked_tokens[key]

    async def revoke(self, subject_id: str) -> None:
        """Delete the subject's Fortnox credentials and invalidate its sessions."""
        self._revoked_subjects.add(subject_id)
        await self._token_provider.delete_credentials(subject_id)
        logger.info("Revoked subject %s", subject_id)


def _parse_retry_after(value: str | None, default: float) -> float:
    if not value:
        return default
    try:
        return max(0.0, float(value))
    except ValueError:
        return default


def _error_description(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        description = body.get("error_description") or body.get("error")
        if description:
            return str(description)
    return f"HTTP {response.status_code}"


def _revocation_key(claims: dict[str, Any], token: str) -> str:
    return str(claims.get("jti") or token)

"""
Fortnox REST API client.

Every request obtains its token from the active token provider and passes
the shared rate limiter first. Upstream failures are translated into the
error hierarchy so tools can tell authorization problems from outages.
"""

import logging
from typing import Any, Literal

import httpx

from fortnox_mcp.auth.context import get_current_subject_id
from fortnox_mcp.auth.providers import TokenProvider
from fortnox_mcp.auth.registry import get_token_provider
from fortnox_mcp.core.constants import FORTNOX_API_BASE_URL, REQUEST_TIMEOUT_DEFAULT
from fortnox_mcp.core.exceptions import (
    APIError,
    AuthError,
    QuotaExceededError,
    UpstreamUnavailableError,
)

from .rate_limiter import FixedWindowRateLimiter, get_rate_limiter

logger = logging.getLogger(__name__)

HttpMethod = Literal["GET", "POST", "PUT", "DELETE"]


class FortnoxClient:
    """Thin async client over the Fortnox resource API."""

    def __init__(
        self,
        provider: TokenProvider | None = None,
        rate_limiter: FixedWindowRateLimiter | None = None,
        http_client: httpx.AsyncClient | None = None,
        *,
        base_url: str = FORTNOX_API_BASE_URL,
        timeout: float = REQUEST_TIMEOUT_DEFAULT,
        max_wait: float = 10.0,
    ):
        """
        Initialize the client.

        Args:
            provider: Token provider (the registry's active one by default)
            rate_limiter: Shared limiter (process-wide by default)
            http_client: Shared client; a short-lived one is used per call when omitted
            base_url: API root
            timeout: Request timeout in seconds
            max_wait: Longest time to queue for a rate-limit slot
        """
        self._provider = provider
        self._rate_limiter = rate_limiter
        self._http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_wait = max_wait

    @classmethod
    def from_settings(cls, settings=None, **kwargs: Any) -> "FortnoxClient":
        if settings is None:
            from fortnox_mcp.config import get_settings

            settings = get_settings()
        return cls(
            timeout=settings.request_timeout,
            max_wait=settings.rate_limit_max_wait,
            **kwargs,
        )

    @property
    def provider(self) -> TokenProvider:
        return self._provider or get_token_provider()

    @property
    def rate_limiter(self) -> FixedWindowRateLimiter:
        return self._rate_limiter or get_rate_limiter()

    async def request(
        self,
        endpoint: str,
        method: HttpMethod = "GET",
        data: Any = None,
        params: dict[str, Any] | None = None,
        subject_id: str | None = None,
    ) -> Any:
        """
        Make an authenticated request and return the decoded JSON body.

        Args:
            endpoint: Path below the API root, e.g. "/3/customers"
            method: HTTP method
            data: JSON body
            params: Query parameters; None values are dropped
            subject_id: Subject to act for (the request context's by default)

        Raises:
            AuthError: If no valid token is available or Fortnox rejects it
            QuotaExceededError: If no rate-limit slot opened up in time
            UpstreamUnavailableError: On timeout, network or server error
            APIError: For other Fortnox errors
        """
        # The token is resolved before this call takes a rate-limit slot
        if subject_id is None:
            subject_id = get_current_subject_id()
        access_token = await self.provider.get_access_token(subject_id)

        await self.rate_limiter.acquire(self.max_wait)

        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        request_kwargs: dict[str, Any] = {
            "headers": {
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            "params": clean_params or None,
            "timeout": self.timeout,
        }
        if data is not None:
            request_kwargs["json"] = data

        url = f"{self.base_url}{endpoint}"
        try:
            if self._http_client is not None:
                response = await self._http_client.request(method, url, **request_kwargs)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.request(method, url, **request_kwargs)
        except httpx.TimeoutException as e:
            raise UpstreamUnavailableError(
                f"[{endpoint}] Request timed out. The Fortnox API is not responding. "
                "Please try again.",
            ) from e
        except httpx.TransportError as e:
            raise UpstreamUnavailableError(
                f"[{endpoint}] Cannot connect to Fortnox API. Check your internet connection.",
            ) from e

        if response.status_code >= 400:
            raise handle_api_error(response, endpoint)

        if not response.content:
            return {}
        return response.json()


def _fortnox_error_message(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    info = data.get("ErrorInformation") or {}
    return (
        info.get("message")
        or info.get("Message")
        or data.get("message")
        or data.get("error")
    )


def handle_api_error(response: httpx.Response, context: str | None = None) -> Exception:
    """Map a Fortnox error response to an exception with a descriptive message."""
    prefix = f"[{context}] " if context else ""
    status = response.status_code
    fortnox_error = _fortnox_error_message(response)

    if status == 400:
        return APIError(
            f"{prefix}Bad request: {fortnox_error or 'Invalid parameters'}. "
            "Check that all required fields are provided and values are valid.",
            status_code=status,
        )
    if status == 401:
        return AuthError(
            f"{prefix}Authentication failed. The access token may be expired or invalid. "
            "Try refreshing authentication.",
        )
    if status == 403:
        return APIError(
            f"{prefix}Permission denied. Your API credentials don't have access to this "
            "resource. Check your Fortnox app scopes.",
            status_code=status,
        )
    if status == 404:
        return APIError(
            f"{prefix}Resource not found. The requested item does not exist or has been deleted.",
            status_code=status,
        )
    if status == 429:
        retry_after = response.headers.get("Retry-After")
        try:
            seconds = float(retry_after) if retry_after else 5.0
        except ValueError:
            seconds = 5.0
        return QuotaExceededError(
            seconds,
            f"{prefix}Rate limit exceeded. Fortnox allows 25 requests per 5 seconds. "
            "Please wait before retrying.",
        )
    if status >= 500:
        return UpstreamUnavailableError(
            f"{prefix}Fortnox server error ({status}). The service may be temporarily "
            "unavailable. Please try again later.",
        )
    return APIError(
        f"{prefix}API error {status}: {fortnox_error or response.text}",
        status_code=status,
    )


_client: FortnoxClient | None = None


def get_fortnox_client() -> FortnoxClient:
    """Get the process-wide API client."""
    global _client
    if _client is None:
        _client = FortnoxClient.from_settings()
    return _client


def reset_fortnox_client() -> None:
    global _client
    _client = None


async def fortnox_request(
    endpoint: str,
    method: HttpMethod = "GET",
    data: Any = None,
    params: dict[str, Any] | None = None,
) -> Any:
    """Make an authenticated request with the process-wide client."""
    return await get_fortnox_client().request(endpoint, method, data, params)

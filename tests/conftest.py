"""
Shared pytest fixtures and configuration for all tests.

Every test starts from a clean process state: settings, the token provider
registry, the rate limiter and the API client singletons are reset, and
Fortnox-related environment variables are cleared.
"""

import time

import httpx
import pytest

from fortnox_mcp.auth.credentials import CredentialSet
from fortnox_mcp.auth.registry import reset_token_provider
from fortnox_mcp.auth.storage import MemoryTokenStorage
from fortnox_mcp.config import reset_settings
from fortnox_mcp.services.api import reset_fortnox_client
from fortnox_mcp.services.rate_limiter import reset_rate_limiter

ENV_VARS = [
    "AUTH_MODE",
    "TRANSPORT",
    "HOST",
    "PORT",
    "SERVER_URL",
    "JWT_SECRET",
    "ALLOWED_REDIRECT_URIS",
    "FORTNOX_CLIENT_ID",
    "FORTNOX_CLIENT_SECRET",
    "FORTNOX_SCOPES",
    "FORTNOX_ACCESS_TOKEN",
    "FORTNOX_TOKEN_EXPIRES_AT",
    "FORTNOX_SCOPE",
    "TOKEN_STORAGE",
    "TOKEN_STORAGE_DIR",
    "REDIS_URL",
    "REQUEST_TIMEOUT",
    "REFRESH_TIMEOUT",
    "RATE_LIMIT_MAX_WAIT",
    "MCP_DEBUG",
]


@pytest.fixture(autouse=True)
def clean_state(monkeypatch, tmp_path):
    """Isolate each test from the environment and module singletons."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the tests
    monkeypatch.chdir(tmp_path)

    reset_settings()
    reset_token_provider()
    reset_rate_limiter()
    reset_fortnox_client()
    yield
    reset_settings()
    reset_token_provider()
    reset_rate_limiter()
    reset_fortnox_client()


class FakeClock:
    """Manually advanced clock for deterministic expiry and window tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryTokenStorage()


@pytest.fixture
def make_credentials():
    """Factory for credential sets expiring relative to now."""

    def _make(
        subject_id: str = "client:alice",
        *,
        expires_in: float = 3600,
        now: float | None = None,
        refresh_token: str | None = "refresh-1",
        access_token: str = "access-1",
        scope: str | None = "companyinformation customer",
    ) -> CredentialSet:
        now = time.time() if now is None else now
        return CredentialSet(
            subject_id=subject_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=now + expires_in,
            scope=scope,
        )

    return _make


class TokenEndpoint:
    """Scripted stand-in for the Fortnox token endpoint."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response | Exception] = []
        self.counter = 0

    def queue(self, response: httpx.Response | Exception) -> None:
        self.responses.append(response)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        self.counter += 1
        return httpx.Response(
            200,
            json={
                "access_token": f"new-access-{self.counter}",
                "refresh_token": f"new-refresh-{self.counter}",
                "token_type": "Bearer",
                "expires_in": 3600,
                "scope": "companyinformation customer",
            },
        )


@pytest.fixture
def token_endpoint():
    return TokenEndpoint()


@pytest.fixture
def token_http_client(token_endpoint):
    return httpx.AsyncClient(transport=httpx.MockTransport(token_endpoint.handler))

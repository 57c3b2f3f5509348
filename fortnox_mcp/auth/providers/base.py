"""
Capability interfaces shared by the token providers.
"""

from typing import Protocol, runtime_checkable

from fortnox_mcp.auth.credentials import CredentialSet


@runtime_checkable
class TokenProvider(Protocol):
    """
    Supplies valid Fortnox access tokens to API callers.

    Implementations: EnvTokenProvider (local, single tenant),
    DatabaseTokenProvider (remote, multi tenant) and OAuthProxyProvider.
    """

    async def get_access_token(self, subject_id: str | None = None) -> str:
        """
        Return a usable access token for the subject.

        Args:
            subject_id: Tenant/user identifier. Ignored by single-tenant providers.

        Raises:
            AuthError: If no valid token can be produced
            UpstreamError: If a needed refresh hit the rate limit or the network
        """
        ...

    async def get_credentials(self, subject_id: str | None = None) -> CredentialSet | None:
        """Return the current credential set without refreshing it."""
        ...


@runtime_checkable
class TokenRefresher(Protocol):
    """Performs the refresh-token handshake against the authorization server."""

    async def refresh(self, credentials: CredentialSet) -> CredentialSet:
        """
        Exchange the set's refresh token for a new credential set.

        Must not touch storage; persisting the result is the caller's job.
        """
        ...

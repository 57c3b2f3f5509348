"""Pydantic models for stored Fortnox credentials.

A ``CredentialSet`` is one subject's authorization state. It is frozen: a
refresh produces a new set that replaces the old one whole.
"""

import time

from pydantic import BaseModel, ConfigDict, Field

from fortnox_mcp.core.constants import TOKEN_REFRESH_BUFFER_SECONDS


class CredentialSet(BaseModel):
    """Credentials for one subject (tenant or end user)."""

    model_config = ConfigDict(frozen=True)

    subject_id: str = Field(min_length=1)
    access_token: str = Field(min_length=1)
    refresh_token: str | None = None  # None = not refreshable
    expires_at: float  # unix seconds
    scope: str | None = None

    @property
    def is_refreshable(self) -> bool:
        """Whether the refresh handshake may be attempted for this set."""
        return bool(self.refresh_token)

    def is_expired(self, now: float | None = None) -> bool:
        """Check if the access token is already past its expiry."""
        now = time.time() if now is None else now
        return now >= self.expires_at

    def needs_refresh(
        self,
        now: float | None = None,
        buffer_seconds: float = TOKEN_REFRESH_BUFFER_SECONDS,
    ) -> bool:
        """Check if the token is expired or will expire within the buffer."""
        now = time.time() if now is None else now
        return now >= self.expires_at - buffer_seconds

    def seconds_remaining(self, now: float | None = None) -> float:
        now = time.time() if now is None else now
        return self.expires_at - now


class TokenResponse(BaseModel):
    """Payload returned by the Fortnox token endpoint."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    refresh_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int = Field(gt=0)
    scope: str | None = None

    def to_credentials(
        self,
        subject_id: str,
        now: float | None = None,
        previous_refresh_token: str | None = None,
    ) -> CredentialSet:
        """Build the credential set this response grants.

        Fortnox rotates refresh tokens on every use; when a response omits
        one, the previous token is kept.
        """
        now = time.time() if now is None else now
        return CredentialSet(
            subject_id=subject_id,
            access_token=self.access_token,
            refresh_token=self.refresh_token or previous_refresh_token,
            expires_at=now + self.expires_in,
            scope=self.scope,
        )

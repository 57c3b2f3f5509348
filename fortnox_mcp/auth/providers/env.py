"""Token provider that reads a single tenant's token from the environment.

Used in local mode where the user configures their own access token. The
provider never refreshes: an expired token is reported, not recovered.
"""

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from fortnox_mcp.auth.credentials import CredentialSet
from fortnox_mcp.core.constants import ENV_TOKEN_DEFAULT_LIFETIME_SECONDS
from fortnox_mcp.core.exceptions import ExpiredCredentialError, MissingConfigurationError

if TYPE_CHECKING:
    from fortnox_mcp.config import Settings

logger = logging.getLogger(__name__)

LOCAL_SUBJECT_ID = "local"


class EnvTokenProvider:
    """Single-tenant provider over a configured access token."""

    def __init__(
        self,
        access_token: str | None = None,
        expires_at: float | None = None,
        scope: str | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ):
        self._clock = clock
        self._credentials: CredentialSet | None = None

        if access_token:
            # Without an explicit expiry, assume a freshly issued token
            if expires_at is None:
                expires_at = clock() + ENV_TOKEN_DEFAULT_LIFETIME_SECONDS
            self._credentials = CredentialSet(
                subject_id=LOCAL_SUBJECT_ID,
                access_token=access_token,
                refresh_token=None,
                expires_at=expires_at,
                scope=scope,
            )
        else:
            logger.warning(
                "No FORTNOX_ACCESS_TOKEN configured; local token requests will fail",
            )

    @classmethod
    def from_settings(cls, settings: "Settings | None" = None) -> "EnvTokenProvider":
        """Build the provider from FORTNOX_ACCESS_TOKEN and friends."""
        if settings is None:
            from fortnox_mcp.config import get_settings

            settings = get_settings()
        return cls(
            access_token=settings.fortnox_access_token,
            expires_at=settings.fortnox_token_expires_at,
            scope=settings.fortnox_scope,
        )

    @property
    def is_configured(self) -> bool:
        return self._credentials is not None

    async def get_access_token(self, subject_id: str | None = None) -> str:
        # subject_id is ignored: local mode has exactly one tenant
        if self._credentials is None:
            raise MissingConfigurationError("FORTNOX_ACCESS_TOKEN")

        if self._credentials.is_expired(self._clock()):
            raise ExpiredCredentialError(
                "The configured Fortnox access token has expired. "
                "Set a new FORTNOX_ACCESS_TOKEN and restart the server.",
            )

        return self._credentials.access_token

    async def get_credentials(self, subject_id: str | None = None) -> CredentialSet | None:
        return self._credentials

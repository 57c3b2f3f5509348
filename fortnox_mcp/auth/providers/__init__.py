"""Token providers: env (local mode), database and OAuth proxy (remote mode)."""

from .base import TokenProvider, TokenRefresher
from .database import DatabaseTokenProvider
from .env import LOCAL_SUBJECT_ID, EnvTokenProvider
from .oauth import OAuthProxyProvider, PendingAuthorization

__all__ = [
    "LOCAL_SUBJECT_ID",
    "DatabaseTokenProvider",
    "EnvTokenProvider",
    "OAuthProxyProvider",
    "PendingAuthorization",
    "TokenProvider",
    "TokenRefresher",
]

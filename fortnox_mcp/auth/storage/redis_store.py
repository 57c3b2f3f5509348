"""Redis token storage.

Uses ``redis.asyncio`` so storage calls suspend only the calling task.

Required configuration:
- REDIS_URL: e.g. ``redis://localhost:6379/0`` or ``rediss://...`` for TLS
"""

import logging
from typing import Any

from pydantic import ValidationError

from fortnox_mcp.auth.credentials import CredentialSet
from fortnox_mcp.core.constants import REDIS_KEY_PREFIX, STORAGE_TTL_SECONDS
from fortnox_mcp.core.exceptions import MissingConfigurationError

logger = logging.getLogger(__name__)


class RedisTokenStorage:
    """Token storage backed by Redis, one key per subject."""

    def __init__(
        self,
        url: str | None = None,
        *,
        client: Any | None = None,
        prefix: str = REDIS_KEY_PREFIX,
        ttl_seconds: int = STORAGE_TTL_SECONDS,
    ) -> None:
        if client is None and not url:
            raise MissingConfigurationError("REDIS_URL")
        self._url = url
        self._redis = client
        self._prefix = prefix
        self._ttl_seconds = ttl_seconds

    def _get_redis(self):
        """Create the client on first use so construction never touches the network."""
        if self._redis is None:
            import redis.asyncio as redis

            self._redis = redis.from_url(self._url, decode_responses=True)
        return self._redis

    def _key(self, subject_id: str) -> str:
        return f"{self._prefix}{subject_id}"

    async def get(self, subject_id: str) -> CredentialSet | None:
        raw = await self._get_redis().get(self._key(subject_id))
        if raw is None:
            return None
        try:
            return CredentialSet.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding unreadable credentials for %s: %s", subject_id, e)
            return None

    async def put(self, subject_id: str, credentials: CredentialSet) -> None:
        # SET replaces the whole value atomically
        await self._get_redis().set(
            self._key(subject_id),
            credentials.model_dump_json(),
            ex=self._ttl_seconds,
        )

    async def delete(self, subject_id: str) -> None:
        await self._get_redis().delete(self._key(subject_id))

    async def exists(self, subject_id: str) -> bool:
        return bool(await self._get_redis().exists(self._key(subject_id)))

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

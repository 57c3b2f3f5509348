"""
Multi-tenant token provider backed by a TokenStorage.

Each subject's credentials are read from storage, refreshed when they are
about to expire, and written back before the new token is handed out.
Concurrent callers for the same subject share one refresh.
"""

import asyncio
import functools
import logging
import time
from collections.abc import Callable

from fortnox_mcp.auth.credentials import CredentialSet
from fortnox_mcp.auth.storage import TokenStorage
from fortnox_mcp.core.constants import TOKEN_REFRESH_BUFFER_SECONDS
from fortnox_mcp.core.exceptions import (
    ExpiredCredentialError,
    RefreshFailedError,
    UnknownSubjectError,
)
from fortnox_mcp.core.logging import mask_token

from .base import TokenRefresher

logger = logging.getLogger(__name__)


class DatabaseTokenProvider:
    """
    Token provider over persisted per-subject credentials.

    The refresh handshake itself is delegated to ``refresher``; this class
    owns deduplication and persistence of the result.
    """

    def __init__(
        self,
        storage: TokenStorage,
        refresher: TokenRefresher | None = None,
        *,
        refresh_buffer: float = TOKEN_REFRESH_BUFFER_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self._refresher = refresher
        self._refresh_buffer = refresh_buffer
        self._clock = clock
        # subject_id -> refresh currently running for it
        self._inflight: dict[str, asyncio.Task[CredentialSet]] = {}

    @property
    def storage(self) -> TokenStorage:
        return self._storage

    def set_refresher(self, refresher: TokenRefresher) -> None:
        self._refresher = refresher

    def refresh_in_progress(self, subject_id: str) -> bool:
        return subject_id in self._inflight

    async def get_access_token(self, subject_id: str | None = None) -> str:
        """
        Return a valid access token for the subject, refreshing if needed.

        Raises:
            UnknownSubjectError: If the subject has no stored credentials
            ExpiredCredentialError: If the token expired and cannot be refreshed
            RefreshFailedError: If the authorization server rejected the refresh
            QuotaExceededError: If the refresh was refused by the rate limiter
            UpstreamUnavailableError: If the refresh could not reach Fortnox
        """
        if not subject_id:
            raise UnknownSubjectError()

        credentials = await self._storage.get(subject_id)
        if credentials is None:
            raise UnknownSubjectError(subject_id)

        now = self._clock()
        if not credentials.needs_refresh(now, self._refresh_buffer):
            return credentials.access_token

        if not credentials.is_refreshable:
            if not credentials.is_expired(now):
                # Still valid, nothing to refresh it with
                return credentials.access_token
            raise ExpiredCredentialError(
                f"Access token for subject {subject_id} has expired and cannot be refreshed",
            )

        refreshed = await self._refresh_single_flight(subject_id)
        return refreshed.access_token

    async def get_credentials(self, subject_id: str | None = None) -> CredentialSet | None:
        if not subject_id:
            return None
        return await self._storage.get(subject_id)

    async def store_credentials(self, credentials: CredentialSet) -> None:
        """Persist a credential set obtained outside the refresh path."""
        if credentials.is_expired(self._clock()):
            raise RefreshFailedError(
                f"Refusing to store expired credentials for subject {credentials.subject_id}",
            )
        await self._storage.put(credentials.subject_id, credentials)
        logger.info("Stored credentials for subject %s", credentials.subject_id)

    async def delete_credentials(self, subject_id: str) -> None:
        await self._storage.delete(subject_id)
        logger.info("Deleted credentials for subject %s", subject_id)

    async def _refresh_single_flight(self, subject_id: str) -> CredentialSet:
        task = self._inflight.get(subject_id)
        if task is None:
            task = asyncio.create_task(
                self._refresh_and_store(subject_id),
                name=f"fortnox-refresh-{subject_id}",
            )
            self._inflight[subject_id] = task
            task.add_done_callback(functools.partial(self._forget_flight, subject_id))
        else:
            logger.debug("Joining in-flight refresh for subject %s", subject_id)

        # A cancelled waiter must not cancel the refresh others are awaiting
        return await asyncio.shield(task)

    def _forget_flight(self, subject_id: str, task: asyncio.Task) -> None:
        if self._inflight.get(subject_id) is task:
            del self._inflight[subject_id]
        if not task.cancelled():
            # Retrieve so an unawaited failure is not reported as never retrieved
            task.exception()

    async def _refresh_and_store(self, subject_id: str) -> CredentialSet:
        if self._refresher is None:
            raise RefreshFailedError(
                "Token refresh is not configured (missing Fortnox client credentials)",
            )

        # Storage may have moved on since the caller's read
        current = await self._storage.get(subject_id)
        if current is None:
            raise UnknownSubjectError(subject_id)
        if not current.needs_refresh(self._clock(), self._refresh_buffer):
            return current
        if not current.is_refreshable:
            raise ExpiredCredentialError(
                f"Access token for subject {subject_id} has expired and cannot be refreshed",
            )

        logger.info("Refreshing access token for subject %s", subject_id)
        refreshed = await self._refresher.refresh(current)

        if refreshed.subject_id != subject_id:
            refreshed = refreshed.model_copy(update={"subject_id": subject_id})
        if refreshed.is_expired(self._clock()):
            raise RefreshFailedError(
                f"Refresh for subject {subject_id} returned an already expired token",
            )

        await self._storage.put(subject_id, refreshed)
        logger.info(
            "Refreshed access token for subject %s (%s, expires in %.0fs)",
            subject_id,
            mask_token(refreshed.access_token),
            refreshed.seconds_remaining(self._clock()),
        )
        return refreshed

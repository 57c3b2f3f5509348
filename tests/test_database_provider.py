"""Tests for the storage-backed token provider."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from fortnox_mcp.auth.credentials import CredentialSet
from fortnox_mcp.auth.providers import DatabaseTokenProvider, TokenProvider
from fortnox_mcp.core.exceptions import (
    ExpiredCredentialError,
    QuotaExceededError,
    RefreshFailedError,
    UnknownSubjectError,
    UpstreamUnavailableError,
)


class CountingRefresher:
    """Refresher that issues a new one-hour token, optionally after a delay."""

    def __init__(self, clock, delay: float = 0.0):
        self.clock = clock
        self.delay = delay
        self.calls = 0
        self.started = asyncio.Event()

    async def refresh(self, credentials: CredentialSet) -> CredentialSet:
        self.calls += 1
        self.started.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        return CredentialSet(
            subject_id=credentials.subject_id,
            access_token=f"refreshed-{self.calls}",
            refresh_token=f"rotated-{self.calls}",
            expires_at=self.clock() + 3600,
            scope=credentials.scope,
        )


@pytest.fixture
def refresher(clock):
    return CountingRefresher(clock)


@pytest.fixture
def provider(storage, refresher, clock):
    return DatabaseTokenProvider(storage, refresher, clock=clock)


class TestGetAccessToken:
    """Token lookup and refresh decisions."""

    @pytest.mark.asyncio
    async def test_fresh_token_returned_without_refresh(
        self, provider, storage, refresher, make_credentials, clock
    ):
        await storage.put("s1", make_credentials("s1", now=clock.now, expires_in=3600))

        assert await provider.get_access_token("s1") == "access-1"
        assert refresher.calls == 0

    @pytest.mark.asyncio
    async def test_unknown_subject(self, provider):
        with pytest.raises(UnknownSubjectError) as exc_info:
            await provider.get_access_token("ghost")
        assert exc_info.value.subject_id == "ghost"

    @pytest.mark.asyncio
    async def test_missing_subject(self, provider):
        with pytest.raises(UnknownSubjectError):
            await provider.get_access_token(None)

    @pytest.mark.asyncio
    async def test_stale_token_refreshed_and_persisted(
        self, provider, storage, refresher, make_credentials, clock
    ):
        await storage.put("s1", make_credentials("s1", now=clock.now, expires_in=120))

        token = await provider.get_access_token("s1")

        assert token == "refreshed-1"
        stored = await storage.get("s1")
        assert stored.access_token == "refreshed-1"
        assert stored.refresh_token == "rotated-1"
        assert refresher.calls == 1

    @pytest.mark.asyncio
    async def test_expired_token_refreshed(
        self, provider, storage, refresher, make_credentials, clock
    ):
        await storage.put("s1", make_credentials("s1", now=clock.now, expires_in=-10))

        assert await provider.get_access_token("s1") == "refreshed-1"

    @pytest.mark.asyncio
    async def test_non_refreshable_within_buffer_served(
        self, provider, storage, refresher, make_credentials, clock
    ):
        await storage.put(
            "s1", make_credentials("s1", now=clock.now, expires_in=60, refresh_token=None)
        )

        assert await provider.get_access_token("s1") == "access-1"
        assert refresher.calls == 0

    @pytest.mark.asyncio
    async def test_non_refreshable_expired_raises(
        self, provider, storage, refresher, make_credentials, clock
    ):
        await storage.put(
            "s1", make_credentials("s1", now=clock.now, expires_in=-1, refresh_token=None)
        )

        with pytest.raises(ExpiredCredentialError):
            await provider.get_access_token("s1")
        assert refresher.calls == 0

    @pytest.mark.asyncio
    async def test_no_refresher_configured(self, storage, make_credentials, clock):
        provider = DatabaseTokenProvider(storage, clock=clock)
        stale = make_credentials("s1", now=clock.now, expires_in=10)
        await storage.put("s1", stale)

        with pytest.raises(RefreshFailedError):
            await provider.get_access_token("s1")
        assert await storage.get("s1") == stale

    def test_satisfies_protocol(self, provider):
        assert isinstance(provider, TokenProvider)


class TestRefreshFailures:
    """A failed refresh never touches storage."""

    @pytest.mark.parametrize(
        "error",
        [
            RefreshFailedError("invalid_grant", status_code=400),
            QuotaExceededError(2.0),
            UpstreamUnavailableError("timeout"),
        ],
    )
    @pytest.mark.asyncio
    async def test_storage_unchanged(self, storage, make_credentials, clock, error):
        refresher = AsyncMock()
        refresher.refresh.side_effect = error
        provider = DatabaseTokenProvider(storage, refresher, clock=clock)
        stale = make_credentials("s1", now=clock.now, expires_in=10)
        await storage.put("s1", stale)

        with pytest.raises(type(error)):
            await provider.get_access_token("s1")

        assert await storage.get("s1") == stale
        assert not provider.refresh_in_progress("s1")

    @pytest.mark.asyncio
    async def test_already_expired_result_rejected(self, storage, make_credentials, clock):
        refresher = AsyncMock()
        refresher.refresh.return_value = make_credentials(
            "s1", now=clock.now, expires_in=-5, access_token="bad"
        )
        provider = DatabaseTokenProvider(storage, refresher, clock=clock)
        stale = make_credentials("s1", now=clock.now, expires_in=10)
        await storage.put("s1", stale)

        with pytest.raises(RefreshFailedError):
            await provider.get_access_token("s1")
        assert await storage.get("s1") == stale

    @pytest.mark.asyncio
    async def test_next_call_retries_after_failure(
        self, storage, make_credentials, clock
    ):
        failing = AsyncMock()
        failing.refresh.side_effect = UpstreamUnavailableError("down")
        provider = DatabaseTokenProvider(storage, failing, clock=clock)
        await storage.put("s1", make_credentials("s1", now=clock.now, expires_in=10))

        with pytest.raises(UpstreamUnavailableError):
            await provider.get_access_token("s1")

        provider.set_refresher(CountingRefresher(clock))
        assert await provider.get_access_token("s1") == "refreshed-1"


class TestSingleFlight:
    """Concurrent callers share one refresh per subject."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(
        self, storage, make_credentials, clock
    ):
        refresher = CountingRefresher(clock, delay=0.05)
        provider = DatabaseTokenProvider(storage, refresher, clock=clock)
        await storage.put("s1", make_credentials("s1", now=clock.now, expires_in=10))

        tokens = await asyncio.gather(*(provider.get_access_token("s1") for _ in range(10)))

        assert refresher.calls == 1
        assert set(tokens) == {"refreshed-1"}
        assert not provider.refresh_in_progress("s1")

    @pytest.mark.asyncio
    async def test_subjects_refresh_independently(self, storage, make_credentials, clock):
        refresher = CountingRefresher(clock, delay=0.01)
        provider = DatabaseTokenProvider(storage, refresher, clock=clock)
        for subject in ("a", "b", "c"):
            await storage.put(subject, make_credentials(subject, now=clock.now, expires_in=10))

        await asyncio.gather(*(provider.get_access_token(s) for s in ("a", "b", "c")))

        assert refresher.calls == 3

    @pytest.mark.asyncio
    async def test_concurrent_failure_reaches_every_caller(
        self, storage, make_credentials, clock
    ):
        async def failing_refresh(credentials):
            await asyncio.sleep(0.01)
            raise RefreshFailedError("revoked", status_code=400)

        refresher = AsyncMock()
        refresher.refresh.side_effect = failing_refresh
        provider = DatabaseTokenProvider(storage, refresher, clock=clock)
        await storage.put("s1", make_credentials("s1", now=clock.now, expires_in=10))

        results = await asyncio.gather(
            *(provider.get_access_token("s1") for _ in range(5)),
            return_exceptions=True,
        )

        assert all(isinstance(r, RefreshFailedError) for r in results)
        assert refresher.refresh.await_count == 1

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_refresh(
        self, storage, make_credentials, clock
    ):
        refresher = CountingRefresher(clock, delay=0.05)
        provider = DatabaseTokenProvider(storage, refresher, clock=clock)
        await storage.put("s1", make_credentials("s1", now=clock.now, expires_in=10))

        first = asyncio.create_task(provider.get_access_token("s1"))
        await refresher.started.wait()
        second = asyncio.create_task(provider.get_access_token("s1"))
        await asyncio.sleep(0)

        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        assert await second == "refreshed-1"
        assert refresher.calls == 1
        assert (await storage.get("s1")).access_token == "refreshed-1"

    @pytest.mark.asyncio
    async def test_refresh_reuses_set_refreshed_meanwhile(
        self, storage, make_credentials, clock
    ):
        refresher = CountingRefresher(clock)
        provider = DatabaseTokenProvider(storage, refresher, clock=clock)
        await storage.put("s1", make_credentials("s1", now=clock.now, expires_in=10))

        # Another process refreshed between our read and the refresh task's read
        original_get = storage.get
        reads = 0

        async def racing_get(subject_id):
            nonlocal reads
            reads += 1
            if reads == 2:
                await storage.put(
                    "s1",
                    make_credentials("s1", now=clock.now, expires_in=3600, access_token="other"),
                )
            return await original_get(subject_id)

        storage.get = racing_get

        assert await provider.get_access_token("s1") == "other"
        assert refresher.calls == 0


class TestCredentialManagement:
    """Manual provisioning and deletion."""

    @pytest.mark.asyncio
    async def test_store_and_delete(self, provider, storage, make_credentials, clock):
        creds = make_credentials("s1", now=clock.now)

        await provider.store_credentials(creds)
        assert await provider.get_credentials("s1") == creds

        await provider.delete_credentials("s1")
        assert await provider.get_credentials("s1") is None

    @pytest.mark.asyncio
    async def test_store_rejects_expired(self, provider, make_credentials, clock):
        with pytest.raises(RefreshFailedError):
            await provider.store_credentials(
                make_credentials("s1", now=clock.now, expires_in=-1)
            )

    @pytest.mark.asyncio
    async def test_get_credentials_without_subject(self, provider):
        assert await provider.get_credentials(None) is None

"""
Fixed-window rate limiter for Fortnox upstream calls.

Fortnox accounts 25 requests per 5 second window. The limiter mirrors that
accounting with a fixed window counter rather than a sliding log: bursts at
a window boundary are accepted upstream too.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from fortnox_mcp.core.constants import RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW_SECONDS
from fortnox_mcp.core.exceptions import QuotaExceededError

logger = logging.getLogger(__name__)


@dataclass
class RateWindow:
    """Current accounting window."""

    window_start: float
    count: int = 0


class FixedWindowRateLimiter:
    """Admission control shared by every component that calls Fortnox."""

    def __init__(
        self,
        max_requests: int = RATE_LIMIT_REQUESTS,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._window = RateWindow(window_start=clock())
        self._lock = asyncio.Lock()

    @property
    def window(self) -> RateWindow:
        return self._window

    async def admit(self) -> None:
        """
        Count one upstream request against the current window.

        Raises:
            QuotaExceededError: If the window's quota is used up. ``retry_after``
                holds the seconds until the window resets.
        """
        async with self._lock:
            now = self._clock()
            if now - self._window.window_start >= self.window_seconds:
                self._window = RateWindow(window_start=now)

            if self._window.count + 1 > self.max_requests:
                retry_after = self._window.window_start + self.window_seconds - now
                raise QuotaExceededError(
                    retry_after,
                    f"Rate limit exceeded. Fortnox allows {self.max_requests} requests "
                    f"per {self.window_seconds:g} seconds. Retry in {retry_after:.2f}s",
                )

            self._window.count += 1

    async def acquire(self, max_wait: float = 10.0) -> None:
        """
        Admit a request, waiting for the window to reset when it is full.

        Waiters are served best-effort: each retries once its sleep ends, with
        no ordering across callers.

        Args:
            max_wait: Longest total time to wait, in seconds

        Raises:
            QuotaExceededError: If no slot opened up within ``max_wait``
        """
        deadline = self._clock() + max_wait
        while True:
            try:
                await self.admit()
                return
            except QuotaExceededError as e:
                remaining = deadline - self._clock()
                if e.retry_after > remaining:
                    raise
                logger.debug("Rate limit reached, waiting %.2fs", e.retry_after)
                # Small margin so the retry lands in the next window
                await asyncio.sleep(e.retry_after + 0.01)


_rate_limiter: FixedWindowRateLimiter | None = None


def get_rate_limiter() -> FixedWindowRateLimiter:
    """Get the process-wide rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = FixedWindowRateLimiter()
    return _rate_limiter


def reset_rate_limiter() -> None:
    """Reset the process-wide rate limiter (useful for testing)."""
    global _rate_limiter
    _rate_limiter = None

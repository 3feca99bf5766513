"""Sliding window rate limiting, one window per provider."""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Optional

from .config import OrchestratorConfig, RateLimitConfig
from .models import RateLimitInfo

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Admits at most ``limit`` requests in any trailing ``window`` seconds.

    Stale timestamps are purged lazily on every query. ``is_allowed()`` and
    ``add_request()`` are separate steps; callers check first, then record.
    """

    def __init__(
        self,
        limit: int = 60,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window <= 0:
            raise ValueError("window must be positive")
        self._limit = limit
        self._window = window
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()

    @classmethod
    def from_config(cls, config: RateLimitConfig, **kwargs: Any) -> "SlidingWindowRateLimiter":
        """Create a limiter from settings."""
        return cls(limit=config.limit, window=config.window, **kwargs)

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window(self) -> float:
        return self._window

    def _purge(self, now: float) -> None:
        cutoff = now - self._window
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def is_allowed(self) -> bool:
        """Check if another request fits in the current window."""
        self._purge(self._clock())
        return len(self._timestamps) < self._limit

    def add_request(self) -> None:
        """Record a request made now."""
        self._timestamps.append(self._clock())

    def get_info(self) -> RateLimitInfo:
        """Get the current window state."""
        now = self._clock()
        self._purge(now)

        remaining = max(0, self._limit - len(self._timestamps))
        reset_time = self._timestamps[0] + self._window if self._timestamps else now
        retry_after: Optional[float] = None
        if remaining == 0:
            retry_after = max(0.0, reset_time - now)

        return RateLimitInfo(
            limit=self._limit,
            remaining=remaining,
            reset_time=reset_time,
            retry_after=retry_after,
        )

    async def wait_for_slot(self) -> None:
        """Suspend until the window has room for another request."""
        info = self.get_info()
        while info.retry_after is not None:
            logger.debug("Rate limit reached (%d/%s s), waiting %.3fs", self._limit, self._window, info.retry_after)
            await self._sleep(info.retry_after)
            info = self.get_info()

    async def acquire(self) -> None:
        """Wait for capacity, then record the request."""
        await self.wait_for_slot()
        self.add_request()

    def reset(self) -> None:
        """Forget all recorded requests."""
        self._timestamps.clear()


class RateLimiterRegistry:
    """Lazily creates and keeps one limiter per provider.

    Limiters are never shared between providers. Each provider gets the quota
    ``config.rate_limit_for`` resolves for it.
    """

    def __init__(
        self,
        config: Optional[OrchestratorConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._config = config or OrchestratorConfig()
        self._clock = clock
        self._sleep = sleep
        self._limiters: dict[str, SlidingWindowRateLimiter] = {}

    def get_limiter(self, provider_id: str) -> SlidingWindowRateLimiter:
        """Get the limiter for a provider, creating it on first use."""
        limiter = self._limiters.get(provider_id)
        if limiter is None:
            config = self._config.rate_limit_for(provider_id)
            limiter = SlidingWindowRateLimiter.from_config(config, clock=self._clock, sleep=self._sleep)
            self._limiters[provider_id] = limiter
            logger.debug("Created rate limiter for %s (%d per %ss)", provider_id, config.limit, config.window)
        return limiter

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._limiters

    def stats(self) -> dict[str, dict[str, Any]]:
        """Get window state for every provider seen so far."""
        result = {}
        for provider_id, limiter in self._limiters.items():
            info = limiter.get_info()
            result[provider_id] = {
                "limit": info.limit,
                "remaining": info.remaining,
                "reset_time": info.reset_time,
                "retry_after": info.retry_after,
            }
        return result

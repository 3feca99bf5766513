"""Tests for sliding window rate limiting."""

import pytest

from llm_request_core.config import OrchestratorConfig, RateLimitConfig
from llm_request_core.rate_limiter import RateLimiterRegistry, SlidingWindowRateLimiter


class TestSlidingWindowRateLimiter:
    """Tests for SlidingWindowRateLimiter."""

    def test_init_validation(self):
        """Test invalid settings are rejected."""
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(limit=0)
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(window=0)

    def test_allows_until_limit(self, clock):
        """Test limit=2 window=1s: two requests exhaust the window."""
        limiter = SlidingWindowRateLimiter(limit=2, window=1.0, clock=clock)
        assert limiter.is_allowed() is True
        limiter.add_request()
        assert limiter.is_allowed() is True
        limiter.add_request()
        assert limiter.is_allowed() is False

    def test_allows_again_after_window(self, clock):
        """Test capacity frees once the oldest request leaves the window."""
        limiter = SlidingWindowRateLimiter(limit=2, window=1.0, clock=clock)
        limiter.add_request()
        limiter.add_request()
        assert limiter.is_allowed() is False

        clock.advance(1.0)
        assert limiter.is_allowed() is True

    def test_window_slides(self, clock):
        """Test only the requests outside the window are forgotten."""
        limiter = SlidingWindowRateLimiter(limit=2, window=10.0, clock=clock)
        limiter.add_request()
        clock.advance(6)
        limiter.add_request()
        assert limiter.is_allowed() is False

        clock.advance(4)
        assert limiter.is_allowed() is True
        assert limiter.get_info().remaining == 1

        limiter.add_request()
        assert limiter.is_allowed() is False

    def test_get_info_fresh(self, clock):
        """Test info on an empty window."""
        limiter = SlidingWindowRateLimiter(limit=5, window=60, clock=clock)
        info = limiter.get_info()
        assert info.limit == 5
        assert info.remaining == 5
        assert info.reset_time == clock.now
        assert info.retry_after is None
        assert info.is_exhausted is False

    def test_get_info_exhausted(self, clock):
        """Test reset time and retry-after when exhausted."""
        limiter = SlidingWindowRateLimiter(limit=2, window=60, clock=clock)
        start = clock.now
        limiter.add_request()
        clock.advance(10)
        limiter.add_request()
        clock.advance(5)

        info = limiter.get_info()
        assert info.remaining == 0
        assert info.reset_time == pytest.approx(start + 60)
        assert info.retry_after == pytest.approx(45)
        assert info.is_exhausted is True
        assert info.usage_ratio == pytest.approx(1.0)

    def test_get_info_retry_after_only_when_exhausted(self, clock):
        """Test retry-after is unset while capacity remains."""
        limiter = SlidingWindowRateLimiter(limit=3, window=60, clock=clock)
        limiter.add_request()
        info = limiter.get_info()
        assert info.remaining == 2
        assert info.retry_after is None
        assert info.reset_time == pytest.approx(clock.now + 60)

    @pytest.mark.asyncio
    async def test_wait_for_slot_immediate(self, clock):
        """Test no wait when capacity remains."""
        limiter = SlidingWindowRateLimiter(limit=1, window=5, clock=clock, sleep=clock.sleep)
        await limiter.wait_for_slot()
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_wait_for_slot_sleeps_retry_after(self, clock):
        """Test waiting exactly until the window frees."""
        limiter = SlidingWindowRateLimiter(limit=1, window=5, clock=clock, sleep=clock.sleep)
        limiter.add_request()
        clock.advance(2)

        await limiter.wait_for_slot()

        assert clock.sleeps == [pytest.approx(3)]
        assert limiter.is_allowed() is True

    @pytest.mark.asyncio
    async def test_acquire_records_request(self, clock):
        """Test acquire waits then records."""
        limiter = SlidingWindowRateLimiter(limit=1, window=5, clock=clock, sleep=clock.sleep)
        await limiter.acquire()
        await limiter.acquire()

        assert clock.sleeps == [pytest.approx(5)]
        assert limiter.get_info().remaining == 0

    def test_reset(self, clock):
        """Test reset clears the window."""
        limiter = SlidingWindowRateLimiter(limit=1, window=5, clock=clock)
        limiter.add_request()
        limiter.reset()
        assert limiter.is_allowed() is True

    def test_from_config(self):
        """Test construction from settings."""
        limiter = SlidingWindowRateLimiter.from_config(RateLimitConfig(limit=7, window=3))
        assert limiter.limit == 7
        assert limiter.window == 3


class TestRateLimiterRegistry:
    """Tests for per-provider limiter lookup."""

    def test_lazy_creation_and_reuse(self):
        """Test one limiter per provider, created on first use."""
        registry = RateLimiterRegistry()
        assert "openai" not in registry

        limiter = registry.get_limiter("openai")
        assert "openai" in registry
        assert registry.get_limiter("openai") is limiter

    def test_providers_isolated(self, clock):
        """Test quota is not shared between providers."""
        registry = RateLimiterRegistry(OrchestratorConfig(rate_limit=RateLimitConfig(limit=1, window=60)), clock=clock)
        registry.get_limiter("openai").add_request()

        assert registry.get_limiter("openai").is_allowed() is False
        assert registry.get_limiter("groq").is_allowed() is True

    def test_overrides(self):
        """Test per-provider settings."""
        registry = RateLimiterRegistry(OrchestratorConfig(
            rate_limit=RateLimitConfig(limit=60, window=60),
            provider_rate_limits={"groq": RateLimitConfig(limit=30, window=10)},
        ))
        assert registry.get_limiter("groq").limit == 30
        assert registry.get_limiter("groq").window == 10
        assert registry.get_limiter("openai").limit == 60

    def test_stats(self, clock):
        """Test statistics per provider."""
        registry = RateLimiterRegistry(OrchestratorConfig(rate_limit=RateLimitConfig(limit=2, window=60)), clock=clock)
        registry.get_limiter("openai").add_request()

        stats = registry.stats()
        assert stats["openai"]["limit"] == 2
        assert stats["openai"]["remaining"] == 1
        assert stats["openai"]["retry_after"] is None

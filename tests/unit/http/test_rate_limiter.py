"""Tests for fluxsync.http.rate_limiter."""

from __future__ import annotations

from fluxsync.http.rate_limiter import RateLimiter


class TestRateLimiter:
    """Tests for RateLimiter."""

    async def test_first_acquire_does_not_wait(self) -> None:
        limiter = RateLimiter(rate=1.0)
        assert await limiter.acquire() == 0.0

    async def test_second_acquire_waits(self) -> None:
        limiter = RateLimiter(rate=20.0)
        await limiter.acquire()
        waited = await limiter.acquire()
        assert 0.0 < waited <= limiter.min_interval

    async def test_zero_rate_disables(self) -> None:
        limiter = RateLimiter(rate=0)
        assert limiter.min_interval == 0.0
        for _ in range(5):
            assert await limiter.acquire() == 0.0

    async def test_reset(self) -> None:
        limiter = RateLimiter(rate=1.0)
        await limiter.acquire()
        limiter.reset()
        assert await limiter.acquire() == 0.0

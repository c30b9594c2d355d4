"""Tests for fluxsync.utils.retry."""

from __future__ import annotations

import pytest

from fluxsync.core.exceptions import FormatError, RateLimitedError
from fluxsync.utils.retry import RetryConfig, with_retry


class Flaky:
    """Fails ``failures`` times with ``exc`` before returning ``value``."""

    def __init__(self, failures: int, exc: Exception, value: str = "ok") -> None:
        self.failures = failures
        self.exc = exc
        self.value = value
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return self.value


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_exponential_delay(self) -> None:
        config = RetryConfig(base_delay=2.0)
        assert [config.calculate_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_delay_capped(self) -> None:
        config = RetryConfig(base_delay=10.0, max_delay=15.0)
        assert config.calculate_delay(3) == 15.0

    def test_should_retry_respects_types(self) -> None:
        config = RetryConfig(retry_on=(RateLimitedError,))
        assert config.should_retry(RateLimitedError("slow"), 1)
        assert not config.should_retry(FormatError("bad"), 1)

    def test_should_retry_stops_at_max(self) -> None:
        config = RetryConfig(max_attempts=3)
        assert not config.should_retry(ValueError(), 3)


class TestWithRetry:
    """Tests for with_retry."""

    async def test_succeeds_after_failures(self) -> None:
        func = Flaky(2, RateLimitedError("slow"))
        result = await with_retry(func, RetryConfig(max_attempts=3, base_delay=0))
        assert result == "ok"
        assert func.calls == 3

    async def test_reraises_last_exception(self) -> None:
        """Exhausted attempts propagate the original exception."""
        error = RateLimitedError("slow", attempts=1)
        func = Flaky(5, error)
        with pytest.raises(RateLimitedError) as exc_info:
            await with_retry(func, RetryConfig(max_attempts=3, base_delay=0))
        assert exc_info.value is error
        assert func.calls == 3

    async def test_non_retryable_fails_fast(self) -> None:
        func = Flaky(1, FormatError("bad"))
        config = RetryConfig(max_attempts=3, base_delay=0, retry_on=(RateLimitedError,))
        with pytest.raises(FormatError):
            await with_retry(func, config)
        assert func.calls == 1

    async def test_on_retry_callback(self) -> None:
        seen: list[int] = []
        func = Flaky(2, RateLimitedError("slow"))
        config = RetryConfig(
            max_attempts=3, base_delay=0, on_retry=lambda exc, attempt, delay: seen.append(attempt)
        )
        await with_retry(func, config)
        assert seen == [1, 2]

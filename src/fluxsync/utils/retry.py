"""Bounded retries with exponential backoff.

Social timelines served through scraping bridges answer bursts with 429s;
those fetches are wrapped so a short pause and another attempt usually
succeed without the caller noticing.

Example:
    >>> from fluxsync.utils.retry import with_retry, RetryConfig
    >>>
    >>> policy = RetryConfig(max_attempts=3, base_delay=2.0)
    >>> page = await with_retry(lambda: http.get_text(url), policy)
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger("fluxsync.retry")

T = TypeVar("T")

RetryHook = Callable[[Exception, int, float], None]


@dataclass
class RetryConfig:
    """How often, how long, and on what errors to try again.

    ``max_attempts`` counts the first call. The pause after attempt ``n``
    is ``base_delay * exponential_base ** (n - 1)``, capped at
    ``max_delay`` and optionally spread by ``jitter`` (a fraction of the
    pause). Only instances of ``retry_on`` are retried, and
    ``no_retry_on`` wins when both match. ``on_retry`` receives
    ``(error, attempt, pause)`` before each sleep.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: float = 0.0
    retry_on: tuple[type[Exception], ...] = (Exception,)
    no_retry_on: tuple[type[Exception], ...] = ()
    on_retry: RetryHook | None = None

    def calculate_delay(self, attempt: int) -> float:
        """Pause in seconds after the given 1-indexed attempt.

        Example:
            >>> RetryConfig(base_delay=2.0).calculate_delay(1)
            2.0
            >>> RetryConfig(base_delay=2.0).calculate_delay(2)
            4.0
        """
        pause = min(self.base_delay * self.exponential_base ** (attempt - 1), self.max_delay)
        if self.jitter > 0:
            spread = pause * self.jitter
            pause += random.uniform(-spread, spread)
        return max(0.0, pause)

    def should_retry(self, exc: Exception, attempt: int) -> bool:
        if attempt >= self.max_attempts:
            return False
        if isinstance(exc, self.no_retry_on):
            return False
        return isinstance(exc, self.retry_on)


async def with_retry(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
) -> T:
    """Await ``func()`` until it succeeds or the policy gives up.

    The exception from the final attempt is re-raised as is, so callers
    catch the same types they would without retries.
    """
    policy = config or RetryConfig()
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await func()
        except Exception as exc:
            if not policy.should_retry(exc, attempt):
                if attempt > 1:
                    logger.warning("gave up after %d attempts: %s", attempt, exc)
                raise
            pause = policy.calculate_delay(attempt)
            logger.info("attempt %d/%d failed (%s), next in %.1fs", attempt, policy.max_attempts, exc, pause)
            if policy.on_retry is not None:
                policy.on_retry(exc, attempt, pause)
            await asyncio.sleep(pause)
    # max_attempts < 1: nothing was tried
    return await func()


__all__ = [
    "RetryConfig",
    "with_retry",
]

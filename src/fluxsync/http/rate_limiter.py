"""Request spacing for a single upstream host.

Example:
    >>> from fluxsync.http import RateLimiter
    >>>
    >>> limiter = RateLimiter(rate=5.0)  # at most five requests a second
    >>> await limiter.acquire()
"""

from __future__ import annotations

import asyncio
import time


class RateLimiter:
    """Spaces calls at least ``1 / rate`` seconds apart.

    Callers queue on a lock, so concurrent fetches through one client
    go out one slot at a time. ``rate <= 0`` turns spacing off.
    """

    def __init__(self, rate: float = 10.0):
        self.rate = rate
        self.min_interval = 1.0 / rate if rate > 0 else 0.0
        self._next_slot: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> float:
        """Block until this caller's slot; returns the seconds slept."""
        if not self.min_interval:
            return 0.0
        async with self._lock:
            slept = 0.0
            if self._next_slot is not None:
                slept = max(0.0, self._next_slot - time.monotonic())
                if slept:
                    await asyncio.sleep(slept)
            self._next_slot = time.monotonic() + self.min_interval
            return slept

    def reset(self) -> None:
        """Forget the previous call so the next one goes out at once."""
        self._next_slot = None


__all__ = [
    "RateLimiter",
]

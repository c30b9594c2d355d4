"""Debounced write-back of item state changes.

Toggling read/starred/bookmarked state queues the item here instead of
writing it remotely right away. Every queue call pushes the flush deadline
back, so a burst of changes becomes one batched upsert once the user pauses.

Example:
    >>> queue = WriteBackQueue(engine, delay=2.0)
    >>> queue.queue(catalog.toggle_read(item_id))
    >>> await queue.close()
"""

from __future__ import annotations

import asyncio
import logging

from fluxsync.models.item import Item
from fluxsync.sync.engine import ReconciliationEngine

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 2.0


class WriteBackQueue:
    """Pending item updates flushed after ``delay`` seconds of quiet.

    The queue holds at most one version per item id: the latest one. A
    single timer task exists at any time; queueing cancels and replaces it.
    """

    def __init__(self, engine: ReconciliationEngine, delay: float = DEFAULT_DELAY) -> None:
        """Initialize the queue.

        Args:
            engine: Engine used to confirm parent feeds and upsert rows.
            delay: Quiet period in seconds before a flush.
        """
        self._engine = engine
        self._delay = delay
        self._pending: dict[str, Item] = {}
        self._timer: asyncio.Task[None] | None = None
        self._flush_lock = asyncio.Lock()

    @property
    def pending(self) -> list[Item]:
        """Items waiting for the next flush."""
        return list(self._pending.values())

    @property
    def delay(self) -> float:
        return self._delay

    def queue(self, item: Item) -> None:
        """Record the latest version of ``item`` and restart the timer.

        Must be called from within a running event loop.
        """
        self._pending[item.id] = item.touch()
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._flush_later())

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _flush_later(self) -> None:
        await asyncio.sleep(self._delay)
        self._timer = None
        await self.flush()

    async def flush(self) -> int:
        """Push every pending item now.

        Parent feeds are confirmed remotely first; items of feeds that
        could not be confirmed stay pending for the next flush.

        Returns:
            Number of items handed to the backend.
        """
        async with self._flush_lock:
            if not self._pending:
                return 0
            batch = dict(self._pending)
            self._pending.clear()

            failed = await self._engine.ensure_feeds_remote(i.feed_id for i in batch.values())
            ready = [i for i in batch.values() if i.feed_id not in failed]
            for item in batch.values():
                # Keep a newer version queued meanwhile
                if item.feed_id in failed:
                    self._pending.setdefault(item.id, item)
            if failed:
                logger.warning(
                    f"Keeping {len(batch) - len(ready)} items pending, feeds not confirmed: "
                    f"{sorted(failed)}"
                )
            if not ready:
                return 0

            await self._engine.upsert_items(ready)
            logger.debug(f"Flushed {len(ready)} item updates")
            return len(ready)

    def clear(self) -> None:
        """Drop pending updates and stop the timer (on sign-out)."""
        self._pending.clear()
        self._cancel_timer()

    async def close(self) -> None:
        """Stop the timer and flush what is pending."""
        self._cancel_timer()
        await self.flush()

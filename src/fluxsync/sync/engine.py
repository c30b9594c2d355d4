"""Reconciliation engine.

Keeps the local catalog and the remote backend converging. A full cycle:

1. Pull every remote feed and item row of the user.
2. Detect remote deletions: ids recorded as synced by the previous cycle
   but missing remotely were deleted on another device.
3. Merge feeds, matching by id and then by url. The remote version wins
   only if its ``updated_at`` is strictly newer. When the same url is
   known under two ids, the lower id survives and the other is retired.
4. Merge items, remapping retired feed ids onto the surviving ones,
   matching by id and then by url. Local content is kept; read/starred/
   bookmarked flags come from the newer side. Remote-only items arrive
   without content.
5. Commit the merged state to the catalog.
6. Push what the backend is missing: feeds first, then items in chunks,
   withholding items whose feed could not be confirmed remotely. Remote
   items of a retired feed are moved onto the survivor before the retired
   row is deleted.
7. Record the synced id sets for the next cycle's deletion detection.

The merged state is committed before any push is awaited, so a local
toggle made while pushes are in flight is never overwritten by the cycle.

Example:
    >>> from fluxsync.backend.memory import MemoryBackend
    >>> from fluxsync.catalog.store import CatalogStore
    >>> from fluxsync.storage.memory import MemoryKeyValueStore
    >>> from fluxsync.sync.engine import ReconciliationEngine
    >>> engine = ReconciliationEngine(
    ...     CatalogStore(MemoryKeyValueStore()), MemoryBackend(), user_id="u-1"
    ... )
    >>> engine.is_running
    False
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from fluxsync.catalog.store import CatalogStore
from fluxsync.core.events import EventHub, SyncErrorEvent
from fluxsync.core.exceptions import FluxSyncError
from fluxsync.models.base import is_newer, utc_now
from fluxsync.models.feed import Feed
from fluxsync.models.item import Item
from fluxsync.protocols.backend import RemoteBackend
from fluxsync.protocols.storage import StorageKey
from fluxsync.sync.mapping import feed_to_row, item_to_row, row_to_feed, row_to_item

if TYPE_CHECKING:
    from fluxsync.sync.provider_sync import StatusSyncResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


@dataclass
class SyncResult:
    """Outcome of one reconciliation cycle."""

    skipped: bool = False
    pulled_feeds: int = 0
    pulled_items: int = 0
    pushed_feeds: int = 0
    pushed_items: int = 0
    deleted_feeds: int = 0
    deleted_items: int = 0
    errors: list[SyncErrorEvent] = field(default_factory=list)
    started_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None
    # hosted reader pass run after the cycle, if any
    provider_status: StatusSyncResult | None = None

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class _MergeState:
    feeds: list[Feed]
    items: list[Item]
    remote_feed_ids: set[str]
    remote_item_ids: set[str]
    remote_item_urls: set[str]
    deleted_feed_ids: set[str]
    deleted_item_ids: set[str]
    # retired feed id -> surviving id, for feeds known under two ids
    feed_remap: dict[str, str] = field(default_factory=dict)
    # remote items whose feed_id was rewritten onto a surviving feed
    moved_item_ids: set[str] = field(default_factory=set)


def _chunks(items: list[Item], size: int) -> Iterable[list[Item]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _resolve(remap: dict[str, str], feed_id: str) -> str:
    while feed_id in remap:
        feed_id = remap[feed_id]
    return feed_id


class ReconciliationEngine:
    """Bidirectional merge between a catalog and a remote backend.

    The engine owns the feed cache and the registry of in-flight feed
    pushes, so item pushes can wait for their parent feed to land first.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        backend: RemoteBackend,
        *,
        user_id: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        """Initialize the engine.

        Args:
            catalog: Local catalog to reconcile.
            backend: Remote relational backend.
            user_id: Authenticated principal all rows belong to.
            batch_size: Maximum item rows per insert or upsert call.
        """
        self._catalog = catalog
        self._backend = backend
        self.user_id = user_id
        self._batch_size = batch_size
        self._lock = asyncio.Lock()
        self._errors: EventHub[SyncErrorEvent] = EventHub()
        self._feed_cache: dict[str, Feed] = {}
        self._in_flight: dict[str, asyncio.Task[bool]] = {}

    @property
    def catalog(self) -> CatalogStore:
        return self._catalog

    @property
    def is_running(self) -> bool:
        """True while a full cycle holds the lock."""
        return self._lock.locked()

    async def close(self) -> None:
        """Release the backend connection."""
        await self._backend.close()

    def on_error(self, listener: Callable[[SyncErrorEvent], None]) -> Callable[[], None]:
        """Register a sync error listener; returns the unsubscribe callable."""
        return self._errors.subscribe(listener)

    def _report(self, operation: str, error: Exception, result: SyncResult | None = None) -> None:
        event = SyncErrorEvent(operation=operation, message=str(error))
        logger.error(f"Sync error in {event}")
        if result is not None:
            result.errors.append(event)
        self._errors.emit(event)

    # =========================================================================
    # Full cycle
    # =========================================================================

    async def full_sync(self) -> SyncResult:
        """Run one reconciliation cycle.

        A call made while a cycle is running does not start another one and
        returns ``SyncResult(skipped=True)``.

        Raises:
            TransportError: If the remote state cannot be pulled.
        """
        if self._lock.locked():
            logger.info("Sync already running, coalescing request")
            return SyncResult(skipped=True)

        async with self._lock:
            result = SyncResult()
            state = await self._pull_and_merge(result)
            self._catalog.replace_all(state.feeds, state.items)
            self._feed_cache.update({f.id: f for f in state.feeds})
            for old in state.feed_remap:
                self._feed_cache.pop(old, None)

            pushed_feed_ids = await self._push_feeds(state, result)
            pushed_item_ids = await self._push_items(state, pushed_feed_ids, result)
            retired = await self._retire_feeds(state, state.remote_feed_ids | pushed_feed_ids, result)

            kv = self._catalog.kv
            synced_feed_ids = (state.remote_feed_ids - retired) | pushed_feed_ids
            kv.set(StorageKey.SYNCED_FEED_IDS.value, sorted(synced_feed_ids))
            kv.set(StorageKey.SYNCED_ITEM_IDS.value, sorted(state.remote_item_ids | pushed_item_ids))
            self._catalog.last_sync = utc_now()

            result.completed_at = utc_now()
            logger.info(
                f"Sync complete: pulled {result.pulled_feeds} feeds/{result.pulled_items} items, "
                f"pushed {result.pushed_feeds} feeds/{result.pushed_items} items, "
                f"{len(result.errors)} errors"
            )
            return result

    async def _pull_and_merge(self, result: SyncResult) -> _MergeState:
        try:
            feed_rows = await self._backend.select_feeds(self.user_id)
            item_rows = await self._backend.select_items(self.user_id)
        except FluxSyncError as e:
            logger.error(f"Failed to pull remote state: {e}")
            raise

        remote_feeds = [row_to_feed(r) for r in feed_rows]
        remote_items = [row_to_item(r) for r in item_rows]
        result.pulled_feeds = len(remote_feeds)
        result.pulled_items = len(remote_items)

        kv = self._catalog.kv
        previous_feed_ids = set(kv.get(StorageKey.SYNCED_FEED_IDS.value, []) or [])
        previous_item_ids = set(kv.get(StorageKey.SYNCED_ITEM_IDS.value, []) or [])
        remote_feed_ids = {f.id for f in remote_feeds}
        remote_item_ids = {i.id for i in remote_items}
        deleted_feed_ids = previous_feed_ids - remote_feed_ids
        deleted_item_ids = previous_item_ids - remote_item_ids

        feeds, feed_remap = self._merge_feeds(remote_feeds, deleted_feed_ids)
        items, moved_item_ids = self._merge_items(
            remote_items, feed_remap, deleted_feed_ids, deleted_item_ids
        )
        if feed_remap:
            logger.info(f"Merged feeds known under two ids: {feed_remap}")

        local_feed_ids = {f.id for f in self._catalog.feeds}
        result.deleted_feeds = len(deleted_feed_ids & local_feed_ids)
        result.deleted_items = sum(
            1
            for i in self._catalog.items
            if i.id in deleted_item_ids or i.feed_id in deleted_feed_ids
        )

        return _MergeState(
            feeds=feeds,
            items=items,
            remote_feed_ids=remote_feed_ids,
            remote_item_ids=remote_item_ids,
            remote_item_urls={i.url for i in remote_items if i.url},
            deleted_feed_ids=deleted_feed_ids,
            deleted_item_ids=deleted_item_ids,
            feed_remap=feed_remap,
            moved_item_ids=moved_item_ids,
        )

    def _merge_feeds(
        self, remote_feeds: list[Feed], deleted_feed_ids: set[str]
    ) -> tuple[list[Feed], dict[str, str]]:
        feed_map: dict[str, Feed] = {}
        url_to_id: dict[str, str] = {}
        remap: dict[str, str] = {}
        for local in self._catalog.feeds:
            if local.id in deleted_feed_ids:
                continue
            feed_map[local.id] = local
            if local.url:
                url_to_id[local.url] = local.id

        for remote in remote_feeds:
            existing = feed_map.get(remote.id)
            if existing is None and remote.url in url_to_id:
                existing = feed_map[url_to_id[remote.url]]

            if existing is None:
                feed_map[remote.id] = remote
                if remote.url:
                    url_to_id[remote.url] = remote.id
                continue

            merged = existing
            if is_newer(remote.updated_at, existing.updated_at):
                merged = existing.model_copy(
                    update={
                        "name": remote.name,
                        "source_kind": remote.source_kind,
                        "icon": remote.icon,
                        "color": remote.color,
                        "url": remote.url,
                        "folder": remote.folder,
                        "updated_at": remote.updated_at,
                    }
                )

            # two devices added the same url independently: lower id survives
            keep_id = min(existing.id, remote.id)
            if existing.id != keep_id:
                del feed_map[existing.id]
                remap[existing.id] = keep_id
                merged = merged.model_copy(update={"id": keep_id})
            elif remote.id != keep_id:
                remap[remote.id] = keep_id
            feed_map[keep_id] = merged
            if merged.url:
                url_to_id[merged.url] = keep_id

        return list(feed_map.values()), {old: _resolve(remap, old) for old in remap}

    def _merge_items(
        self,
        remote_items: list[Item],
        feed_remap: dict[str, str],
        deleted_feed_ids: set[str],
        deleted_item_ids: set[str],
    ) -> tuple[list[Item], set[str]]:
        item_map: dict[str, Item] = {}
        url_to_id: dict[str, str] = {}
        moved: set[str] = set()
        for local in self._catalog.items:
            if local.id in deleted_item_ids or local.feed_id in deleted_feed_ids:
                continue
            if local.feed_id in feed_remap:
                local = local.model_copy(update={"feed_id": feed_remap[local.feed_id]})
            item_map[local.id] = local
            if local.url:
                url_to_id[local.url] = local.id

        for remote in remote_items:
            if remote.feed_id in feed_remap:
                remote = remote.model_copy(update={"feed_id": feed_remap[remote.feed_id]})
                moved.add(remote.id)

            existing = item_map.get(remote.id)
            if existing is None and remote.url and remote.url in url_to_id:
                existing = item_map[url_to_id[remote.url]]

            if existing is None:
                item_map[remote.id] = remote
                if remote.url:
                    url_to_id[remote.url] = remote.id
            elif is_newer(remote.updated_at, existing.updated_at):
                item_map[existing.id] = existing.model_copy(
                    update={
                        "is_read": remote.is_read,
                        "is_starred": remote.is_starred,
                        "is_bookmarked": remote.is_bookmarked,
                        "updated_at": remote.updated_at,
                    }
                )
        return list(item_map.values()), moved

    async def _push_feeds(self, state: _MergeState, result: SyncResult) -> set[str]:
        pushed: set[str] = set()
        for feed in state.feeds:
            if feed.id in state.remote_feed_ids:
                continue
            try:
                await self._backend.insert_feeds([feed_to_row(feed, self.user_id)])
            except FluxSyncError as e:
                self._report(f'full_sync push feed "{feed.name}"', e, result)
                continue
            pushed.add(feed.id)
        result.pushed_feeds = len(pushed)
        return pushed

    async def _retire_feeds(
        self, state: _MergeState, confirmed_feed_ids: set[str], result: SyncResult
    ) -> set[str]:
        """Move remote items off retired feed rows, then delete those rows.

        A retired row is only deleted once its survivor is confirmed remotely
        and its items were moved, so no remote item is lost on the way.

        Returns:
            The retired feed ids deleted from the backend.
        """
        retired = {
            old: new
            for old, new in state.feed_remap.items()
            if old in state.remote_feed_ids and new in confirmed_feed_ids
        }
        if not retired:
            return set()

        moving = [
            i for i in state.items if i.id in state.moved_item_ids and i.feed_id in retired.values()
        ]
        for batch in _chunks(moving, self._batch_size):
            try:
                await self._backend.upsert_items([item_to_row(i, self.user_id) for i in batch])
            except FluxSyncError as e:
                self._report("full_sync move items to merged feed", e, result)
                return set()

        deleted: set[str] = set()
        for old in retired:
            try:
                await self._backend.delete_feed(old, self.user_id)
            except FluxSyncError as e:
                self._report("full_sync retire duplicate feed", e, result)
                continue
            deleted.add(old)
        return deleted

    async def _push_items(
        self, state: _MergeState, pushed_feed_ids: set[str], result: SyncResult
    ) -> set[str]:
        to_push = [
            i
            for i in state.items
            if i.id not in state.remote_item_ids
            and not (i.url and i.url in state.remote_item_urls)
            and i.id not in state.deleted_item_ids
            and i.feed_id not in state.deleted_feed_ids
        ]
        if not to_push:
            return set()

        confirmed = state.remote_feed_ids | pushed_feed_ids
        failed: set[str] = set()
        for feed_id in dict.fromkeys(i.feed_id for i in to_push):
            if feed_id not in confirmed and not await self.ensure_feed_remote(feed_id):
                failed.add(feed_id)

        safe = [i for i in to_push if i.feed_id not in failed]
        pushed: set[str] = set()
        for batch in _chunks(safe, self._batch_size):
            try:
                await self._backend.insert_items([item_to_row(i, self.user_id) for i in batch])
            except FluxSyncError as e:
                self._report("full_sync push items batch", e, result)
                continue
            pushed.update(i.id for i in batch)
        result.pushed_items = len(pushed)
        return pushed

    # =========================================================================
    # Incremental pushes
    # =========================================================================

    async def _upsert_feed(self, feed: Feed, operation: str) -> bool:
        try:
            await self._backend.upsert_feeds([feed_to_row(feed, self.user_id)])
        except FluxSyncError as e:
            self._report(operation, e)
            return False
        logger.debug(f"Pushed feed {feed.id} ({feed.name})")
        return True

    async def push_feed(self, feed: Feed) -> bool:
        """Upsert a feed immediately.

        While the push is in flight, :meth:`ensure_feed_remote` for the same
        feed waits for it instead of issuing a second write.

        Returns:
            True if the feed reached the backend.
        """
        self._feed_cache[feed.id] = feed
        task = asyncio.create_task(self._upsert_feed(feed, "push_feed"))
        self._in_flight[feed.id] = task
        task.add_done_callback(lambda t: self._forget_push(feed.id, t))
        return await asyncio.shield(task)

    def _forget_push(self, feed_id: str, task: asyncio.Task[bool]) -> None:
        if self._in_flight.get(feed_id) is task:
            del self._in_flight[feed_id]

    async def ensure_feed_remote(self, feed_id: str) -> bool:
        """Make sure the backend has a row for ``feed_id``.

        Waits for an in-flight push of the feed if there is one; otherwise
        upserts the feed from the cache or the catalog.

        Returns:
            False if the feed is unknown locally or the upsert failed.
        """
        pending = self._in_flight.get(feed_id)
        if pending is not None:
            return await asyncio.shield(pending)

        feed = self._feed_cache.get(feed_id) or self._catalog.get_feed(feed_id)
        if feed is None:
            logger.warning(f"ensure_feed: feed {feed_id} not found in cache or catalog")
            return False
        self._feed_cache[feed_id] = feed
        return await self._upsert_feed(feed, f'ensure_feed "{feed.name}"')

    async def delete_feed(self, feed_id: str) -> bool:
        """Delete a feed and its items remotely."""
        self._feed_cache.pop(feed_id, None)
        try:
            await self._backend.delete_feed(feed_id, self.user_id)
        except FluxSyncError as e:
            self._report("delete_feed", e)
            return False
        return True

    async def upsert_items(self, items: list[Item], operation: str = "batch item upsert") -> bool:
        """Upsert item rows in chunks. Parent feeds must already be remote.

        Returns:
            True if every chunk was accepted.
        """
        ok = True
        for batch in _chunks(items, self._batch_size):
            try:
                await self._backend.upsert_items([item_to_row(i, self.user_id) for i in batch])
            except FluxSyncError as e:
                self._report(operation, e)
                ok = False
        return ok

    async def ensure_feeds_remote(self, feed_ids: Iterable[str]) -> set[str]:
        """Ensure several feeds; returns the ids that could not be confirmed."""
        failed: set[str] = set()
        for feed_id in dict.fromkeys(feed_ids):
            if not await self.ensure_feed_remote(feed_id):
                failed.add(feed_id)
        return failed

    async def push_new_items(self, items: list[Item]) -> int:
        """Upsert freshly ingested items.

        Items whose feed cannot be confirmed remotely are withheld.

        Returns:
            Number of items handed to the backend.
        """
        if not items:
            return 0
        failed = await self.ensure_feeds_remote(i.feed_id for i in items)
        safe = [i for i in items if i.feed_id not in failed]
        if failed:
            logger.warning(f"Withholding {len(items) - len(safe)} items of unconfirmed feeds")
        if safe:
            await self.upsert_items(safe, "push_new_items batch")
        return len(safe)

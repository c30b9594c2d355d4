"""FluxSync - Main orchestrator for feed aggregation.

The FluxSync class is the central entry point, coordinating the source
adapters, the local catalog, the reconciliation engine, the write-back queue
and the optional hosted reader integration.

Example:
    >>> from fluxsync import FluxSync
    >>> from fluxsync.catalog import CatalogStore
    >>> from fluxsync.http import HttpClient
    >>> from fluxsync.storage import MemoryKeyValueStore
    >>> flux = FluxSync(CatalogStore(MemoryKeyValueStore()), http=HttpClient())
    >>> # feed = await flux.add_feed("https://example.com/rss")
    >>> # result = await flux.sync_all()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from fluxsync.adapter.registry import detect_source_from_url, discover_feed_info, get_adapter
from fluxsync.core.events import EventHub, SyncErrorEvent
from fluxsync.core.exceptions import FluxSyncError
from fluxsync.models.base import SourceKind
from fluxsync.models.feed import Feed
from fluxsync.models.item import Item

if TYPE_CHECKING:
    from fluxsync.catalog.store import CatalogStore
    from fluxsync.http.client import HttpClient
    from fluxsync.sync.engine import ReconciliationEngine, SyncResult
    from fluxsync.sync.provider_sync import ProviderSyncService, StatusSyncResult
    from fluxsync.sync.writeback import WriteBackQueue
    from fluxsync.utils.retry import RetryConfig

logger = logging.getLogger(__name__)


@dataclass
class FeedStats:
    """Outcome of fetching one feed.

    Example:
        >>> FeedStats(feed_id="feed-1", feed_name="Example", new=3).ok
        True
    """

    feed_id: str
    feed_name: str = ""
    new: int = 0
    discarded: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class CollectionResult:
    """Result from a fetch run over several feeds.

    Example:
        >>> result = CollectionResult(
        ...     feed_stats={"feed-1": FeedStats(feed_id="feed-1", new=10)},
        ... )
        >>> result.total_new
        10
    """

    feed_stats: dict[str, FeedStats] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @property
    def total_new(self) -> int:
        """Total new items across all feeds."""
        return sum(s.new for s in self.feed_stats.values())

    @property
    def errors(self) -> list[str]:
        """One ``name (reason)`` line per failed feed."""
        return [f"{s.feed_name} ({s.error})" for s in self.feed_stats.values() if s.error]

    @property
    def total_errors(self) -> int:
        return len(self.errors)


class FluxSync:
    """Main orchestrator for feed aggregation.

    Local catalog changes are forwarded to the remote side: new feeds are
    pushed right away, new items are pushed after each fetch, and item flag
    changes go through the debounced write-back queue. Each collaborator is
    optional; without an engine FluxSync works purely locally.

    Args:
        catalog: Local catalog store.
        http: Shared HTTP client used by the source adapters.
        engine: Optional reconciliation engine for the remote backend.
        writeback: Optional write-back queue (requires ``engine``).
        provider_sync: Optional hosted reader integration.
        retry: Backoff policy handed to adapters of rate-limited sources.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        *,
        http: HttpClient,
        engine: ReconciliationEngine | None = None,
        writeback: WriteBackQueue | None = None,
        provider_sync: ProviderSyncService | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        self._catalog = catalog
        self._http = http
        self._retry = retry
        self._engine = engine
        self._writeback = writeback
        self._provider_sync = provider_sync
        self._syncing = False
        self._errors: EventHub[SyncErrorEvent] = EventHub()

    @property
    def catalog(self) -> CatalogStore:
        return self._catalog

    @property
    def engine(self) -> ReconciliationEngine | None:
        return self._engine

    @property
    def provider_sync(self) -> ProviderSyncService | None:
        return self._provider_sync

    @property
    def is_syncing(self) -> bool:
        """True while :meth:`sync_all` is running."""
        return self._syncing

    # =========================================================================
    # Feeds
    # =========================================================================

    async def add_feed(
        self,
        url: str,
        name: str = "",
        source_kind: SourceKind | None = None,
        *,
        folder: str | None = None,
    ) -> Feed:
        """Subscribe to a feed and fetch its first items.

        The display name comes from the feed itself when it can be read,
        then from ``name``, then from the URL host. A failing first fetch
        is logged; the feed is kept.

        Args:
            url: Endpoint or page URL of the feed.
            name: Fallback display name.
            source_kind: Kind of source (default: detected from the URL).
            folder: Optional folder path.

        Returns:
            The stored feed.
        """
        kind = source_kind or detect_source_from_url(url)
        info = await discover_feed_info(url, self._http, kind)
        display_name = (info.name if info else "") or name or urlsplit(url).netloc or url

        feed = self._catalog.add_feed(url, display_name, kind, folder=folder)
        if self._engine is not None:
            await self._engine.push_feed(feed)

        try:
            await self.sync_feed(feed.id)
        except FluxSyncError as e:
            logger.error(f"Failed to fetch items for {feed.name}: {e}")
        return feed

    async def remove_feed(self, feed_id: str) -> bool:
        """Remove a feed locally and remotely.

        Returns:
            True if the feed existed locally.
        """
        if not self._catalog.remove_feed(feed_id):
            return False
        if self._engine is not None:
            await self._engine.delete_feed(feed_id)
        return True

    async def sync_feed(self, feed_id: str) -> list[Item]:
        """Fetch one feed and merge its new items.

        If the feed is removed while the fetch is in flight, the fetched
        items are discarded.

        Returns:
            The items that were new to the catalog.

        Raises:
            NotFoundError: If the feed is not in the catalog.
            FeedError: If the adapter call failed.
        """
        feed = self._catalog.require_feed(feed_id)
        adapter = get_adapter(feed.source_kind, self._http, self._retry)
        fetched = await adapter.fetch_items(feed, self._catalog.known_keys(feed_id))

        if self._catalog.get_feed(feed_id) is None:
            logger.info(f"Feed {feed_id} was removed during fetch, discarding {len(fetched)} items")
            return []

        new_items = self._catalog.merge_incoming_items(fetched)
        logger.debug(f"Fetched {len(fetched)} items for {feed.name}, {len(new_items)} new")
        if new_items and self._engine is not None:
            await self._engine.push_new_items(new_items)
        return new_items

    async def sync_all(
        self,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> CollectionResult:
        """Fetch every feed, one after the other.

        A failing feed is recorded and does not stop the run.

        Args:
            on_progress: Called with ``(completed, total)`` after each feed.

        Returns:
            CollectionResult with stats for each feed.
        """
        result = CollectionResult()
        feeds = self._catalog.feeds
        self._syncing = True
        try:
            for index, feed in enumerate(feeds, start=1):
                stats = FeedStats(feed_id=feed.id, feed_name=feed.name)
                try:
                    if self._catalog.get_feed(feed.id) is None:
                        stats.discarded = True
                    else:
                        stats.new = len(await self.sync_feed(feed.id))
                except FluxSyncError as e:
                    stats.error = str(e)
                    logger.warning(f"Failed to sync feed {feed.name}: {e}")
                result.feed_stats[feed.id] = stats
                if on_progress is not None:
                    on_progress(index, len(feeds))
        finally:
            self._syncing = False

        result.completed_at = datetime.now(UTC)
        self._catalog.last_sync = result.completed_at
        logger.info(
            f"Synced {len(feeds)} feeds: {result.total_new} new items, "
            f"{result.total_errors} errors"
        )
        return result

    # =========================================================================
    # Item state
    # =========================================================================

    async def _item_changed(self, item: Item) -> None:
        if self._writeback is not None:
            self._writeback.queue(item)
        if self._provider_sync is None or not item.remote_id:
            return
        config = self._provider_sync.load_config()
        if config is not None and config.sync_enabled:
            await self._provider_sync.push_item_status(item, config)

    async def mark_as_read(self, item_id: str) -> Item:
        item = self._catalog.mark_as_read(item_id)
        await self._item_changed(item)
        return item

    async def toggle_read(self, item_id: str) -> Item:
        item = self._catalog.toggle_read(item_id)
        await self._item_changed(item)
        return item

    async def toggle_star(self, item_id: str) -> Item:
        item = self._catalog.toggle_star(item_id)
        await self._item_changed(item)
        return item

    async def toggle_bookmark(self, item_id: str) -> Item:
        item = self._catalog.toggle_bookmark(item_id)
        await self._item_changed(item)
        return item

    async def mark_all_as_read(self, feed_id: str | None = None) -> list[Item]:
        changed = self._catalog.mark_all_as_read(feed_id)
        for item in changed:
            await self._item_changed(item)
        return changed

    # =========================================================================
    # Remote
    # =========================================================================

    def on_error(self, listener: Callable[[SyncErrorEvent], None]) -> Callable[[], None]:
        """Register a listener for backend and hosted reader sync errors.

        Returns:
            A callable that unregisters the listener everywhere.
        """
        unsubscribers = [self._errors.subscribe(listener)]
        if self._engine is not None:
            unsubscribers.append(self._engine.on_error(listener))

        def unsubscribe() -> None:
            for undo in unsubscribers:
                undo()

        return unsubscribe

    async def sync_provider(self, result: SyncResult | None = None) -> StatusSyncResult | None:
        """Link new entries, then reconcile read/star flags with the hosted reader.

        Failures are surfaced as :class:`SyncErrorEvent` and, when given,
        recorded on ``result``.

        Returns:
            The status changes, or None when no provider sync ran.
        """
        if self._provider_sync is None:
            return None
        config = self._provider_sync.load_config()
        if config is None or not config.sync_enabled:
            return None
        try:
            await self._provider_sync.link_entries(config)
            return await self._provider_sync.sync_statuses(config)
        except FluxSyncError as e:
            event = SyncErrorEvent(operation=f"{config.kind} status sync", message=str(e))
            logger.error(f"Sync error in {event}")
            if result is not None:
                result.errors.append(event)
            self._errors.emit(event)
            return None

    async def full_sync(self) -> SyncResult | None:
        """Run a reconciliation cycle, then the hosted reader status sync.

        Pending write-backs are flushed first so the cycle sees them. A
        skipped cycle also skips the provider pass.

        Returns:
            The cycle result, or None without an engine.
        """
        if self._engine is None:
            await self.sync_provider()
            return None
        if self._writeback is not None:
            await self._writeback.flush()
        result = await self._engine.full_sync()
        if not result.skipped:
            result.provider_status = await self.sync_provider(result)
        return result

    async def close(self) -> None:
        """Flush pending write-backs and close the HTTP clients."""
        if self._writeback is not None:
            await self._writeback.close()
        if self._engine is not None:
            await self._engine.close()
        await self._http.close()

    async def __aenter__(self) -> FluxSync:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def info(self) -> dict[str, Any]:
        """Get orchestrator metadata."""
        last_sync = self._catalog.last_sync
        return {
            "feed_count": len(self._catalog.feeds),
            "item_count": len(self._catalog.items),
            "unread_count": sum(self._catalog.unread_counts().values()),
            "has_engine": self._engine is not None,
            "has_writeback": self._writeback is not None,
            "has_provider_sync": self._provider_sync is not None,
            "last_sync": last_sync.isoformat() if last_sync else None,
        }

"""Local catalog store.

The catalog is the authoritative local view of feeds, items and folders. It
keeps an in-memory copy, writes every committed change to a
:class:`~fluxsync.protocols.storage.KeyValueStore`, and notifies subscribers
through an :class:`~fluxsync.core.events.EventHub`.

Example:
    >>> from fluxsync.catalog.store import CatalogStore
    >>> from fluxsync.storage.memory import MemoryKeyValueStore
    >>> catalog = CatalogStore(MemoryKeyValueStore())
    >>> feed = catalog.add_feed("https://example.com/rss", "Example")
    >>> catalog.unread_count(feed.id)
    0
    >>> [f.name for f in catalog.feeds]
    ['Example']
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import ValidationError

from fluxsync.catalog.dedup import deduplicate_items, filter_new_items
from fluxsync.core.events import CatalogEvent, CatalogEventKind, EventHub
from fluxsync.core.exceptions import NotFoundError
from fluxsync.models.base import SourceKind, advance_timestamp
from fluxsync.models.feed import Feed
from fluxsync.models.item import Item
from fluxsync.protocols.storage import KeyValueStore, StorageKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryDefinition:
    """A fixed grouping of source kinds shown together."""

    id: str
    label: str
    source_kinds: tuple[SourceKind, ...]


CATEGORY_DEFINITIONS: tuple[CategoryDefinition, ...] = (
    CategoryDefinition("cat-articles", "Articles", (SourceKind.ARTICLE,)),
    CategoryDefinition("cat-reddit", "Reddit", (SourceKind.REDDIT,)),
    CategoryDefinition("cat-youtube", "YouTube", (SourceKind.YOUTUBE,)),
    CategoryDefinition("cat-social", "Social", (SourceKind.TWITTER, SourceKind.MASTODON)),
    CategoryDefinition("cat-podcast", "Podcasts", (SourceKind.PODCAST,)),
)


@dataclass
class Category:
    """A category with its feeds and folder paths resolved."""

    id: str
    label: str
    feeds: list[Feed] = field(default_factory=list)
    folders: list[str] = field(default_factory=list)


@dataclass
class FeedImport:
    """One feed to import in bulk."""

    url: str
    name: str
    source_kind: SourceKind = SourceKind.ARTICLE
    folder: str | None = None


@dataclass
class ImportResult:
    """Outcome of a bulk import.

    Example:
        >>> ImportResult(added=47, skipped=3).total
        50
    """

    added: int = 0
    skipped: int = 0
    feeds: list[Feed] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.added + self.skipped


def category_for(source_kind: SourceKind) -> str:
    """Id of the category a source kind belongs to."""
    for definition in CATEGORY_DEFINITIONS:
        if source_kind in definition.source_kinds:
            return definition.id
    return CATEGORY_DEFINITIONS[0].id


def _parent_path(path: str) -> str | None:
    if "/" not in path:
        return None
    return path.rsplit("/", 1)[0]


def _is_within(path: str, root: str) -> bool:
    return path == root or path.startswith(root + "/")


class CatalogStore:
    """In-memory catalog persisted through a key-value store.

    All mutations replace records instead of editing them in place, so lists
    handed out by the read accessors never change under the caller.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        """Initialize the catalog and load durable state.

        Args:
            kv: Durable key-value store backing the catalog.
        """
        self._kv = kv
        self._events: EventHub[CatalogEvent] = EventHub()
        self._feeds: list[Feed] = []
        self._items: list[Item] = []
        self._folders: dict[str, list[str]] = {}
        self._load()

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load(self) -> None:
        self._feeds = self._load_records(StorageKey.FEEDS, Feed)
        # Older snapshots may contain duplicates; compact on load
        self._items = deduplicate_items(self._load_records(StorageKey.ITEMS, Item))
        raw_folders = self._kv.get(StorageKey.FOLDERS.value, {}) or {}
        self._folders = {str(k): [str(p) for p in v] for k, v in raw_folders.items()}

    def _load_records(self, key: StorageKey, model: type[Feed] | type[Item]) -> list:
        records = []
        for row in self._kv.get(key.value, []) or []:
            try:
                records.append(model.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Dropping unreadable {key.value} record: {e.error_count()} errors")
        return records

    def _save_feeds(self) -> None:
        self._kv.set(StorageKey.FEEDS.value, [f.model_dump(mode="json") for f in self._feeds])

    def _save_items(self) -> None:
        self._kv.set(StorageKey.ITEMS.value, [i.to_storage() for i in self._items])

    def _save_folders(self) -> None:
        self._kv.set(StorageKey.FOLDERS.value, self._folders)

    @property
    def kv(self) -> KeyValueStore:
        """Durable store shared with the sync layer."""
        return self._kv

    def reload(self) -> None:
        """Re-read durable storage, discarding the in-memory view."""
        self._load()
        self._emit(CatalogEventKind.CATALOG_UPDATED)

    def replace_all(self, feeds: Iterable[Feed], items: Iterable[Item]) -> None:
        """Commit a complete new catalog state (used by reconciliation)."""
        self._feeds = list(feeds)
        self._items = deduplicate_items(items)
        self._save_feeds()
        self._save_items()
        self._emit(CatalogEventKind.CATALOG_UPDATED)

    @property
    def last_sync(self) -> datetime | None:
        raw = self._kv.get(StorageKey.LAST_SYNC.value)
        return datetime.fromisoformat(raw) if raw else None

    @last_sync.setter
    def last_sync(self, value: datetime | None) -> None:
        if value is None:
            self._kv.delete(StorageKey.LAST_SYNC.value)
        else:
            self._kv.set(StorageKey.LAST_SYNC.value, value.isoformat())

    # =========================================================================
    # Observers
    # =========================================================================

    def subscribe(self, listener: Callable[[CatalogEvent], None]) -> Callable[[], None]:
        """Register a change listener; returns the unsubscribe callable."""
        return self._events.subscribe(listener)

    def _emit(
        self,
        kind: CatalogEventKind,
        *,
        feeds: list[Feed] | None = None,
        items: list[Item] | None = None,
        feed_ids: list[str] | None = None,
    ) -> None:
        self._events.emit(
            CatalogEvent(kind, feeds=feeds or [], items=items or [], feed_ids=feed_ids or [])
        )

    # =========================================================================
    # Reads
    # =========================================================================

    @property
    def feeds(self) -> list[Feed]:
        return list(self._feeds)

    @property
    def items(self) -> list[Item]:
        return list(self._items)

    def get_feed(self, feed_id: str) -> Feed | None:
        return next((f for f in self._feeds if f.id == feed_id), None)

    def require_feed(self, feed_id: str) -> Feed:
        feed = self.get_feed(feed_id)
        if feed is None:
            raise NotFoundError(f"Feed not found: {feed_id}")
        return feed

    def get_item(self, item_id: str) -> Item | None:
        return next((i for i in self._items if i.id == item_id), None)

    def unread_count(self, feed_id: str) -> int:
        return sum(1 for i in self._items if i.feed_id == feed_id and not i.is_read)

    def unread_counts(self) -> dict[str, int]:
        """Unread count per feed id, including feeds with zero unread."""
        counts = {f.id: 0 for f in self._feeds}
        for item in self._items:
            if not item.is_read and item.feed_id in counts:
                counts[item.feed_id] += 1
        return counts

    def all_items(self) -> list[Item]:
        """All items, newest first."""
        return sorted(self._items, key=lambda i: i.published_at, reverse=True)

    def items_by_feed(self, feed_id: str) -> list[Item]:
        return [i for i in self.all_items() if i.feed_id == feed_id]

    def items_by_source(self, source_kind: SourceKind) -> list[Item]:
        """Items of one source kind; twitter also includes mastodon."""
        kinds = {source_kind}
        if source_kind is SourceKind.TWITTER:
            kinds.add(SourceKind.MASTODON)
        return [i for i in self.all_items() if i.source_kind in kinds]

    def known_keys(self, feed_id: str) -> set[str]:
        """Ids and urls of the items already stored for ``feed_id``."""
        keys: set[str] = set()
        for item in self._items:
            if item.feed_id != feed_id:
                continue
            keys.add(item.id)
            if item.url:
                keys.add(item.url)
        return keys

    def categories(self) -> list[Category]:
        return [
            Category(
                id=definition.id,
                label=definition.label,
                feeds=[f for f in self._feeds if f.source_kind in definition.source_kinds],
                folders=list(self._folders.get(definition.id, [])),
            )
            for definition in CATEGORY_DEFINITIONS
        ]

    def folders(self, category_id: str) -> list[str]:
        return list(self._folders.get(category_id, []))

    # =========================================================================
    # Feed operations
    # =========================================================================

    def add_feed(
        self,
        url: str,
        name: str,
        source_kind: SourceKind = SourceKind.ARTICLE,
        *,
        folder: str | None = None,
    ) -> Feed:
        """Create and store a new feed.

        Args:
            url: Endpoint URL of the feed.
            name: Display name.
            source_kind: Kind of upstream source.
            folder: Optional folder path.

        Returns:
            The stored feed.
        """
        feed = Feed.create(url=url, name=name, source_kind=source_kind, folder=folder)
        self.insert_feed(feed)
        return feed

    def insert_feed(self, feed: Feed) -> Feed:
        """Store an already-built feed."""
        self.insert_feeds([feed])
        logger.info(f"Added feed {feed.id} ({feed.url})")
        return feed

    def insert_feeds(self, feeds: list[Feed]) -> None:
        if not feeds:
            return
        self._feeds = [*self._feeds, *feeds]
        self._save_feeds()
        self._emit(CatalogEventKind.FEED_ADDED, feeds=list(feeds))

    def update_feed(self, feed_id: str, **changes) -> Feed:
        """Apply ``changes`` to a feed, advancing its ``updated_at``."""
        feed = self.require_feed(feed_id).touch(**changes)
        self._feeds = [feed if f.id == feed_id else f for f in self._feeds]
        self._save_feeds()
        self._emit(CatalogEventKind.CATALOG_UPDATED, feeds=[feed])
        return feed

    def remove_feed(self, feed_id: str) -> bool:
        """Delete a feed and every item belonging to it.

        Returns:
            True if the feed existed.
        """
        if self.get_feed(feed_id) is None:
            return False
        self._feeds = [f for f in self._feeds if f.id != feed_id]
        self._items = [i for i in self._items if i.feed_id != feed_id]
        self._save_feeds()
        self._save_items()
        logger.info(f"Removed feed {feed_id}")
        self._emit(CatalogEventKind.FEED_REMOVED, feed_ids=[feed_id])
        return True

    def rename_feed(self, feed_id: str, name: str) -> Feed:
        """Rename a feed and rewrite ``feed_name`` on its items.

        A blank name leaves the feed unchanged.
        """
        feed = self.require_feed(feed_id)
        name = name.strip()
        if not name:
            return feed
        feed = self.update_feed(feed_id, name=name)
        self._items = [
            i.model_copy(update={"feed_name": name}) if i.feed_id == feed_id else i
            for i in self._items
        ]
        self._save_items()
        return feed

    def move_feed_to_folder(self, feed_id: str, folder: str | None) -> Feed:
        return self.update_feed(feed_id, folder=folder or None)

    def import_feeds(self, entries: Iterable[FeedImport]) -> ImportResult:
        """Add many feeds at once, skipping URLs already present.

        URLs repeated within ``entries`` are skipped after their first
        occurrence.
        """
        seen = {f.url for f in self._feeds}
        result = ImportResult()
        for entry in entries:
            if entry.url in seen:
                result.skipped += 1
                continue
            seen.add(entry.url)
            result.feeds.append(
                Feed.create(
                    url=entry.url,
                    name=entry.name,
                    source_kind=entry.source_kind,
                    folder=entry.folder,
                )
            )
            result.added += 1

        self.insert_feeds(result.feeds)
        logger.info(f"Imported feeds: {result.added} added, {result.skipped} skipped")
        return result

    # =========================================================================
    # Item operations
    # =========================================================================

    def merge_incoming_items(self, items: Iterable[Item]) -> list[Item]:
        """Merge a fetched batch into the catalog.

        Items colliding with a stored item, or with an earlier item of the
        batch, are dropped. Accepted items go ahead of the existing ones.

        Returns:
            The items that were actually new.
        """
        new_items = filter_new_items(items, self._items)
        if not new_items:
            return []
        new_items = [i if i.updated_at else i.touch() for i in new_items]
        self._items = [*new_items, *self._items]
        self._save_items()
        self._emit(CatalogEventKind.ITEMS_FETCHED, items=list(new_items))
        return new_items

    def mutate_item(self, item_id: str, fn: Callable[[Item], Item]) -> Item:
        """Replace an item with ``fn(item)`` and advance its ``updated_at``.

        Raises:
            NotFoundError: If the item is not in the catalog.
        """
        current = self.get_item(item_id)
        if current is None:
            raise NotFoundError(f"Item not found: {item_id}")
        updated = fn(current)
        updated = updated.model_copy(update={"updated_at": advance_timestamp(current.updated_at)})
        self._items = [updated if i.id == item_id else i for i in self._items]
        self._save_items()
        self._emit(CatalogEventKind.ITEMS_CHANGED, items=[updated])
        return updated

    def apply_item_updates(self, updates: Iterable[Item]) -> list[Item]:
        """Replace stored items by id with already-touched versions.

        Updates for ids not in the catalog are ignored.

        Returns:
            The items that were replaced.
        """
        by_id = {i.id: i for i in updates}
        applied: list[Item] = []
        items: list[Item] = []
        for item in self._items:
            if item.id in by_id:
                item = by_id[item.id]
                applied.append(item)
            items.append(item)
        if applied:
            self._items = items
            self._save_items()
            self._emit(CatalogEventKind.ITEMS_CHANGED, items=list(applied))
        return applied

    def mark_as_read(self, item_id: str) -> Item:
        return self.mutate_item(item_id, lambda i: i.model_copy(update={"is_read": True}))

    def toggle_read(self, item_id: str) -> Item:
        return self.mutate_item(item_id, lambda i: i.model_copy(update={"is_read": not i.is_read}))

    def toggle_star(self, item_id: str) -> Item:
        return self.mutate_item(
            item_id, lambda i: i.model_copy(update={"is_starred": not i.is_starred})
        )

    def toggle_bookmark(self, item_id: str) -> Item:
        return self.mutate_item(
            item_id, lambda i: i.model_copy(update={"is_bookmarked": not i.is_bookmarked})
        )

    def mark_all_as_read(self, feed_id: str | None = None) -> list[Item]:
        """Mark every unread item (optionally of one feed) as read.

        Returns:
            The items that changed.
        """
        changed: list[Item] = []
        items: list[Item] = []
        for item in self._items:
            if not item.is_read and (feed_id is None or item.feed_id == feed_id):
                item = item.touch(is_read=True)
                changed.append(item)
            items.append(item)
        if changed:
            self._items = items
            self._save_items()
            self._emit(CatalogEventKind.ITEMS_CHANGED, items=list(changed))
        return changed

    def remove_duplicates(self) -> int:
        """Compact the catalog under the triple-key identity rule.

        Returns:
            Number of items removed.
        """
        kept = deduplicate_items(self._items)
        removed = len(self._items) - len(kept)
        if removed:
            self._items = kept
            self._save_items()
            logger.info(f"Removed {removed} duplicate items")
            self._emit(CatalogEventKind.CATALOG_UPDATED)
        return removed

    # =========================================================================
    # Folders
    # =========================================================================

    def create_folder(self, category_id: str, name: str, parent_path: str | None = None) -> str:
        """Create a folder under a category.

        Returns:
            The new folder path (``parent/name``).
        """
        name = name.strip().replace("/", "-")
        if not name:
            raise ValueError("Folder name must not be empty")
        path = f"{parent_path}/{name}" if parent_path else name
        paths = self._folders.setdefault(category_id, [])
        if path not in paths:
            paths.append(path)
            self._save_folders()
            self._emit(CatalogEventKind.CATALOG_UPDATED)
        return path

    def rename_folder(self, category_id: str, old_path: str, new_name: str) -> str:
        """Rename the last segment of ``old_path``.

        Descendant folders and feeds inside the renamed subtree follow the
        new path.

        Returns:
            The new folder path.
        """
        new_name = new_name.strip().replace("/", "-")
        if not new_name:
            return old_path
        parent = _parent_path(old_path)
        new_path = f"{parent}/{new_name}" if parent else new_name
        if new_path == old_path:
            return old_path

        def rebase(path: str) -> str:
            return new_path + path[len(old_path) :]

        paths = self._folders.get(category_id, [])
        self._folders[category_id] = [rebase(p) if _is_within(p, old_path) else p for p in paths]
        self._save_folders()

        moved = False
        feeds: list[Feed] = []
        for feed in self._feeds:
            if feed.folder and _is_within(feed.folder, old_path):
                feed = feed.touch(folder=rebase(feed.folder))
                moved = True
            feeds.append(feed)
        if moved:
            self._feeds = feeds
            self._save_feeds()
        self._emit(CatalogEventKind.CATALOG_UPDATED)
        return new_path

    def delete_folder(self, category_id: str, path: str) -> None:
        """Remove a folder and its descendants.

        Feeds inside the removed subtree move to the parent of ``path``.
        """
        parent = _parent_path(path)
        paths = self._folders.get(category_id, [])
        self._folders[category_id] = [p for p in paths if not _is_within(p, path)]
        self._save_folders()

        moved = False
        feeds: list[Feed] = []
        for feed in self._feeds:
            if feed.folder and _is_within(feed.folder, path):
                feed = feed.touch(folder=parent)
                moved = True
            feeds.append(feed)
        if moved:
            self._feeds = feeds
            self._save_feeds()
        self._emit(CatalogEventKind.CATALOG_UPDATED)

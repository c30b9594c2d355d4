"""Hosted feed reader integration.

Imports subscriptions from a provider, links local items to provider
entries, and reconciles read/starred flags in both directions. The provider
configuration and the remote-to-local id mapping live in the catalog's
key-value store.

Example:
    >>> service = ProviderSyncService(catalog)
    >>> config = MinifluxConfig(base_url="https://rss.example", api_key="k")
    >>> service.save_config(config)
    >>> added = await service.import_feeds(config)
    >>> changes = await service.sync_statuses(config)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import ValidationError

from fluxsync.adapter.registry import detect_source_from_url
from fluxsync.catalog.store import CatalogStore
from fluxsync.core.exceptions import FluxSyncError
from fluxsync.models.feed import Feed
from fluxsync.models.item import Item
from fluxsync.models.provider import (
    FeedbinConfig,
    GoogleReaderConfig,
    MinifluxConfig,
    parse_provider_config,
)
from fluxsync.protocols.storage import StorageKey
from fluxsync.providers.base import BaseProvider
from fluxsync.providers.factory import create_provider

logger = logging.getLogger(__name__)

AnyProviderConfig = MinifluxConfig | FeedbinConfig | GoogleReaderConfig
ProviderFactory = Callable[[AnyProviderConfig], BaseProvider]

ENTRY_LINK_LIMIT = 100


@dataclass
class StatusSyncResult:
    """Counts of flag changes made during a status sync."""

    pushed_read: int = 0
    pulled_read: int = 0
    pushed_starred: int = 0
    pulled_starred: int = 0

    @property
    def total(self) -> int:
        return self.pushed_read + self.pulled_read + self.pushed_starred + self.pulled_starred


class ProviderSyncService:
    """Bridges the local catalog and one hosted feed reader."""

    def __init__(
        self,
        catalog: CatalogStore,
        *,
        provider_factory: ProviderFactory = create_provider,
    ) -> None:
        """Initialize the service.

        Args:
            catalog: Local catalog; its key-value store holds the config.
            provider_factory: Builds a provider client from a config.
        """
        self._catalog = catalog
        self._kv = catalog.kv
        self._provider_factory = provider_factory

    # =========================================================================
    # Configuration
    # =========================================================================

    def save_config(self, config: AnyProviderConfig) -> None:
        self._kv.set(StorageKey.PROVIDER_CONFIG.value, config.model_dump(mode="json"))

    def load_config(self) -> AnyProviderConfig | None:
        """Return the stored provider config, or None if absent or invalid."""
        raw = self._kv.get(StorageKey.PROVIDER_CONFIG.value)
        if not raw:
            return None
        try:
            return parse_provider_config(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring stored provider config: {e.error_count()} errors")
            return None

    def clear_config(self) -> None:
        """Forget the provider config and the remote id mapping."""
        self._kv.delete(StorageKey.PROVIDER_CONFIG.value)
        self._kv.delete(StorageKey.REMOTE_MAPPING.value)

    @property
    def remote_mapping(self) -> dict[str, str]:
        """Remote feed id to local feed id."""
        return dict(self._kv.get(StorageKey.REMOTE_MAPPING.value, {}) or {})

    def _save_mapping(self, mapping: dict[str, str]) -> None:
        self._kv.set(StorageKey.REMOTE_MAPPING.value, mapping)

    # =========================================================================
    # Subscriptions and entries
    # =========================================================================

    async def test_connection(self, config: AnyProviderConfig) -> bool:
        async with self._provider_factory(config) as provider:
            return await provider.test_connection()

    async def import_feeds(self, config: AnyProviderConfig) -> int:
        """Import the provider's subscriptions into the catalog.

        Subscriptions already linked are skipped. A subscription whose URL
        matches an unlinked local feed links that feed instead of adding a
        new one.

        Returns:
            Number of feeds added.
        """
        async with self._provider_factory(config) as provider:
            remote_feeds = await provider.get_feeds()

        mapping = self.remote_mapping
        linked_remote = {f.remote_id for f in self._catalog.feeds if f.remote_id}
        by_url = {f.url: f for f in self._catalog.feeds}
        new_feeds: list[Feed] = []

        for remote in remote_feeds:
            if remote.remote_id in linked_remote:
                continue
            existing = by_url.get(remote.feed_url)
            if existing is not None:
                if not existing.remote_id:
                    self._catalog.update_feed(
                        existing.id, remote_id=remote.remote_id, provider_kind=config.kind
                    )
                    mapping[remote.remote_id] = existing.id
                continue
            feed = Feed.create(
                url=remote.feed_url,
                name=remote.title or remote.feed_url,
                source_kind=detect_source_from_url(remote.feed_url),
                remote_id=remote.remote_id,
                provider_kind=config.kind,
                folder=remote.category,
            )
            new_feeds.append(feed)
            by_url[feed.url] = feed
            mapping[remote.remote_id] = feed.id

        self._catalog.insert_feeds(new_feeds)
        self._save_mapping(mapping)
        logger.info(f"{config.kind}: imported {len(new_feeds)} of {len(remote_feeds)} feeds")
        return len(new_feeds)

    async def link_entries(self, config: AnyProviderConfig) -> int:
        """Attach provider entry ids to local items with the same URL.

        Returns:
            Number of items linked.
        """
        async with self._provider_factory(config) as provider:
            entries = await provider.get_entries(limit=ENTRY_LINK_LIMIT)

        by_url = {e.url: e for e in entries if e.url}
        updates = [
            item.touch(remote_id=entry.remote_id, remote_feed_id=entry.feed_remote_id or None)
            for item in self._catalog.items
            if not item.remote_id and (entry := by_url.get(item.url)) is not None
        ]
        self._catalog.apply_item_updates(updates)
        logger.info(f"{config.kind}: linked {len(updates)} items")
        return len(updates)

    # =========================================================================
    # Status reconciliation
    # =========================================================================

    async def sync_statuses(self, config: AnyProviderConfig) -> StatusSyncResult:
        """Reconcile read and starred flags of linked items.

        Local read state wins over remote unread; remote read state wins
        over local unread. Starring is additive in both directions.
        """
        linked = [i for i in self._catalog.items if i.remote_id]
        result = StatusSyncResult()
        if not linked:
            return result

        async with self._provider_factory(config) as provider:
            unread_ids = await provider.get_unread_ids()
            starred_ids = await provider.get_starred_ids()

            to_mark_read: list[str] = []
            to_star: list[str] = []
            updates: list[Item] = []
            for item in linked:
                remote_id = item.remote_id or ""
                changes: dict[str, bool] = {}
                if item.is_read and remote_id in unread_ids:
                    to_mark_read.append(remote_id)
                elif not item.is_read and remote_id not in unread_ids:
                    changes["is_read"] = True
                if item.is_starred and remote_id not in starred_ids:
                    to_star.append(remote_id)
                elif not item.is_starred and remote_id in starred_ids:
                    changes["is_starred"] = True
                if changes:
                    updates.append(item.touch(**changes))
                    result.pulled_read += int("is_read" in changes)
                    result.pulled_starred += int("is_starred" in changes)

            if to_mark_read:
                await provider.mark_as_read(to_mark_read)
                result.pushed_read = len(to_mark_read)
            if to_star:
                await provider.star_entries(to_star)
                result.pushed_starred = len(to_star)

        self._catalog.apply_item_updates(updates)
        logger.info(
            f"{config.kind}: status sync pushed {result.pushed_read} read, "
            f"{result.pushed_starred} starred; pulled {result.pulled_read} read, "
            f"{result.pulled_starred} starred"
        )
        return result

    async def push_item_status(self, item: Item, config: AnyProviderConfig) -> bool:
        """Mirror one item's read and starred flags to the provider.

        Failures are logged and reported through the return value; the local
        change stands either way.

        Returns:
            True if the provider accepted both calls, or the item is unlinked.
        """
        if not item.remote_id:
            return True
        ids = [item.remote_id]
        try:
            async with self._provider_factory(config) as provider:
                if item.is_read:
                    await provider.mark_as_read(ids)
                else:
                    await provider.mark_as_unread(ids)
                if item.is_starred:
                    await provider.star_entries(ids)
                else:
                    await provider.unstar_entries(ids)
        except FluxSyncError as e:
            logger.error(f"{config.kind}: failed to push status of {item.id}: {e}")
            return False
        return True

"""Tests for fluxsync.sync.provider_sync - hosted reader integration."""

from __future__ import annotations

from datetime import UTC, datetime

from fluxsync.catalog.store import CatalogStore
from fluxsync.core.exceptions import TransportError
from fluxsync.models.base import SourceKind
from fluxsync.models.feed import Feed
from fluxsync.models.item import Item
from fluxsync.models.provider import MinifluxConfig, ProviderEntry, ProviderFeed
from fluxsync.protocols.storage import StorageKey
from fluxsync.providers.base import BaseProvider
from fluxsync.storage.memory import MemoryKeyValueStore
from fluxsync.sync.provider_sync import ProviderSyncService

CONFIG = MinifluxConfig(base_url="https://rss.example", api_key="k")

# =============================================================================
# Test Fixtures
# =============================================================================


class FakeProvider(BaseProvider):
    """Provider holding its state in memory and recording mutations."""

    kind = "miniflux"

    def __init__(self):
        super().__init__("https://rss.example/v1")
        self.feeds: list[ProviderFeed] = []
        self.entries: list[ProviderEntry] = []
        self.unread: set[str] = set()
        self.starred: set[str] = set()
        self.calls: list[tuple[str, list[str]]] = []
        self.fail_mutations = False
        self.closed = 0

    async def close(self) -> None:
        self.closed += 1
        await super().close()

    async def _check_connection(self) -> None:
        return None

    async def get_feeds(self):
        return list(self.feeds)

    async def get_unread_ids(self):
        return set(self.unread)

    async def get_starred_ids(self):
        return set(self.starred)

    async def get_entries(self, since=None, limit=100):
        return self.entries[:limit]

    async def _mutate(self, name: str, ids: list[str]) -> None:
        if self.fail_mutations:
            raise TransportError("HTTP 502", status_code=502)
        self.calls.append((name, ids))

    async def mark_as_read(self, entry_ids):
        await self._mutate("read", entry_ids)

    async def mark_as_unread(self, entry_ids):
        await self._mutate("unread", entry_ids)

    async def star_entries(self, entry_ids):
        await self._mutate("star", entry_ids)

    async def unstar_entries(self, entry_ids):
        await self._mutate("unstar", entry_ids)


def make_service(
    feeds: list[Feed] | None = None, items: list[Item] | None = None
) -> tuple[ProviderSyncService, CatalogStore, FakeProvider]:
    catalog = CatalogStore(MemoryKeyValueStore())
    catalog.replace_all(feeds or [], items or [])
    provider = FakeProvider()
    return ProviderSyncService(catalog, provider_factory=lambda config: provider), catalog, provider


def linked_item(item_id: str, remote_id: str, **kwargs) -> Item:
    return Item(id=item_id, feed_id="f1", title=item_id, remote_id=remote_id, **kwargs)


# =============================================================================
# Configuration
# =============================================================================


class TestConfig:
    def test_round_trip(self) -> None:
        service, _, _ = make_service()
        service.save_config(CONFIG)
        assert service.load_config() == CONFIG

    def test_missing(self) -> None:
        service, _, _ = make_service()
        assert service.load_config() is None

    def test_invalid_stored_config_ignored(self) -> None:
        service, catalog, _ = make_service()
        catalog.kv.set(StorageKey.PROVIDER_CONFIG.value, {"kind": "miniflux", "base_url": ""})
        assert service.load_config() is None

    def test_clear_drops_mapping(self) -> None:
        service, catalog, _ = make_service()
        service.save_config(CONFIG)
        catalog.kv.set(StorageKey.REMOTE_MAPPING.value, {"7": "f1"})

        service.clear_config()

        assert service.load_config() is None
        assert service.remote_mapping == {}

    async def test_connection(self) -> None:
        service, _, provider = make_service()
        assert await service.test_connection(CONFIG)
        assert provider.closed == 1


# =============================================================================
# Import and linking
# =============================================================================


class TestImportFeeds:
    async def test_new_and_matching_feeds(self) -> None:
        local = Feed(id="f1", name="Mine", url="https://blog.example/rss")
        service, catalog, provider = make_service([local])
        provider.feeds = [
            ProviderFeed(remote_id="7", title="Blog", feed_url="https://blog.example/rss"),
            ProviderFeed(remote_id="8", title="", feed_url="https://www.reddit.com/r/python/.rss", category="News"),
        ]

        added = await service.import_feeds(CONFIG)

        assert added == 1
        linked = catalog.get_feed("f1")
        assert (linked.remote_id, linked.provider_kind) == ("7", "miniflux")
        assert linked.name == "Mine"

        new = next(f for f in catalog.feeds if f.remote_id == "8")
        assert new.name == "https://www.reddit.com/r/python/.rss"
        assert new.source_kind is SourceKind.REDDIT
        assert new.folder == "News"
        assert service.remote_mapping == {"7": "f1", "8": new.id}

    async def test_second_import_adds_nothing(self) -> None:
        service, catalog, provider = make_service()
        provider.feeds = [ProviderFeed(remote_id="7", title="Blog", feed_url="https://blog.example/rss")]

        assert await service.import_feeds(CONFIG) == 1
        assert await service.import_feeds(CONFIG) == 0
        assert len(catalog.feeds) == 1


class TestLinkEntries:
    async def test_link_by_url(self) -> None:
        items = [
            Item(id="a", feed_id="f1", title="A", url="https://blog.example/a"),
            Item(id="b", feed_id="f1", title="B", url="https://blog.example/b"),
            linked_item("c", "99", url="https://blog.example/c"),
        ]
        service, catalog, provider = make_service(items=items)
        provider.entries = [
            ProviderEntry(remote_id="1", feed_remote_id="7", url="https://blog.example/a", published_at=datetime.now(UTC)),
            ProviderEntry(remote_id="3", url="https://blog.example/c", published_at=datetime.now(UTC)),
        ]

        assert await service.link_entries(CONFIG) == 1

        item = catalog.get_item("a")
        assert (item.remote_id, item.remote_feed_id) == ("1", "7")
        assert catalog.get_item("b").remote_id is None
        assert catalog.get_item("c").remote_id == "99"


# =============================================================================
# Status reconciliation
# =============================================================================


class TestSyncStatuses:
    async def test_bidirectional(self) -> None:
        items = [
            linked_item("local-read", "1", is_read=True),
            linked_item("remote-read", "2"),
            linked_item("local-star", "3", is_starred=True),
            linked_item("remote-star", "4"),
            Item(id="unlinked", feed_id="f1", title="u"),
        ]
        service, catalog, provider = make_service(items=items)
        provider.unread = {"1", "3", "4"}
        provider.starred = {"4"}

        result = await service.sync_statuses(CONFIG)

        assert provider.calls == [("read", ["1"]), ("star", ["3"])]
        assert (result.pushed_read, result.pulled_read) == (1, 1)
        assert (result.pushed_starred, result.pulled_starred) == (1, 1)
        assert result.total == 4
        assert catalog.get_item("remote-read").is_read
        assert catalog.get_item("remote-star").is_starred
        assert not catalog.get_item("unlinked").is_read

    async def test_nothing_linked(self) -> None:
        service, _, provider = make_service(items=[Item(id="a", feed_id="f1", title="A")])
        result = await service.sync_statuses(CONFIG)
        assert result.total == 0
        assert provider.calls == []


class TestPushItemStatus:
    async def test_unlinked_is_noop(self) -> None:
        service, _, provider = make_service()
        assert await service.push_item_status(Item(id="a", feed_id="f1"), CONFIG)
        assert provider.calls == []

    async def test_pushes_both_flags(self) -> None:
        service, _, provider = make_service()
        assert await service.push_item_status(linked_item("a", "5", is_read=True), CONFIG)
        assert provider.calls == [("read", ["5"]), ("unstar", ["5"])]

    async def test_failure_reported(self) -> None:
        service, _, provider = make_service()
        provider.fail_mutations = True
        assert not await service.push_item_status(linked_item("a", "5"), CONFIG)
        assert provider.closed == 1

"""Tests for fluxsync.core.fluxsync - Main orchestrator."""

from __future__ import annotations

import httpx
import pytest

from fluxsync.backend.memory import MemoryBackend
from fluxsync.catalog.store import CatalogStore
from fluxsync.core.exceptions import AuthError, NotFoundError
from fluxsync.core.fluxsync import CollectionResult, FeedStats, FluxSync
from fluxsync.http.client import HttpClient
from fluxsync.models.base import SourceKind
from fluxsync.models.feed import Feed
from fluxsync.models.item import Item
from fluxsync.models.provider import MinifluxConfig
from fluxsync.storage.memory import MemoryKeyValueStore
from fluxsync.sync.engine import ReconciliationEngine
from fluxsync.sync.provider_sync import StatusSyncResult
from fluxsync.sync.writeback import WriteBackQueue

# =============================================================================
# Test Fixtures
# =============================================================================

BLOG_URL = "https://blog.example/feed"

BLOG_RSS = """<rss><channel><title>My Blog</title><description>Posts</description>
<item><title>One</title><link>https://blog.example/1</link><guid>1</guid></item>
<item><title>Two</title><link>https://blog.example/2</link><guid>2</guid></item>
</channel></rss>"""


def serve_blog(request: httpx.Request) -> httpx.Response:
    if request.url.host == "blog.example":
        return httpx.Response(200, text=BLOG_RSS)
    return httpx.Response(503)


def make_http(handler=serve_blog) -> HttpClient:
    return HttpClient(rate_limit=0, max_retries=0, transport=httpx.MockTransport(handler))


@pytest.fixture
def catalog() -> CatalogStore:
    """Fresh catalog."""
    return CatalogStore(MemoryKeyValueStore())


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def engine(catalog: CatalogStore, backend: MemoryBackend) -> ReconciliationEngine:
    return ReconciliationEngine(catalog, backend, user_id="u1")


class StubProviderSync:
    """Records status pushes and scheduled passes."""

    def __init__(self, config, error: Exception | None = None):
        self.config = config
        self.error = error
        self.pushed: list[str] = []
        self.passes: list[str] = []

    async def link_entries(self, config) -> int:
        self.passes.append("link")
        if self.error is not None:
            raise self.error
        return 0

    async def sync_statuses(self, config) -> StatusSyncResult:
        self.passes.append("statuses")
        return StatusSyncResult(pulled_read=2)

    def load_config(self):
        return self.config

    async def push_item_status(self, item, config) -> bool:
        self.pushed.append(item.id)
        return True


# =============================================================================
# Result types
# =============================================================================


class TestCollectionResult:
    def test_errors_formatted(self) -> None:
        result = CollectionResult(
            feed_stats={
                "a": FeedStats(feed_id="a", feed_name="A", new=2),
                "b": FeedStats(feed_id="b", feed_name="B", error="HTTP 503"),
            }
        )
        assert result.total_new == 2
        assert result.errors == ["B (HTTP 503)"]
        assert result.total_errors == 1


# =============================================================================
# Feeds
# =============================================================================


class TestAddFeed:
    """Tests for subscribing to feeds."""

    async def test_name_from_feed_and_first_fetch(self, catalog: CatalogStore) -> None:
        async with FluxSync(catalog, http=make_http()) as flux:
            feed = await flux.add_feed(BLOG_URL, "ignored", folder="Tech")

        assert feed.name == "My Blog"
        assert feed.folder == "Tech"
        assert feed.source_kind is SourceKind.ARTICLE
        assert sorted(i.title for i in catalog.items_by_feed(feed.id)) == ["One", "Two"]

    async def test_fallback_names(self, catalog: CatalogStore) -> None:
        """Unreachable feeds are kept, named by the caller or the host."""
        async with FluxSync(catalog, http=make_http()) as flux:
            named = await flux.add_feed("https://down.example/rss", "Given")
            unnamed = await flux.add_feed("https://other.example/rss")

        assert named.name == "Given"
        assert unnamed.name == "other.example"
        assert len(catalog.feeds) == 2
        assert catalog.items == []

    async def test_pushed_to_backend(self, catalog, backend, engine) -> None:
        async with FluxSync(catalog, http=make_http(), engine=engine) as flux:
            feed = await flux.add_feed(BLOG_URL)

        assert (feed.id, "u1") in backend.feeds
        assert len(backend.items) == 2
        assert backend.calls.index("upsert_feeds") < backend.calls.index("upsert_items")


class TestRemoveFeed:
    async def test_local_and_remote(self, catalog, backend, engine) -> None:
        async with FluxSync(catalog, http=make_http(), engine=engine) as flux:
            feed = await flux.add_feed(BLOG_URL)
            assert await flux.remove_feed(feed.id)
            assert not await flux.remove_feed(feed.id)

        assert catalog.feeds == [] and catalog.items == []
        assert backend.feeds == {} and backend.items == {}


class TestSyncFeed:
    async def test_unknown_feed(self, catalog: CatalogStore) -> None:
        with pytest.raises(NotFoundError):
            await FluxSync(catalog, http=make_http()).sync_feed("missing")

    async def test_second_fetch_adds_nothing(self, catalog: CatalogStore) -> None:
        feed = catalog.add_feed(BLOG_URL, "Blog")
        flux = FluxSync(catalog, http=make_http())

        assert len(await flux.sync_feed(feed.id)) == 2
        assert await flux.sync_feed(feed.id) == []

    async def test_removed_during_fetch_discards(self, catalog: CatalogStore) -> None:
        feed = catalog.add_feed(BLOG_URL, "Blog")

        def handler(request: httpx.Request) -> httpx.Response:
            catalog.remove_feed(feed.id)
            return httpx.Response(200, text=BLOG_RSS)

        flux = FluxSync(catalog, http=make_http(handler))
        assert await flux.sync_feed(feed.id) == []
        assert catalog.items == []


class TestSyncAll:
    async def test_failures_recorded_per_feed(self, catalog: CatalogStore) -> None:
        good = catalog.add_feed(BLOG_URL, "Blog")
        bad = catalog.add_feed("https://down.example/rss", "Down")
        progress: list[tuple[int, int]] = []
        flux = FluxSync(catalog, http=make_http())

        result = await flux.sync_all(on_progress=lambda done, total: progress.append((done, total)))

        assert result.feed_stats[good.id].new == 2
        assert not result.feed_stats[bad.id].ok
        assert result.errors[0].startswith("Down (")
        assert progress == [(1, 2), (2, 2)]
        assert catalog.last_sync == result.completed_at
        assert not flux.is_syncing


# =============================================================================
# Item state
# =============================================================================


class TestItemState:
    @pytest.fixture
    def seeded(self, catalog: CatalogStore) -> CatalogStore:
        feed = Feed(id="f1", name="Blog", url=BLOG_URL)
        catalog.replace_all(
            [feed],
            [
                Item(id="a", feed_id="f1", title="A", remote_id="100"),
                Item(id="b", feed_id="f1", title="B"),
            ],
        )
        return catalog

    async def test_toggles_queue_write_back(self, seeded, engine) -> None:
        writeback = WriteBackQueue(engine, delay=10)
        flux = FluxSync(seeded, http=make_http(), engine=engine, writeback=writeback)

        await flux.toggle_read("a")
        await flux.toggle_star("b")
        await flux.toggle_bookmark("b")

        assert sorted(i.id for i in writeback.pending) == ["a", "b"]
        writeback.clear()

    async def test_linked_items_pushed_to_provider(self, seeded) -> None:
        provider_sync = StubProviderSync(MinifluxConfig(base_url="https://rss.example", api_key="k"))
        flux = FluxSync(seeded, http=make_http(), provider_sync=provider_sync)

        changed = await flux.mark_all_as_read()

        assert {i.id for i in changed} == {"a", "b"}
        assert provider_sync.pushed == ["a"]

    async def test_sync_disabled(self, seeded) -> None:
        config = MinifluxConfig(base_url="https://rss.example", api_key="k", sync_enabled=False)
        provider_sync = StubProviderSync(config)
        flux = FluxSync(seeded, http=make_http(), provider_sync=provider_sync)

        await flux.mark_as_read("a")

        assert provider_sync.pushed == []

    async def test_full_sync_flushes_write_back_first(self, seeded, backend, engine) -> None:
        writeback = WriteBackQueue(engine, delay=10)
        flux = FluxSync(seeded, http=make_http(), engine=engine, writeback=writeback)

        await flux.toggle_star("a")
        result = await flux.full_sync()

        assert result.ok
        assert backend.calls[:2] == ["upsert_feeds", "upsert_items"]
        assert backend.items[("a", "u1")]["is_starred"]
        assert seeded.get_item("a").is_starred

    async def test_full_sync_without_engine(self, seeded) -> None:
        assert await FluxSync(seeded, http=make_http()).full_sync() is None


class TestInfo:
    def test_counts(self, catalog: CatalogStore) -> None:
        catalog.replace_all(
            [Feed(id="f1", url=BLOG_URL)],
            [Item(id="a", feed_id="f1", title="A"), Item(id="b", feed_id="f1", title="B", is_read=True)],
        )
        info = FluxSync(catalog, http=make_http()).info()
        assert (info["feed_count"], info["item_count"], info["unread_count"]) == (1, 2, 1)
        assert info["has_engine"] is False
        assert info["last_sync"] is None


class TestProviderPass:
    """Hosted reader status sync runs on the reconciliation schedule."""

    CONFIG = MinifluxConfig(base_url="https://rss.example", api_key="k")

    async def test_runs_after_cycle(self, catalog, engine) -> None:
        provider_sync = StubProviderSync(self.CONFIG)
        flux = FluxSync(catalog, http=make_http(), engine=engine, provider_sync=provider_sync)

        result = await flux.full_sync()

        assert provider_sync.passes == ["link", "statuses"]
        assert result.provider_status.pulled_read == 2
        assert result.ok

    async def test_runs_without_engine(self, catalog) -> None:
        provider_sync = StubProviderSync(self.CONFIG)
        flux = FluxSync(catalog, http=make_http(), provider_sync=provider_sync)

        assert await flux.full_sync() is None
        assert provider_sync.passes == ["link", "statuses"]

    async def test_disabled_config_skipped(self, catalog, engine) -> None:
        config = MinifluxConfig(base_url="https://rss.example", api_key="k", sync_enabled=False)
        provider_sync = StubProviderSync(config)
        flux = FluxSync(catalog, http=make_http(), engine=engine, provider_sync=provider_sync)

        result = await flux.full_sync()

        assert provider_sync.passes == []
        assert result.provider_status is None

    async def test_auth_failure_surfaced(self, catalog, engine) -> None:
        provider_sync = StubProviderSync(self.CONFIG, error=AuthError("rejected"))
        flux = FluxSync(catalog, http=make_http(), engine=engine, provider_sync=provider_sync)
        reported = []
        unsubscribe = flux.on_error(reported.append)

        result = await flux.full_sync()

        assert provider_sync.passes == ["link"]
        assert [e.operation for e in result.errors] == ["miniflux status sync"]
        assert reported == result.errors
        unsubscribe()
        await flux.sync_provider()
        assert len(reported) == 1

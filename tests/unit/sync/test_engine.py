"""Tests for fluxsync.sync.engine - bidirectional reconciliation."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from fluxsync.backend.memory import MemoryBackend
from fluxsync.catalog.store import CatalogStore
from fluxsync.core.exceptions import IntegrityError, TransportError
from fluxsync.models.feed import Feed
from fluxsync.models.item import Item
from fluxsync.protocols.storage import StorageKey
from fluxsync.storage.memory import MemoryKeyValueStore
from fluxsync.sync.engine import ReconciliationEngine
from fluxsync.sync.mapping import feed_to_row, item_to_row

USER = "u1"
T0 = datetime(2026, 1, 1, tzinfo=UTC)

# =============================================================================
# Test Fixtures
# =============================================================================


def make_feed(feed_id: str = "f1", **kwargs) -> Feed:
    defaults = {"id": feed_id, "name": f"Feed {feed_id}", "url": f"https://{feed_id}.example/rss", "updated_at": T0}
    defaults.update(kwargs)
    return Feed(**defaults)


def make_item(item_id: str, feed_id: str = "f1", **kwargs) -> Item:
    defaults = {
        "id": item_id,
        "feed_id": feed_id,
        "title": f"Item {item_id}",
        "url": f"https://{feed_id}.example/{item_id}",
        "content": f"<p>{item_id}</p>",
        "updated_at": T0,
    }
    defaults.update(kwargs)
    return Item(**defaults)


def make_engine(
    feeds: list[Feed] | None = None,
    items: list[Item] | None = None,
    backend: MemoryBackend | None = None,
    **kwargs,
) -> ReconciliationEngine:
    catalog = CatalogStore(MemoryKeyValueStore())
    catalog.replace_all(feeds or [], items or [])
    return ReconciliationEngine(catalog, backend or MemoryBackend(), user_id=USER, **kwargs)


async def seed(backend: MemoryBackend, feeds: list[Feed], items: list[Item] = ()) -> None:
    await backend.upsert_feeds([feed_to_row(f, USER) for f in feeds])
    await backend.upsert_items([item_to_row(i, USER) for i in items])
    backend.calls.clear()


class FailingFeedBackend(MemoryBackend):
    """Rejects every feed write."""

    async def insert_feeds(self, rows):
        raise TransportError("HTTP 500", status_code=500)

    async def upsert_feeds(self, rows):
        raise TransportError("HTTP 500", status_code=500)


# =============================================================================
# Full cycle
# =============================================================================


class TestFullSyncPush:
    async def test_local_only_records_pushed(self) -> None:
        backend = MemoryBackend()
        engine = make_engine([make_feed()], [make_item("a"), make_item("b")], backend)

        result = await engine.full_sync()

        assert result.ok
        assert (result.pushed_feeds, result.pushed_items) == (1, 2)
        assert backend.calls == ["select_feeds", "select_items", "insert_feeds", "insert_items"]
        assert set(backend.items) == {("a", USER), ("b", USER)}
        assert engine.catalog.kv.get(StorageKey.SYNCED_ITEM_IDS.value) == ["a", "b"]
        assert engine.catalog.last_sync is not None

    async def test_items_chunked(self) -> None:
        backend = MemoryBackend()
        items = [make_item(str(n)) for n in range(5)]
        engine = make_engine([make_feed()], items, backend, batch_size=2)

        await engine.full_sync()

        assert backend.calls.count("insert_items") == 3
        assert len(backend.items) == 5

    async def test_second_cycle_pushes_nothing(self) -> None:
        backend = MemoryBackend()
        engine = make_engine([make_feed()], [make_item("a")], backend)
        await engine.full_sync()
        backend.calls.clear()

        result = await engine.full_sync()

        assert (result.pushed_feeds, result.pushed_items) == (0, 0)
        assert backend.calls == ["select_feeds", "select_items"]

    async def test_failed_feed_withholds_items(self) -> None:
        backend = FailingFeedBackend()
        engine = make_engine([make_feed()], [make_item("a")], backend)
        reported = []
        engine.on_error(reported.append)

        result = await engine.full_sync()

        assert not result.ok
        assert result.pushed_items == 0
        assert backend.items == {}
        assert reported
        assert reported[0].operation == 'full_sync push feed "Feed f1"'

    async def test_pull_failure_propagates(self) -> None:
        class Unreachable(MemoryBackend):
            async def select_feeds(self, user_id):
                raise TransportError("Request failed")

        engine = make_engine([make_feed()], [], Unreachable())
        with pytest.raises(TransportError):
            await engine.full_sync()
        assert not engine.is_running


class TestFullSyncMerge:
    async def test_remote_only_records_pulled(self) -> None:
        backend = MemoryBackend()
        await seed(backend, [make_feed("r1")], [make_item("x", "r1")])
        engine = make_engine(backend=backend)

        result = await engine.full_sync()

        assert (result.pulled_feeds, result.pulled_items) == (1, 1)
        assert [f.id for f in engine.catalog.feeds] == ["r1"]
        assert engine.catalog.get_item("x").content == ""

    async def test_newer_remote_feed_wins(self) -> None:
        backend = MemoryBackend()
        await seed(backend, [make_feed(name="Remote", updated_at=T0 + timedelta(hours=1))])
        engine = make_engine([make_feed(name="Local")], backend=backend)

        await engine.full_sync()

        assert engine.catalog.get_feed("f1").name == "Remote"

    @pytest.mark.parametrize("offset", [timedelta(0), timedelta(hours=-1)])
    async def test_local_feed_kept_unless_remote_strictly_newer(self, offset: timedelta) -> None:
        backend = MemoryBackend()
        await seed(backend, [make_feed(name="Remote", updated_at=T0 + offset)])
        engine = make_engine([make_feed(name="Local")], backend=backend)

        await engine.full_sync()

        assert engine.catalog.get_feed("f1").name == "Local"

    async def test_item_flags_from_newer_side_content_kept(self) -> None:
        backend = MemoryBackend()
        remote = make_item("a", is_read=True, is_starred=True, content="", updated_at=T0 + timedelta(minutes=5))
        await seed(backend, [make_feed()], [remote])
        engine = make_engine([make_feed()], [make_item("a")], backend)

        await engine.full_sync()

        item = engine.catalog.get_item("a")
        assert item.is_read and item.is_starred
        assert item.content == "<p>a</p>"

    async def test_same_url_keeps_lower_remote_id(self) -> None:
        """A feed added on two devices converges onto the lower id."""
        backend = MemoryBackend()
        url = "https://shared.example/rss"
        await seed(backend, [make_feed("feed-100", url=url)])
        engine = make_engine(
            [make_feed("feed-200", url=url)],
            [make_item("a", "feed-200", url="https://shared.example/a")],
            backend,
        )

        result = await engine.full_sync()

        assert [f.id for f in engine.catalog.feeds] == ["feed-100"]
        assert engine.catalog.get_item("a").feed_id == "feed-100"
        assert [key[0] for key in backend.feeds] == ["feed-100"]
        assert backend.items[("a", USER)]["feed_id"] == "feed-100"
        assert result.pushed_feeds == 0
        assert result.ok

    async def test_same_url_keeps_lower_local_id(self) -> None:
        """Remote items of the retired feed move onto the surviving row."""
        backend = MemoryBackend()
        url = "https://shared.example/rss"
        await seed(
            backend,
            [make_feed("feed-200", url=url)],
            [make_item("x", "feed-200", url="https://shared.example/x")],
        )
        engine = make_engine([make_feed("feed-100", url=url)], backend=backend)

        result = await engine.full_sync()

        assert [f.id for f in engine.catalog.feeds] == ["feed-100"]
        assert engine.catalog.get_item("x").feed_id == "feed-100"
        assert [key[0] for key in backend.feeds] == ["feed-100"]
        assert backend.items[("x", USER)]["feed_id"] == "feed-100"
        assert result.ok

        backend.calls.clear()
        again = await engine.full_sync()

        assert (again.pushed_feeds, again.pushed_items, again.deleted_items) == (0, 0, 0)
        assert [i.id for i in engine.catalog.items] == ["x"]

    async def test_item_matched_by_url(self) -> None:
        backend = MemoryBackend()
        await seed(backend, [make_feed()], [make_item("remote-a", url="https://f1.example/a")])
        engine = make_engine([make_feed()], [make_item("local-a", url="https://f1.example/a")], backend)

        result = await engine.full_sync()

        assert [i.id for i in engine.catalog.items] == ["local-a"]
        assert result.pushed_items == 0


class TestDeletionConvergence:
    async def test_remote_feed_deletion_removes_local(self) -> None:
        backend = MemoryBackend()
        engine = make_engine([make_feed("f1"), make_feed("f2")], [make_item("a", "f1"), make_item("b", "f2")], backend)
        await engine.full_sync()

        await backend.delete_feed("f1", USER)
        result = await engine.full_sync()

        assert [f.id for f in engine.catalog.feeds] == ["f2"]
        assert [i.id for i in engine.catalog.items] == ["b"]
        assert (result.deleted_feeds, result.deleted_items) == (1, 1)
        assert ("f1", USER) not in backend.feeds

    async def test_remote_item_deletion_removes_local(self) -> None:
        backend = MemoryBackend()
        engine = make_engine([make_feed()], [make_item("a"), make_item("b")], backend)
        await engine.full_sync()

        del backend.items[("a", USER)]
        result = await engine.full_sync()

        assert [i.id for i in engine.catalog.items] == ["b"]
        assert (result.deleted_feeds, result.deleted_items) == (0, 1)
        assert result.pushed_items == 0
        assert ("a", USER) not in backend.items

        again = await engine.full_sync()
        assert again.pushed_items == 0
        assert ("a", USER) not in backend.items

    async def test_never_synced_local_records_survive(self) -> None:
        backend = MemoryBackend()
        engine = make_engine([make_feed()], [make_item("a")], backend)

        await engine.full_sync()

        assert [f.id for f in engine.catalog.feeds] == ["f1"]


class TestConcurrency:
    async def test_concurrent_call_skipped(self) -> None:
        class BlockingBackend(MemoryBackend):
            def __init__(self):
                super().__init__()
                self.entered = asyncio.Event()
                self.release = asyncio.Event()

            async def select_feeds(self, user_id):
                self.entered.set()
                await self.release.wait()
                return await super().select_feeds(user_id)

        backend = BlockingBackend()
        engine = make_engine(backend=backend)
        first = asyncio.create_task(engine.full_sync())
        await backend.entered.wait()

        assert engine.is_running
        second = await engine.full_sync()
        assert second.skipped

        backend.release.set()
        assert not (await first).skipped
        assert backend.calls.count("select_feeds") == 1

    async def test_toggle_during_push_survives(self) -> None:
        """The merged state is committed before pushes are awaited."""

        class SlowItemsBackend(MemoryBackend):
            def __init__(self):
                super().__init__()
                self.pushing = asyncio.Event()
                self.release = asyncio.Event()

            async def insert_items(self, rows):
                self.pushing.set()
                await self.release.wait()
                await super().insert_items(rows)

        backend = SlowItemsBackend()
        engine = make_engine([make_feed()], [make_item("a")], backend)
        cycle = asyncio.create_task(engine.full_sync())
        await backend.pushing.wait()

        engine.catalog.toggle_read("a")
        backend.release.set()
        await cycle

        assert engine.catalog.get_item("a").is_read


# =============================================================================
# Incremental pushes
# =============================================================================


class TestIncrementalPushes:
    async def test_push_feed_then_items(self) -> None:
        backend = MemoryBackend()
        engine = make_engine(backend=backend)
        feed = make_feed()

        assert await engine.push_feed(feed)
        assert await engine.push_new_items([make_item("a"), make_item("b")]) == 2

        assert backend.calls[0] == "upsert_feeds"
        assert backend.calls[-1] == "upsert_items"
        assert len(backend.items) == 2

    async def test_ensure_waits_for_in_flight_push(self) -> None:
        class SlowFeedBackend(MemoryBackend):
            def __init__(self):
                super().__init__()
                self.release = asyncio.Event()

            async def upsert_feeds(self, rows):
                await self.release.wait()
                await super().upsert_feeds(rows)

        backend = SlowFeedBackend()
        engine = make_engine(backend=backend)
        push = asyncio.create_task(engine.push_feed(make_feed()))
        await asyncio.sleep(0)
        ensure = asyncio.create_task(engine.ensure_feed_remote("f1"))
        await asyncio.sleep(0)

        backend.release.set()
        assert await push
        assert await ensure
        assert backend.calls.count("upsert_feeds") == 1

    async def test_unknown_feed_withholds_items(self) -> None:
        backend = MemoryBackend()
        engine = make_engine(backend=backend)

        assert await engine.push_new_items([make_item("a", "ghost")]) == 0
        assert "upsert_items" not in backend.calls

    async def test_rejected_batch_reported(self) -> None:
        backend = MemoryBackend()
        engine = make_engine(backend=backend)
        errors = []
        engine.on_error(errors.append)

        assert not await engine.upsert_items([make_item("a", "ghost")])
        assert errors[0].operation == "batch item upsert"
        assert "ghost" in errors[0].message

    async def test_delete_feed(self) -> None:
        backend = MemoryBackend()
        await seed(backend, [make_feed()], [make_item("a")])
        engine = make_engine(backend=backend)

        assert await engine.delete_feed("f1")
        assert backend.feeds == {} and backend.items == {}

    async def test_integrity_error_type(self) -> None:
        backend = MemoryBackend()
        with pytest.raises(IntegrityError):
            await backend.upsert_items([item_to_row(make_item("a", "ghost"), USER)])

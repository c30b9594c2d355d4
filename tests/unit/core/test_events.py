"""Tests for fluxsync.core.events."""

from __future__ import annotations

import logging

from fluxsync.core.events import CatalogEvent, CatalogEventKind, EventHub, SyncErrorEvent


class TestEventHub:
    def test_emit_and_unsubscribe(self) -> None:
        hub: EventHub[str] = EventHub()
        received: list[str] = []
        unsubscribe = hub.subscribe(received.append)

        hub.emit("one")
        unsubscribe()
        unsubscribe()
        hub.emit("two")

        assert received == ["one"]
        assert len(hub) == 0

    def test_failing_listener_isolated(self, caplog) -> None:
        hub: EventHub[str] = EventHub()
        received: list[str] = []

        def broken(event: str) -> None:
            raise RuntimeError("boom")

        hub.subscribe(broken)
        hub.subscribe(received.append)

        with caplog.at_level(logging.ERROR, logger="fluxsync.core.events"):
            hub.emit("event")

        assert received == ["event"]
        assert "failed" in caplog.text


class TestEventTypes:
    def test_catalog_event_defaults(self) -> None:
        event = CatalogEvent(kind=CatalogEventKind.FEED_REMOVED, feed_ids=["f1"])
        assert event.feeds == [] and event.items == []

    def test_sync_error_str(self) -> None:
        assert str(SyncErrorEvent(operation="delete_feed", message="HTTP 500")) == "delete_feed: HTTP 500"

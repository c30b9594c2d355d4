"""Catalog and sync signals.

Dependents subscribe to an :class:`EventHub` instead of listening on a global
broadcast medium. Two signal families exist: catalog events (the catalog
changed, readers should refresh derived views) and sync errors (an operation
failed and the user should be told).

Example:
    >>> from fluxsync.core.events import CatalogEvent, CatalogEventKind, EventHub
    >>> hub = EventHub()
    >>> seen = []
    >>> unsubscribe = hub.subscribe(seen.append)
    >>> hub.emit(CatalogEvent(CatalogEventKind.CATALOG_UPDATED))
    >>> seen[0].kind.value
    'catalog_updated'
    >>> unsubscribe()
    >>> hub.emit(CatalogEvent(CatalogEventKind.CATALOG_UPDATED))
    >>> len(seen)
    1
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from fluxsync.models.feed import Feed
    from fluxsync.models.item import Item

logger = logging.getLogger(__name__)

E = TypeVar("E")


class CatalogEventKind(str, Enum):
    """What changed in the catalog."""

    FEED_ADDED = "feed_added"
    FEED_REMOVED = "feed_removed"
    ITEMS_CHANGED = "items_changed"
    ITEMS_FETCHED = "items_fetched"
    CATALOG_UPDATED = "catalog_updated"


@dataclass
class CatalogEvent:
    """A change notification emitted by the catalog store."""

    kind: CatalogEventKind
    feeds: list[Feed] = field(default_factory=list)
    items: list[Item] = field(default_factory=list)
    feed_ids: list[str] = field(default_factory=list)


@dataclass
class SyncErrorEvent:
    """A user-facing sync failure.

    Example:
        >>> err = SyncErrorEvent(operation="push_feed", message="HTTP 500")
        >>> str(err)
        'push_feed: HTTP 500'
    """

    operation: str
    message: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __str__(self) -> str:
        return f"{self.operation}: {self.message}"


class EventHub(Generic[E]):
    """Synchronous observer registry.

    Listener failures are logged and never interrupt the emitter or the
    remaining listeners.
    """

    def __init__(self) -> None:
        self._listeners: list[Callable[[E], None]] = []

    def subscribe(self, listener: Callable[[E], None]) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: E) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Event listener {listener!r} failed")

    def __len__(self) -> int:
        return len(self._listeners)

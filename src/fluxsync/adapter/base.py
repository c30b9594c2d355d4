"""Base source adapter implementation.

Provides the SourceAdapter protocol and BaseSourceAdapter base class for
adapters that turn an upstream source into canonical catalog items.

An adapter works in two stages. ``fetch_channel`` rewrites the URL, fetches
the payload and parses it into a :class:`FeedChannel` of raw entries.
``fetch_items`` then classifies the channel, drops entries the catalog
already knows, and converts the rest into :class:`~fluxsync.models.item.Item`.

Example:
    >>> from fluxsync.adapter.base import BaseSourceAdapter, SourceAdapter
    >>> hasattr(SourceAdapter, "fetch_items")
    True
    >>> hasattr(BaseSourceAdapter, "fetch_channel")
    True
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from fluxsync.core.exceptions import FeedError
from fluxsync.http.client import HttpClient
from fluxsync.models.base import SourceKind, utc_now
from fluxsync.models.feed import Feed
from fluxsync.models.item import Item
from fluxsync.utils.retry import RetryConfig
from fluxsync.utils.text import estimate_read_time, make_excerpt

logger = logging.getLogger(__name__)

UNTITLED = "Untitled"


@dataclass
class FeedEntry:
    """One raw entry parsed from an upstream payload."""

    title: str = ""
    link: str = ""
    description: str = ""
    content: str = ""
    published: datetime | None = None
    author: str = ""
    guid: str = ""
    enclosure_url: str | None = None
    enclosure_type: str | None = None
    duration: int | None = None
    thumbnail: str | None = None
    tags: list[str] = field(default_factory=list)
    comment_count: int | None = None
    comments_url: str | None = None

    @property
    def key(self) -> str:
        """Upstream identity: guid, falling back to link."""
        return self.guid or self.link

    @property
    def has_audio(self) -> bool:
        return bool(self.enclosure_type and self.enclosure_type.startswith("audio"))


@dataclass
class FeedChannel:
    """A parsed upstream payload."""

    title: str = ""
    link: str = ""
    description: str = ""
    entries: list[FeedEntry] = field(default_factory=list)


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol defining the source adapter interface.

    Example:
        >>> from fluxsync.adapter.base import SourceAdapter
        >>> hasattr(SourceAdapter, "name")
        True
    """

    @property
    def name(self) -> str:
        """Adapter name."""
        ...

    async def fetch_channel(self, url: str) -> FeedChannel:
        """Fetch and parse the upstream payload at ``url``."""
        ...

    async def fetch_items(self, feed: Feed, known_keys: set[str] | None = None) -> list[Item]:
        """Fetch new items for ``feed``.

        Args:
            feed: Feed to fetch.
            known_keys: Ids, guids or links the catalog already holds.

        Returns:
            Canonical items, unknown to ``known_keys``.
        """
        ...


class BaseSourceAdapter(ABC):
    """Base class for source adapters.

    Subclasses implement :meth:`fetch_channel`. The base class wraps every
    failure in :class:`~fluxsync.core.exceptions.FeedError`, so a failing
    fetch never hands partial results to the catalog, and keeps the
    bookkeeping of the last fetch.
    """

    name: str = "base"

    def __init__(self, http: HttpClient, retry: RetryConfig | None = None) -> None:
        """Initialize the adapter.

        Args:
            http: Shared HTTP client (carries the optional fetch proxy).
            retry: Backoff policy for rate-limited upstreams, if the adapter
                retries at all.
        """
        self._http = http
        self._retry = retry

        # Metadata tracking
        self._last_fetch_at: datetime | None = None
        self._last_fetch_count: int = 0
        self._last_fetch_errors: int = 0

    @property
    def http(self) -> HttpClient:
        return self._http

    @property
    def last_fetch_at(self) -> datetime | None:
        """When the last fetch occurred."""
        return self._last_fetch_at

    @property
    def last_fetch_count(self) -> int:
        """Number of items from last fetch."""
        return self._last_fetch_count

    @property
    def last_fetch_errors(self) -> int:
        """Number of entries skipped during the last fetch."""
        return self._last_fetch_errors

    @property
    def info(self) -> dict[str, Any]:
        """Adapter information."""
        return {
            "name": self.name,
            "last_fetch_at": self._last_fetch_at,
            "last_fetch_count": self._last_fetch_count,
            "last_fetch_errors": self._last_fetch_errors,
        }

    @abstractmethod
    async def fetch_channel(self, url: str) -> FeedChannel:
        """Fetch and parse the payload at ``url``.

        Raises:
            TransportError: On network or HTTP failure.
            FormatError: If the payload is empty or malformed.
        """
        ...

    async def fetch_items(self, feed: Feed, known_keys: set[str] | None = None) -> list[Item]:
        """Fetch new items for ``feed``.

        Raises:
            FeedError: If the fetch or parse fails. ``cause`` holds the
                underlying transport, rate-limit or format error.
        """
        known = known_keys or set()
        self._last_fetch_count = 0
        self._last_fetch_errors = 0

        try:
            channel = await self.fetch_channel(feed.url)
        except Exception as e:
            logger.warning(f"{self.name}: fetch failed for {feed.url}: {e}")
            raise FeedError(str(e), source=feed.id, cause=e) from e

        source_kind = self.classify(feed, channel)
        items: list[Item] = []
        for index, entry in enumerate(channel.entries):
            item_id = f"{feed.id}-{entry.key or index}"
            if item_id in known or (entry.key and entry.key in known):
                continue
            try:
                items.append(self.to_item(feed, entry, item_id, source_kind))
            except (ValidationError, ValueError, TypeError) as e:
                # Skip invalid entries, don't stop the batch
                self._last_fetch_errors += 1
                logger.debug(f"{self.name}: skipping entry {item_id}: {e}")

        self._last_fetch_count = len(items)
        self._last_fetch_at = datetime.now(UTC)
        logger.debug(f"{self.name}: {len(items)} new items from {feed.url}")
        return items

    def classify(self, feed: Feed, channel: FeedChannel) -> SourceKind:
        """Effective source kind of the fetched items.

        An article feed carrying audio enclosures is a podcast.
        """
        if feed.source_kind is SourceKind.ARTICLE and any(e.has_audio for e in channel.entries):
            return SourceKind.PODCAST
        return feed.source_kind

    def to_item(self, feed: Feed, entry: FeedEntry, item_id: str, source_kind: SourceKind) -> Item:
        """Convert a raw entry to a catalog item."""
        body = entry.content or entry.description
        return Item(
            id=item_id,
            feed_id=feed.id,
            title=entry.title or UNTITLED,
            excerpt=make_excerpt(entry.description),
            content=body,
            author=entry.author or feed.name,
            published_at=entry.published or utc_now(),
            url=entry.link or feed.url,
            source_kind=source_kind,
            feed_name=feed.name,
            read_time=estimate_read_time(body),
            thumbnail=entry.thumbnail,
            enclosure_url=entry.enclosure_url,
            enclosure_type=entry.enclosure_type,
            duration=entry.duration,
            tags=list(entry.tags),
            comment_count=entry.comment_count,
            comments_url=entry.comments_url,
        )

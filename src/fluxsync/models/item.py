"""Item model and identity rules.

An incoming item is the same logical item as an existing one if **any** of
its identity keys match: the ``id``, the non-empty ``url``, or the pair of
``feed_id`` and normalized title.

Example:
    >>> from fluxsync.models.item import Item, normalize_title
    >>> normalize_title("  Hello World ")
    'hello world'
    >>> item = Item(id="f1-a", feed_id="f1", title="Hello", url="")
    >>> item.title_key
    'f1::hello'
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from fluxsync.models.base import FluxModel, SourceKind, advance_timestamp, utc_now


def normalize_title(title: str) -> str:
    """Normalize a title for identity comparison."""
    return title.strip().lower()


class Item(FluxModel):
    """A single entry read from a feed."""

    id: str = Field(..., min_length=1)
    feed_id: str = Field(...)
    title: str = Field(default="")
    excerpt: str = Field(default="")
    content: str = Field(default="")
    full_content: str | None = Field(default=None, description="Extracted body, never persisted")
    author: str = Field(default="")
    published_at: datetime = Field(default_factory=utc_now)
    url: str = Field(default="")
    is_read: bool = False
    is_starred: bool = False
    is_bookmarked: bool = False
    source_kind: SourceKind = Field(default=SourceKind.ARTICLE)
    feed_name: str = Field(default="", description="Denormalized from the feed")
    remote_id: str | None = None
    remote_feed_id: str | None = None
    updated_at: datetime | None = None

    # Presentation extras carried through ingestion
    read_time: int | None = None
    thumbnail: str | None = None
    enclosure_url: str | None = None
    enclosure_type: str | None = None
    duration: int | None = None
    tags: list[str] = Field(default_factory=list)
    comment_count: int | None = None
    comments_url: str | None = None

    @property
    def title_key(self) -> str:
        """Identity key built from the feed and the normalized title."""
        return f"{self.feed_id}::{normalize_title(self.title)}"

    def touch(self, **changes: Any) -> Item:
        """Return a copy with ``changes`` applied and ``updated_at`` advanced."""
        changes["updated_at"] = advance_timestamp(self.updated_at)
        return self.model_copy(update=changes)

    def to_storage(self) -> dict[str, Any]:
        """Serialize for durable storage, dropping the large extracted body."""
        return self.model_dump(mode="json", exclude={"full_content"})

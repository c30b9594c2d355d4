"""Feed model.

A Feed is one subscription in the catalog. Its local identity is ``id``;
across devices the same subscription is recognised by ``url``.

Example:
    >>> from fluxsync.models.feed import Feed
    >>> from fluxsync.models.base import SourceKind
    >>> feed = Feed.create(url="https://example.com/rss", name="Example")
    >>> feed.source_kind
    <SourceKind.ARTICLE: 'article'>
    >>> feed.icon
    '◇'
"""

from __future__ import annotations

import itertools
import time
from datetime import datetime
from typing import Any

from pydantic import Field

from fluxsync.models.base import SOURCE_DEFAULTS, FluxModel, SourceKind, advance_timestamp, utc_now

_id_counter = itertools.count(int(time.time() * 1000))


def generate_id(prefix: str) -> str:
    """Generate a locally unique, monotonically increasing identifier.

    Example:
        >>> a, b = generate_id("feed"), generate_id("feed")
        >>> a.startswith("feed-") and a != b
        True
    """
    return f"{prefix}-{next(_id_counter)}"


class Feed(FluxModel):
    """A subscribed source."""

    id: str = Field(..., min_length=1, description="Local identifier")
    name: str = Field(default="", description="Display name")
    source_kind: SourceKind = Field(default=SourceKind.ARTICLE)
    url: str = Field(..., description="Endpoint URL, cross-device identity")
    icon: str = Field(default="", description="Display only")
    color: str = Field(default="", description="Display only")
    folder: str | None = Field(default=None, description="Folder path like 'Tech/Frontend'")
    remote_id: str | None = Field(default=None, description="Identifier on the provider side")
    provider_kind: str | None = Field(default=None)
    updated_at: datetime | None = Field(default=None)

    @classmethod
    def create(
        cls,
        url: str,
        name: str,
        source_kind: SourceKind = SourceKind.ARTICLE,
        **extra: Any,
    ) -> Feed:
        """Build a new feed with display defaults for its source kind."""
        icon, color = SOURCE_DEFAULTS[source_kind]
        values: dict[str, Any] = {
            "id": generate_id("feed"),
            "name": name,
            "source_kind": source_kind,
            "url": url,
            "icon": icon,
            "color": color,
            "updated_at": utc_now(),
        }
        values.update(extra)
        return cls(**values)

    def touch(self, **changes: Any) -> Feed:
        """Return a copy with ``changes`` applied and ``updated_at`` advanced.

        Example:
            >>> f = Feed.create(url="https://a.example/rss", name="A")
            >>> g = f.touch(name="B")
            >>> g.name, g.updated_at > f.updated_at
            ('B', True)
        """
        changes["updated_at"] = advance_timestamp(self.updated_at)
        return self.model_copy(update=changes)

"""Conversion between catalog models and remote backend rows.

Rows use the remote column names. A record without ``updated_at`` is
stamped with the current time when converted to a row; rows read back keep
whatever the backend holds.

Example:
    >>> from fluxsync.models.feed import Feed
    >>> from fluxsync.sync.mapping import feed_to_row, row_to_feed
    >>> feed = Feed(id="feed-1", name="Blog", url="https://b.example/rss")
    >>> row = feed_to_row(feed, "user-1")
    >>> row["user_id"], row["source"]
    ('user-1', 'article')
    >>> row_to_feed(row).url
    'https://b.example/rss'
"""

from __future__ import annotations

from typing import Any

from fluxsync.models.base import SOURCE_DEFAULTS, SourceKind, utc_now
from fluxsync.models.feed import Feed
from fluxsync.models.item import Item

FEEDS_TABLE = "feeds"
ITEMS_TABLE = "feed_items"


def _source_kind(value: Any) -> SourceKind:
    try:
        return SourceKind(value)
    except ValueError:
        return SourceKind.ARTICLE


def feed_to_row(feed: Feed, user_id: str) -> dict[str, Any]:
    return {
        "id": feed.id,
        "user_id": user_id,
        "name": feed.name,
        "source": feed.source_kind.value,
        "icon": feed.icon,
        "url": feed.url,
        "color": feed.color,
        "folder": feed.folder,
        "updated_at": (feed.updated_at or utc_now()).isoformat(),
    }


def row_to_feed(row: dict[str, Any]) -> Feed:
    source_kind = _source_kind(row.get("source"))
    icon, color = SOURCE_DEFAULTS[source_kind]
    return Feed(
        id=row["id"],
        name=row.get("name") or "",
        source_kind=source_kind,
        url=row.get("url") or "",
        icon=row.get("icon") or icon,
        color=row.get("color") or color,
        folder=row.get("folder") or None,
        updated_at=row.get("updated_at"),
    )


def item_to_row(item: Item, user_id: str) -> dict[str, Any]:
    return {
        "id": item.id,
        "user_id": user_id,
        "feed_id": item.feed_id,
        "title": item.title,
        "excerpt": item.excerpt,
        "author": item.author,
        "published_at": item.published_at.isoformat(),
        "url": item.url,
        "is_read": item.is_read,
        "is_starred": item.is_starred,
        "is_bookmarked": item.is_bookmarked,
        "source": item.source_kind.value,
        "feed_name": item.feed_name,
        "tags": list(item.tags),
        "comment_count": item.comment_count,
        "comments_url": item.comments_url,
        "updated_at": (item.updated_at or utc_now()).isoformat(),
    }


def row_to_item(row: dict[str, Any]) -> Item:
    """Build an item from a row. Content is not stored remotely and is empty."""
    return Item(
        id=row["id"],
        feed_id=row.get("feed_id") or "",
        title=row.get("title") or "",
        excerpt=row.get("excerpt") or "",
        author=row.get("author") or "",
        published_at=row.get("published_at") or utc_now(),
        url=row.get("url") or "",
        is_read=bool(row.get("is_read")),
        is_starred=bool(row.get("is_starred")),
        is_bookmarked=bool(row.get("is_bookmarked")),
        source_kind=_source_kind(row.get("source")),
        feed_name=row.get("feed_name") or "",
        tags=list(row.get("tags") or []),
        comment_count=row.get("comment_count"),
        comments_url=row.get("comments_url"),
        updated_at=row.get("updated_at"),
    )

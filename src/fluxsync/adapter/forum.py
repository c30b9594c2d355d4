"""Forum adapter for Reddit listings.

Reddit hosts are rewritten to ``old.reddit.com`` (less aggressive blocking)
and the listing is read as JSON. URLs that already end in ``.rss`` are read
as syndication feeds.

Example:
    >>> from fluxsync.adapter.forum import resolve_reddit_url
    >>> resolve_reddit_url("https://www.reddit.com/r/python/")
    'https://old.reddit.com/r/python/.json'
    >>> resolve_reddit_url("https://example.com/feed")
    'https://example.com/feed'
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from fluxsync.adapter.base import FeedChannel, FeedEntry
from fluxsync.adapter.syndication import SyndicationAdapter, parse_feed
from fluxsync.core.exceptions import FormatError

logger = logging.getLogger(__name__)

REDDIT_HOST = "old.reddit.com"
REDDIT_BASE = f"https://{REDDIT_HOST}"


def resolve_reddit_url(url: str) -> str:
    """Rewrite a Reddit URL to its ``old.reddit.com`` JSON listing."""
    parts = urlsplit(url)
    if "reddit.com" not in parts.netloc:
        return url
    path = parts.path.rstrip("/")
    if not path.endswith((".rss", ".json")):
        path += "/.json"
    return urlunsplit(("https", REDDIT_HOST, path, parts.query, ""))


def _thumbnail(post: dict[str, Any]) -> str | None:
    thumbnail = post.get("thumbnail") or ""
    if thumbnail.startswith("http"):
        return thumbnail
    return None


def parse_listing(data: Any) -> FeedChannel:
    """Parse a Reddit listing document.

    Raises:
        FormatError: If the document is not a listing.
    """
    try:
        children = data["data"]["children"]
    except (KeyError, TypeError) as e:
        raise FormatError("Unexpected Reddit listing shape") from e

    entries: list[FeedEntry] = []
    subreddit = ""
    for child in children:
        post = child.get("data") or {}
        if not post.get("id"):
            continue
        subreddit = subreddit or post.get("subreddit_name_prefixed", "")
        permalink = f"{REDDIT_BASE}{post.get('permalink', '')}"
        link = post.get("url_overridden_by_dest") or post.get("url") or permalink
        selftext = post.get("selftext_html") or ""
        created = post.get("created_utc")
        entries.append(
            FeedEntry(
                title=post.get("title", ""),
                link=link,
                description=post.get("selftext") or "",
                content=selftext,
                published=datetime.fromtimestamp(created, UTC) if created else None,
                author=f"u/{post['author']}" if post.get("author") else "",
                guid=post.get("name") or post["id"],
                thumbnail=_thumbnail(post),
                tags=[post["link_flair_text"]] if post.get("link_flair_text") else [],
                comment_count=post.get("num_comments"),
                comments_url=permalink,
            )
        )
    return FeedChannel(title=subreddit, link=REDDIT_BASE, entries=entries)


class ForumAdapter(SyndicationAdapter):
    """Source adapter for Reddit."""

    name = "forum"

    async def resolve_url(self, url: str) -> str:
        return resolve_reddit_url(url)

    async def fetch_channel(self, url: str) -> FeedChannel:
        resolved = await self.resolve_url(url)
        text = await self._http.get_text(resolved)
        if not urlsplit(resolved).path.endswith(".json"):
            return parse_feed(text)
        if not text.strip():
            raise FormatError("Empty response")
        response_json = _loads(text)
        channel = parse_listing(response_json)
        logger.info(f"Parsed {len(channel.entries)} posts from {resolved}")
        return channel


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(f"Invalid JSON: {e}") from e

"""Social timeline adapter for Twitter/X profiles.

Reads the public syndication timeline page of a profile and extracts the
embedded ``__NEXT_DATA__`` JSON. The endpoint rate-limits aggressively, so
HTTP 429 answers are retried with exponential backoff before surfacing a
:class:`~fluxsync.core.exceptions.RateLimitedError`.

Example:
    >>> from fluxsync.adapter.social import extract_username
    >>> extract_username("https://x.com/@jack")
    'jack'
    >>> extract_username("rsshub://twitter/user/jack")
    'jack'
    >>> extract_username("https://example.com/feed") is None
    True
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from fluxsync.adapter.base import BaseSourceAdapter, FeedChannel, FeedEntry
from fluxsync.adapter.syndication import parse_date
from fluxsync.core.exceptions import FormatError, RateLimitedError
from fluxsync.http.client import HttpClient
from fluxsync.utils.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

SYNDICATION_URL = "https://syndication.twitter.com/srv/timeline-profile/screen-name/"
PROFILE_BASE = "https://x.com"
MAX_TITLE_LENGTH = 100

_RSSHUB_RE = re.compile(r"^rsshub://twitter/user/([A-Za-z0-9_]+)")
_PROFILE_RE = re.compile(r"(?:^|//|\.)(?:twitter\.com|x\.com)/@?([A-Za-z0-9_]+)/?$", re.IGNORECASE)
_NITTER_RE = re.compile(r"nitter\.[^/]+/([A-Za-z0-9_]+)", re.IGNORECASE)
_NEXT_DATA_RE = re.compile(r'<script id="__NEXT_DATA__"[^>]*>([\s\S]*?)</script>')


def extract_username(url: str) -> str | None:
    """Username of a Twitter/X profile URL, or None."""
    for pattern in (_RSSHUB_RE, _PROFILE_RE, _NITTER_RE):
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def make_title(text: str) -> str:
    """First line of ``text``, shortened to at most 100 characters.

    Example:
        >>> make_title("first\\nsecond")
        'first'
        >>> len(make_title("x" * 150))
        100
    """
    first_line = text.split("\n")[0]
    if len(first_line) > MAX_TITLE_LENGTH:
        return first_line[: MAX_TITLE_LENGTH - 3] + "..."
    return first_line


def _expand_urls(text: str, entities: dict[str, Any]) -> str:
    for url in entities.get("urls") or []:
        if url.get("url") and url.get("expanded_url"):
            text = text.replace(url["url"], url["expanded_url"])
    return text


def _tweet_html(text: str, entities: dict[str, Any]) -> str:
    content = "<p>{}</p>".format(text.replace("\n", "<br/>"))
    for media in entities.get("media") or []:
        if media.get("type") == "photo":
            content += f'<img src="{media["media_url_https"]}" />'
    return content


def parse_timeline(page: str, username: str) -> FeedChannel:
    """Parse a syndication timeline page.

    Replies are dropped.

    Raises:
        FormatError: If the page carries no timeline.
    """
    match = _NEXT_DATA_RE.search(page)
    if not match:
        raise FormatError("Could not parse Twitter syndication response")
    try:
        data = json.loads(match.group(1))
        timeline = data["props"]["pageProps"]["timeline"]["entries"]
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        raise FormatError("No timeline entries found") from e
    if not isinstance(timeline, list):
        raise FormatError("No timeline entries found")

    tweets = [
        e["content"]["tweet"]
        for e in timeline
        if e.get("type") == "tweet" and (e.get("content") or {}).get("tweet")
    ]

    entries: list[FeedEntry] = []
    for tweet in tweets:
        if tweet.get("in_reply_to_screen_name"):
            continue
        entities = tweet.get("entities") or {}
        text = _expand_urls(tweet.get("full_text") or tweet.get("text") or "", entities)
        entries.append(
            FeedEntry(
                title=make_title(text),
                link=f"{PROFILE_BASE}{tweet.get('permalink', '')}",
                description=text,
                content=_tweet_html(text, entities),
                published=parse_date(tweet.get("created_at") or ""),
                author=f"@{tweet['user']['screen_name']}",
                guid=tweet["id_str"],
            )
        )

    title = tweets[0]["user"].get("name") if tweets else None
    return FeedChannel(
        title=title or f"@{username}",
        link=f"{PROFILE_BASE}/{username}",
        description=f"Tweets from @{username}",
        entries=entries,
    )


class SocialTimelineAdapter(BaseSourceAdapter):
    """Source adapter for Twitter/X profile timelines."""

    name = "social"

    def __init__(self, http: HttpClient, retry: RetryConfig | None = None) -> None:
        """Initialize the adapter.

        Args:
            http: Shared HTTP client.
            retry: Backoff policy for HTTP 429 (default: 3 attempts, 2s base).
        """
        super().__init__(http, retry)
        self._retry = retry or RetryConfig(
            max_attempts=3,
            base_delay=2.0,
            retry_on=(RateLimitedError,),
        )

    async def fetch_channel(self, url: str) -> FeedChannel:
        username = extract_username(url)
        if username is None:
            raise FormatError(f"Not a Twitter/X profile URL: {url}")
        page = await self._fetch_timeline(username)
        return parse_timeline(page, username)

    async def _fetch_timeline(self, username: str) -> str:
        url = f"{SYNDICATION_URL}{username}"
        try:
            return await with_retry(lambda: self._http.get_text(url), self._retry)
        except RateLimitedError as e:
            raise RateLimitedError(
                "Twitter rate limit exceeded, please wait a moment and try again",
                attempts=self._retry.max_attempts,
                retry_after=e.retry_after,
                url=url,
            ) from e

"""Adapter registry and source detection.

Example:
    >>> from fluxsync.adapter.registry import detect_source_from_url
    >>> detect_source_from_url("https://www.reddit.com/r/python").value
    'reddit'
    >>> detect_source_from_url("https://feeds.simplecast.com/abc").value
    'podcast'
    >>> detect_source_from_url("https://blog.example/feed").value
    'article'
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from fluxsync.adapter.base import BaseSourceAdapter
from fluxsync.adapter.forum import ForumAdapter
from fluxsync.adapter.social import SocialTimelineAdapter, extract_username
from fluxsync.adapter.syndication import SyndicationAdapter
from fluxsync.adapter.video import VideoChannelAdapter
from fluxsync.core.exceptions import FluxSyncError
from fluxsync.http.client import HttpClient
from fluxsync.models.base import SourceKind
from fluxsync.utils.retry import RetryConfig

logger = logging.getLogger(__name__)

PODCAST_HOSTS = (
    "podcasts.apple.com",
    "anchor.fm",
    "feeds.buzzsprout.com",
    "podbean.com",
    "feeds.simplecast.com",
    "feeds.megaphone.fm",
    "omnycontent.com",
    "feeds.transistor.fm",
    "feeds.acast.com",
    "feeds.feedburner.com/pod",
    "spreaker.com",
    "podtrac.com",
    "feeds.libsyn.com",
    "rss.art19.com",
    "audioboom.com",
    "soundcloud.com",
    "spotify.com/show",
)

# x.com as a host, not as the tail of another domain
_X_HOST_RE = re.compile(r"(?:^|//|\.)x\.com(?:/|$)")

_ADAPTERS: dict[SourceKind, type[BaseSourceAdapter]] = {
    SourceKind.ARTICLE: SyndicationAdapter,
    SourceKind.PODCAST: SyndicationAdapter,
    SourceKind.MASTODON: SyndicationAdapter,
    SourceKind.YOUTUBE: VideoChannelAdapter,
    SourceKind.REDDIT: ForumAdapter,
    SourceKind.TWITTER: SocialTimelineAdapter,
}


def register_adapter(source_kind: SourceKind, adapter_cls: type[BaseSourceAdapter]) -> None:
    """Use ``adapter_cls`` for feeds of ``source_kind``."""
    _ADAPTERS[source_kind] = adapter_cls


def get_adapter(
    source_kind: SourceKind,
    http: HttpClient,
    retry: RetryConfig | None = None,
) -> BaseSourceAdapter:
    """Instantiate the adapter registered for ``source_kind``.

    ``retry`` overrides the adapter's backoff policy for rate-limited
    upstreams.

    Example:
        >>> from fluxsync.http import HttpClient
        >>> get_adapter(SourceKind.YOUTUBE, HttpClient()).name
        'video'
    """
    return _ADAPTERS.get(source_kind, SyndicationAdapter)(http, retry)


def detect_source_from_url(url: str) -> SourceKind:
    """Guess the source kind of a feed from its URL."""
    lowered = url.lower()
    if "reddit" in lowered:
        return SourceKind.REDDIT
    if "youtube.com" in lowered or "youtu.be" in lowered:
        return SourceKind.YOUTUBE
    if "twitter.com" in lowered or "nitter" in lowered or _X_HOST_RE.search(lowered):
        return SourceKind.TWITTER
    if lowered.startswith("rsshub://twitter/"):
        return SourceKind.TWITTER
    if "mastodon" in lowered or "@" in lowered:
        return SourceKind.MASTODON
    if any(host in lowered for host in PODCAST_HOSTS):
        return SourceKind.PODCAST
    return SourceKind.ARTICLE


@dataclass
class FeedInfo:
    name: str
    description: str = ""


async def discover_feed_info(
    url: str,
    http: HttpClient,
    source_kind: SourceKind | None = None,
) -> FeedInfo | None:
    """Read the display name and description of a feed.

    Twitter/X profiles are named without a network call, since the
    timeline endpoint rate-limits heavily; the first sync fetches the rest.

    Returns:
        The feed info, or None if the feed could not be read.
    """
    username = extract_username(url)
    if username:
        return FeedInfo(name=f"@{username}", description=f"Tweets from @{username}")

    adapter = get_adapter(source_kind or detect_source_from_url(url), http)
    try:
        channel = await adapter.fetch_channel(url)
    except FluxSyncError as e:
        logger.warning(f"Could not discover feed info for {url}: {e}")
        return None
    return FeedInfo(name=channel.title or urlsplit(url).netloc, description=channel.description)

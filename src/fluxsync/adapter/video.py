"""Video channel adapter.

Resolves YouTube channel and handle URLs to the channel's Atom feed.

Example:
    >>> from fluxsync.adapter.video import channel_feed_url
    >>> channel_feed_url("UCabc")
    'https://www.youtube.com/feeds/videos.xml?channel_id=UCabc'
"""

from __future__ import annotations

import logging
import re

from fluxsync.adapter.syndication import SyndicationAdapter
from fluxsync.core.exceptions import FormatError

logger = logging.getLogger(__name__)

YOUTUBE_FEED_URL = "https://www.youtube.com/feeds/videos.xml?channel_id="

_CHANNEL_URL_RE = re.compile(r"youtube\.com/(@[\w.-]+|channel/(UC[\w-]+))", re.IGNORECASE)

# Tried in order against the channel page
_CHANNEL_ID_PATTERNS = (
    re.compile(r'"channelId"\s*:\s*"(UC[\w-]+)"'),
    re.compile(r'<meta\s[^>]*itemprop="channelId"[^>]*content="(UC[\w-]+)"'),
    re.compile(r'"externalId"\s*:\s*"(UC[\w-]+)"'),
)


def channel_feed_url(channel_id: str) -> str:
    return f"{YOUTUBE_FEED_URL}{channel_id}"


def extract_channel_id(page: str) -> str | None:
    """Find the channel id in a channel page.

    Example:
        >>> extract_channel_id('<meta itemprop="channelId" content="UC123">')
        'UC123'
        >>> extract_channel_id("nothing here") is None
        True
    """
    for pattern in _CHANNEL_ID_PATTERNS:
        match = pattern.search(page)
        if match:
            return match.group(1)
    return None


class VideoChannelAdapter(SyndicationAdapter):
    """Source adapter for YouTube channels.

    ``youtube.com/channel/UC...`` maps directly to the channel feed;
    ``youtube.com/@handle`` is resolved by scraping the channel page. Any
    other URL is fetched unchanged as a syndication feed.
    """

    name = "video"

    async def resolve_url(self, url: str) -> str:
        match = _CHANNEL_URL_RE.search(url)
        if not match:
            return url
        if match.group(2):
            return channel_feed_url(match.group(2))

        page = await self._http.get_text(url)
        channel_id = extract_channel_id(page)
        if channel_id is None:
            logger.warning(f"No channel id found on {url}")
            raise FormatError("Could not resolve YouTube channel ID")
        logger.debug(f"Resolved {match.group(1)} to {channel_id}")
        return channel_feed_url(channel_id)

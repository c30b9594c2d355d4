"""RSS/Atom syndication adapter.

Parses RSS 2.0 and Atom documents, including the common extension
namespaces (``content:encoded``, ``dc:creator``, ``media:*`` and
``itunes:*``), into a :class:`~fluxsync.adapter.base.FeedChannel`.

Example:
    >>> from fluxsync.adapter.syndication import parse_feed
    >>> xml = '''<rss version="2.0"><channel><title>Blog</title>
    ... <item><title>Hello</title><link>https://b.example/1</link></item>
    ... </channel></rss>'''
    >>> channel = parse_feed(xml)
    >>> channel.title, channel.entries[0].link
    ('Blog', 'https://b.example/1')
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

from fluxsync.adapter.base import BaseSourceAdapter, FeedChannel, FeedEntry
from fluxsync.core.exceptions import FormatError
from fluxsync.utils.text import parse_duration

logger = logging.getLogger(__name__)

ATOM_NS = "http://www.w3.org/2005/Atom"

NAMESPACES = {
    "atom": ATOM_NS,
    "content": "http://purl.org/rss/1.0/modules/content/",
    "dc": "http://purl.org/dc/elements/1.1/",
    "media": "http://search.yahoo.com/mrss/",
    "itunes": "http://www.itunes.com/dtds/podcast-1.0.dtd",
}


def parse_date(raw: str) -> datetime | None:
    """Parse an RFC 822 or ISO 8601 date into an aware datetime.

    Example:
        >>> parse_date("Tue, 10 Jun 2025 04:00:00 GMT").year
        2025
        >>> parse_date("2025-06-10T04:00:00Z").tzinfo is not None
        True
        >>> parse_date("not a date") is None
        True
    """
    raw = raw.strip()
    if not raw:
        return None
    parsed: datetime | None = None
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _text(parent: ET.Element, path: str) -> str:
    elem = parent.find(path, NAMESPACES)
    if elem is None:
        return ""
    return "".join(elem.itertext()).strip()


def _is_atom(root: ET.Element) -> bool:
    return root.tag in (f"{{{ATOM_NS}}}feed", "feed")


def parse_feed(text: str) -> FeedChannel:
    """Parse an RSS or Atom document.

    Raises:
        FormatError: If the document is empty, not well-formed XML, or
            neither RSS nor Atom.
    """
    if not text or not text.strip():
        raise FormatError("Empty response")
    try:
        root = ET.fromstring(text.strip())
    except ET.ParseError as e:
        logger.error(f"XML parse error: {e}")
        raise FormatError("Invalid XML format") from e

    channel = root.find("channel")
    if channel is not None:
        return _parse_rss(channel)
    if _is_atom(root):
        return _parse_atom(root)
    raise FormatError("Invalid feed format")


def _parse_rss(channel: ET.Element) -> FeedChannel:
    return FeedChannel(
        title=_text(channel, "title"),
        link=_text(channel, "link"),
        description=_text(channel, "description"),
        entries=[_parse_rss_item(item) for item in channel.findall("item")],
    )


def _parse_rss_item(item: ET.Element) -> FeedEntry:
    link = _text(item, "link")
    description = _text(item, "description")

    content = _text(item, "content:encoded")
    if not content:
        media_description = _text(item, "media:description")
        content = f"<p>{media_description}</p>" if media_description else description

    entry = FeedEntry(
        title=_text(item, "title"),
        link=link,
        description=description,
        content=content,
        published=parse_date(_text(item, "pubDate")),
        author=_text(item, "author") or _text(item, "dc:creator"),
        guid=_text(item, "guid") or link,
        tags=[c.text.strip() for c in item.findall("category") if c.text and c.text.strip()],
        comments_url=_text(item, "comments") or None,
    )

    enclosure = item.find("enclosure")
    if enclosure is not None and enclosure.get("url"):
        entry.enclosure_url = enclosure.get("url")
        entry.enclosure_type = enclosure.get("type") or None

    duration = _text(item, "itunes:duration")
    if duration:
        entry.duration = parse_duration(duration)

    image = item.find("itunes:image", NAMESPACES)
    thumbnail = item.find("media:thumbnail", NAMESPACES)
    if image is not None and image.get("href"):
        entry.thumbnail = image.get("href")
    elif thumbnail is not None and thumbnail.get("url"):
        entry.thumbnail = thumbnail.get("url")

    return entry


def _parse_atom(feed: ET.Element) -> FeedChannel:
    # Handle both namespaced and non-namespaced Atom
    prefix = "atom:" if feed.tag.startswith("{") else ""
    entries = [_parse_atom_entry(e, prefix) for e in feed.findall(f"{prefix}entry", NAMESPACES)]
    return FeedChannel(
        title=_text(feed, f"{prefix}title"),
        link=_atom_link(feed, prefix),
        description=_text(feed, f"{prefix}subtitle"),
        entries=entries,
    )


def _atom_link(parent: ET.Element, prefix: str, rel: str = "alternate") -> str:
    links = parent.findall(f"{prefix}link", NAMESPACES)
    for link in links:
        if link.get("rel", "alternate") == rel and link.get("href"):
            return link.get("href", "")
    if rel == "alternate" and links:
        return links[0].get("href", "")
    return ""


def _parse_atom_entry(entry: ET.Element, prefix: str) -> FeedEntry:
    link = _atom_link(entry, prefix)
    summary = _text(entry, f"{prefix}summary")

    content = _text(entry, f"{prefix}content") or summary
    if not content:
        # YouTube carries the description in media:group
        media_description = _text(entry, "media:group/media:description")
        content = f"<p>{media_description}</p>" if media_description else ""

    published = _text(entry, f"{prefix}published") or _text(entry, f"{prefix}updated")
    result = FeedEntry(
        title=_text(entry, f"{prefix}title"),
        link=link,
        description=summary,
        content=content,
        published=parse_date(published),
        author=_text(entry, f"{prefix}author/{prefix}name"),
        guid=_text(entry, f"{prefix}id") or link,
        tags=[
            c.get("term", "")
            for c in entry.findall(f"{prefix}category", NAMESPACES)
            if c.get("term")
        ],
    )

    for link_elem in entry.findall(f"{prefix}link", NAMESPACES):
        if link_elem.get("rel") == "enclosure" and link_elem.get("href"):
            result.enclosure_url = link_elem.get("href")
            result.enclosure_type = link_elem.get("type") or None
            break

    thumbnail = entry.find("media:group/media:thumbnail", NAMESPACES)
    if thumbnail is not None and thumbnail.get("url"):
        result.thumbnail = thumbnail.get("url")

    return result


class SyndicationAdapter(BaseSourceAdapter):
    """Source adapter for RSS 2.0 and Atom feeds.

    Example:
        >>> from fluxsync.http import HttpClient
        >>> adapter = SyndicationAdapter(HttpClient())
        >>> adapter.name
        'syndication'
    """

    name = "syndication"

    async def resolve_url(self, url: str) -> str:
        """Rewrite ``url`` into the address of the syndication document."""
        return url

    async def fetch_channel(self, url: str) -> FeedChannel:
        resolved = await self.resolve_url(url)
        text = await self._http.get_text(resolved)
        channel = parse_feed(text)
        logger.info(f"Parsed {len(channel.entries)} entries from {resolved}")
        return channel

"""Pure text helpers used during ingestion.

None of these touch the network, so they are unit-testable on their own.

Example:
    >>> from fluxsync.utils.text import estimate_read_time, strip_html
    >>> strip_html("<p>Hello <b>world</b></p>")
    'Hello world'
    >>> estimate_read_time("word " * 401)
    3
"""

from __future__ import annotations

import html
import math
import re

WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 200
MIN_FULL_LENGTH = 500

_TAG_RE = re.compile(r"<[^>]*>")
_SPACE_RE = re.compile(r"\s+")

# Markers publishers append when a feed only carries a teaser
TRUNCATION_MARKERS = (
    "continue reading",
    "read more",
    "read the full",
    "the post ",
    "[…]",
    "[...]",
    "…",
    "...",
)


def strip_html(content: str) -> str:
    """Remove tags, unescape entities and collapse whitespace."""
    text = _TAG_RE.sub(" ", content)
    text = html.unescape(text)
    return _SPACE_RE.sub(" ", text).strip()


def estimate_read_time(content: str) -> int:
    """Estimated reading time in whole minutes, never below one."""
    text = strip_html(content)
    words = len(text.split()) if text else 0
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def make_excerpt(content: str, length: int = EXCERPT_LENGTH) -> str:
    """Plain-text prefix of ``content``.

    Example:
        >>> make_excerpt("<p>abc</p>", length=2)
        'ab'
    """
    return strip_html(content)[:length]


def is_truncated(content: str, min_length: int = MIN_FULL_LENGTH) -> bool:
    """Guess whether ``content`` is only a teaser of the full article.

    A body is considered truncated when its tail carries an ellipsis or a
    "continue reading" style marker, or when its plain text is shorter than
    ``min_length`` characters.

    Example:
        >>> is_truncated("Short teaser")
        True
        >>> is_truncated("x" * 600)
        False
        >>> is_truncated("x" * 600 + " Continue reading")
        True
    """
    text = strip_html(content)
    if len(text) < min_length:
        return True
    tail = text[-120:].lower()
    return any(marker in tail for marker in TRUNCATION_MARKERS)


def parse_duration(raw: str) -> int:
    """Parse an itunes:duration value into seconds.

    Accepts plain seconds, ``MM:SS`` and ``HH:MM:SS``; anything else is 0.

    Example:
        >>> parse_duration("1:02:03")
        3723
        >>> parse_duration("45:10")
        2710
        >>> parse_duration("90")
        90
    """
    value = raw.strip()
    if value.isdigit():
        return int(value)
    parts = value.split(":")
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return 0
    if len(numbers) == 3:
        return numbers[0] * 3600 + numbers[1] * 60 + numbers[2]
    if len(numbers) == 2:
        return numbers[0] * 60 + numbers[1]
    return 0

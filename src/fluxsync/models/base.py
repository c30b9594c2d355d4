"""Base models and shared types.

This module provides the foundational model configuration, the source kind
enum and the timestamp helpers used by every record shape in FluxSync.

Example:
    >>> from fluxsync.models.base import SourceKind, is_newer
    >>> SourceKind.PODCAST.value
    'podcast'
    >>> from datetime import datetime, timezone
    >>> is_newer(datetime(2026, 1, 2, tzinfo=timezone.utc), None)
    True
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict


class SourceKind(str, Enum):
    """Kind of upstream source a feed is read from.

    Example:
        >>> SourceKind("reddit")
        <SourceKind.REDDIT: 'reddit'>
    """

    ARTICLE = "article"
    REDDIT = "reddit"
    YOUTUBE = "youtube"
    TWITTER = "twitter"
    MASTODON = "mastodon"
    PODCAST = "podcast"


# Display defaults per source kind (icon glyph, colour)
SOURCE_DEFAULTS: dict[SourceKind, tuple[str, str]] = {
    SourceKind.ARTICLE: ("◇", "#D4A853"),
    SourceKind.REDDIT: ("⬢", "#FF4500"),
    SourceKind.YOUTUBE: ("▶", "#FF0000"),
    SourceKind.TWITTER: ("𝕏", "#1DA1F2"),
    SourceKind.MASTODON: ("🐘", "#6364FF"),
    SourceKind.PODCAST: ("🎙", "#9B59B6"),
}


class FluxModel(BaseModel):
    """Base model with standard configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        validate_assignment=True,
        extra="forbid",
    )


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def is_newer(candidate: datetime | None, reference: datetime | None) -> bool:
    """Return True if ``candidate`` is strictly newer than ``reference``.

    A missing timestamp is older than any present one, and two missing
    timestamps are never newer than each other.

    Example:
        >>> from datetime import datetime, timezone
        >>> a = datetime(2026, 1, 1, tzinfo=timezone.utc)
        >>> is_newer(a, a)
        False
        >>> is_newer(None, a)
        False
    """
    if candidate is None:
        return False
    if reference is None:
        return True
    return candidate > reference


def advance_timestamp(previous: datetime | None) -> datetime:
    """Next ``updated_at`` value for a mutated record.

    Always strictly greater than ``previous`` so that two mutations within
    the same clock tick still order correctly.
    """
    now = utc_now()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now

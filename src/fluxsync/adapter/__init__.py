"""Source adapters turning upstream feeds into catalog items."""

from fluxsync.adapter.base import BaseSourceAdapter, FeedChannel, FeedEntry, SourceAdapter
from fluxsync.adapter.forum import ForumAdapter
from fluxsync.adapter.registry import (
    FeedInfo,
    detect_source_from_url,
    discover_feed_info,
    get_adapter,
    register_adapter,
)
from fluxsync.adapter.rsshub import RSSHubMatch, detect_rsshub_route, is_rsshub_url
from fluxsync.adapter.social import SocialTimelineAdapter
from fluxsync.adapter.syndication import SyndicationAdapter, parse_feed
from fluxsync.adapter.video import VideoChannelAdapter

__all__ = [
    "BaseSourceAdapter",
    "FeedChannel",
    "FeedEntry",
    "FeedInfo",
    "ForumAdapter",
    "RSSHubMatch",
    "SocialTimelineAdapter",
    "SourceAdapter",
    "SyndicationAdapter",
    "VideoChannelAdapter",
    "detect_rsshub_route",
    "detect_source_from_url",
    "discover_feed_info",
    "get_adapter",
    "is_rsshub_url",
    "parse_feed",
    "register_adapter",
]

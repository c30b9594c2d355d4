"""Tests for fluxsync.adapter.registry - adapter lookup and detection."""

from __future__ import annotations

import httpx
import pytest

from fluxsync.adapter.forum import ForumAdapter
from fluxsync.adapter.registry import detect_source_from_url, discover_feed_info, get_adapter
from fluxsync.adapter.social import SocialTimelineAdapter
from fluxsync.adapter.syndication import SyndicationAdapter
from fluxsync.adapter.video import VideoChannelAdapter
from fluxsync.core.exceptions import RateLimitedError
from fluxsync.http.client import HttpClient
from fluxsync.models.base import SourceKind
from fluxsync.utils.retry import RetryConfig


def make_http(handler) -> HttpClient:
    return HttpClient(rate_limit=0, max_retries=0, transport=httpx.MockTransport(handler))


class TestGetAdapter:
    @pytest.mark.parametrize(
        ("kind", "adapter_cls"),
        [
            (SourceKind.ARTICLE, SyndicationAdapter),
            (SourceKind.PODCAST, SyndicationAdapter),
            (SourceKind.MASTODON, SyndicationAdapter),
            (SourceKind.YOUTUBE, VideoChannelAdapter),
            (SourceKind.REDDIT, ForumAdapter),
            (SourceKind.TWITTER, SocialTimelineAdapter),
        ],
    )
    def test_mapping(self, kind: SourceKind, adapter_cls: type) -> None:
        assert type(get_adapter(kind, HttpClient())) is adapter_cls

    def test_retry_policy_passed(self) -> None:
        retry = RetryConfig(max_attempts=5, base_delay=0, retry_on=(RateLimitedError,))
        adapter = get_adapter(SourceKind.TWITTER, HttpClient(), retry)
        assert adapter._retry is retry


class TestDetectSource:
    @pytest.mark.parametrize(
        ("url", "kind"),
        [
            ("https://www.reddit.com/r/python", SourceKind.REDDIT),
            ("https://www.youtube.com/@handle", SourceKind.YOUTUBE),
            ("https://youtu.be/abc", SourceKind.YOUTUBE),
            ("https://x.com/jack", SourceKind.TWITTER),
            ("https://twitter.com/jack", SourceKind.TWITTER),
            ("rsshub://twitter/user/jack", SourceKind.TWITTER),
            ("https://mastodon.social/@user.rss", SourceKind.MASTODON),
            ("https://feeds.simplecast.com/abc", SourceKind.PODCAST),
            ("https://blog.example/feed", SourceKind.ARTICLE),
            ("https://netflix.com/rss", SourceKind.ARTICLE),
        ],
    )
    def test_detect(self, url: str, kind: SourceKind) -> None:
        assert detect_source_from_url(url) is kind


class TestDiscoverFeedInfo:
    async def test_twitter_without_request(self) -> None:
        http = make_http(lambda r: pytest.fail("no request expected"))
        info = await discover_feed_info("https://x.com/jack", http)
        assert info.name == "@jack"
        assert info.description == "Tweets from @jack"

    async def test_reads_channel_title(self) -> None:
        xml = "<rss><channel><title>My Blog</title><description>Posts</description></channel></rss>"
        info = await discover_feed_info("https://blog.example/feed", make_http(lambda r: httpx.Response(200, text=xml)))
        assert (info.name, info.description) == ("My Blog", "Posts")

    async def test_untitled_channel_uses_host(self) -> None:
        xml = "<rss><channel></channel></rss>"
        info = await discover_feed_info("https://blog.example/feed", make_http(lambda r: httpx.Response(200, text=xml)))
        assert info.name == "blog.example"

    async def test_failure_returns_none(self) -> None:
        info = await discover_feed_info("https://blog.example/feed", make_http(lambda r: httpx.Response(500)))
        assert info is None

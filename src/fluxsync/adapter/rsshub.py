"""RSSHub route detection.

Maps profile and project pages of sites without native feeds onto the
equivalent route of an RSSHub instance.

Example:
    >>> from fluxsync.adapter.rsshub import detect_rsshub_route
    >>> match = detect_rsshub_route("https://github.com/python/cpython")
    >>> match.rsshub_url
    'https://rsshub.app/github/repos/python/cpython'
    >>> match.label
    'GitHub python/cpython'
    >>> detect_rsshub_route("https://example.com/blog") is None
    True
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlsplit

DEFAULT_INSTANCE = "https://rsshub.app"
RSSHUB_SCHEME = "rsshub://"


@dataclass(frozen=True)
class RSSHubRoute:
    """A URL pattern and how to build the route and label from a match."""

    pattern: re.Pattern[str]
    route: Callable[[re.Match[str]], str]
    label: Callable[[re.Match[str]], str]


@dataclass(frozen=True)
class RSSHubMatch:
    rsshub_url: str
    label: str


ROUTES: tuple[RSSHubRoute, ...] = (
    RSSHubRoute(
        re.compile(r"^https?://github\.com/([A-Za-z0-9_.-]+)/?$"),
        lambda m: f"/github/repos/{m[1]}",
        lambda m: f"GitHub repos of {m[1]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://github\.com/([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+)/?$"),
        lambda m: f"/github/repos/{m[1]}/{m[2]}",
        lambda m: f"GitHub {m[1]}/{m[2]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://(www\.)?instagram\.com/([A-Za-z0-9_.-]+)/?$"),
        lambda m: f"/instagram/user/{m[2]}",
        lambda m: f"Instagram @{m[2]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://(t\.me|telegram\.me)/([A-Za-z0-9_]+)/?$"),
        lambda m: f"/telegram/channel/{m[2]}",
        lambda m: f"Telegram {m[2]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://(www\.)?(twitter\.com|x\.com)/([A-Za-z0-9_]+)/?$"),
        lambda m: f"/twitter/user/{m[3]}",
        lambda m: f"Twitter @{m[3]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://space\.bilibili\.com/(\d+)/?"),
        lambda m: f"/bilibili/user/video/{m[1]}",
        lambda m: f"Bilibili {m[1]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://(www\.)?zhihu\.com/people/([A-Za-z0-9_-]+)/?"),
        lambda m: f"/zhihu/people/{m[2]}/activities",
        lambda m: f"Zhihu {m[2]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://(www\.)?weibo\.com/(u/)?(\d+)/?"),
        lambda m: f"/weibo/user/{m[3]}",
        lambda m: f"Weibo {m[3]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://(www\.)?douban\.com/(game|movie|book|music)/subject/(\d+)/?"),
        lambda m: f"/douban/{m[2]}/{m[3]}/comments",
        lambda m: f"Douban {m[2]} {m[3]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://(www\.)?pinterest\.(com|fr|co\.uk)/([A-Za-z0-9_.-]+)/?$"),
        lambda m: f"/pinterest/user/{m[3]}",
        lambda m: f"Pinterest {m[3]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://(www\.)?pixiv\.net/(users/|member\.php\?id=)(\d+)/?"),
        lambda m: f"/pixiv/user/{m[3]}",
        lambda m: f"Pixiv {m[3]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://store\.steampowered\.com/app/(\d+)/?"),
        lambda m: f"/steam/news/{m[1]}",
        lambda m: f"Steam app {m[1]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://(www\.)?npmjs\.com/package/(@?[A-Za-z0-9_/.-]+?)/?$"),
        lambda m: f"/npm/package/{m[2]}",
        lambda m: f"npm {m[2]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://hub\.docker\.com/r/([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+)/?$"),
        lambda m: f"/dockerhub/build/{m[1]}/{m[2]}",
        lambda m: f"Docker {m[1]}/{m[2]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://gitlab\.com/([A-Za-z0-9_.-]+(?:/[A-Za-z0-9_.-]+)+)/?$"),
        lambda m: f"/gitlab/explore/projects/{m[1]}",
        lambda m: f"GitLab {m[1]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://(www\.)?tiktok\.com/@([A-Za-z0-9_.-]+)/?$"),
        lambda m: f"/tiktok/user/@{m[2]}",
        lambda m: f"TikTok @{m[2]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://(www\.)?twitch\.tv/([A-Za-z0-9_]+)/?$"),
        lambda m: f"/twitch/live/{m[2]}",
        lambda m: f"Twitch {m[2]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://(www\.)?letterboxd\.com/([A-Za-z0-9_]+)/?$"),
        lambda m: f"/letterboxd/user/{m[2]}/diary",
        lambda m: f"Letterboxd {m[2]}",
    ),
    RSSHubRoute(
        re.compile(r"^https?://news\.ycombinator\.com/?$"),
        lambda m: "/hackernews/best",
        lambda m: "Hacker News Best",
    ),
)


def normalize_instance(instance: str | None) -> str:
    """Instance base URL without trailing slashes.

    Example:
        >>> normalize_instance("https://hub.example/ ")
        'https://hub.example'
        >>> normalize_instance("")
        'https://rsshub.app'
    """
    trimmed = (instance or "").strip().rstrip("/")
    return trimmed or DEFAULT_INSTANCE


def detect_rsshub_route(url: str, instance: str | None = None) -> RSSHubMatch | None:
    """Match ``url`` against the route table.

    Args:
        url: Page URL entered by the user.
        instance: RSSHub instance base URL (default: public instance).

    Returns:
        The RSSHub feed URL and a display label, or None.
    """
    trimmed = url.strip()
    parts = urlsplit(trimmed)
    if not parts.scheme or not parts.netloc:
        return None

    base = normalize_instance(instance)
    for route in ROUTES:
        match = route.pattern.match(trimmed)
        if match:
            return RSSHubMatch(rsshub_url=f"{base}{route.route(match)}", label=route.label(match))
    return None


def is_rsshub_url(url: str, instance: str | None = None) -> bool:
    """True if ``url`` points at the RSSHub instance or uses ``rsshub://``.

    Example:
        >>> is_rsshub_url("rsshub://twitter/user/jack")
        True
    """
    return url.startswith(normalize_instance(instance)) or url.startswith(RSSHUB_SCHEME)

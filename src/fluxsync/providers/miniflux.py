"""Miniflux provider (REST v1, token header).

Example:
    >>> from fluxsync.models.provider import MinifluxConfig
    >>> from fluxsync.providers.miniflux import MinifluxProvider
    >>> provider = MinifluxProvider(MinifluxConfig(base_url="https://rss.example/", api_key="k"))
    >>> provider.api_base
    'https://rss.example/v1'
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from fluxsync.http.client import HttpClient
from fluxsync.models.provider import MinifluxConfig, ProviderEntry, ProviderFeed
from fluxsync.providers.base import BaseProvider, as_int_ids

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class MinifluxProvider(BaseProvider):
    """Client for the Miniflux API.

    Starring uses the bookmark endpoint, which toggles. Star and unstar
    therefore read the current starred set first and only toggle entries
    whose state differs.
    """

    kind = "miniflux"

    def __init__(
        self,
        config: MinifluxConfig,
        *,
        http: HttpClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            f"{config.base_url}/v1",
            headers={"X-Auth-Token": config.api_key},
            http=http,
            transport=transport,
        )
        self._config = config

    async def _check_connection(self) -> None:
        await self._json("GET", "/me")

    async def get_feeds(self) -> list[ProviderFeed]:
        feeds = await self._json("GET", "/feeds")
        return [
            ProviderFeed(
                remote_id=str(f["id"]),
                title=f.get("title") or "",
                feed_url=f["feed_url"],
                site_url=f.get("site_url") or None,
                category=(f.get("category") or {}).get("title"),
            )
            for f in feeds
        ]

    async def _paged_ids(self, params: dict[str, Any]) -> set[str]:
        ids: list[str] = []
        offset = 0
        while True:
            data = await self._json(
                "GET",
                "/entries",
                params={**params, "limit": PAGE_SIZE, "offset": offset, "direction": "desc"},
            )
            entries = data.get("entries") or []
            ids.extend(str(e["id"]) for e in entries)
            if len(ids) >= data.get("total", 0) or len(entries) < PAGE_SIZE:
                break
            offset += PAGE_SIZE
        return set(ids)

    async def get_unread_ids(self) -> set[str]:
        return await self._paged_ids({"status": "unread"})

    async def get_starred_ids(self) -> set[str]:
        return await self._paged_ids({"starred": "true"})

    async def get_entries(
        self, since: datetime | None = None, limit: int = 100
    ) -> list[ProviderEntry]:
        params: dict[str, Any] = {"direction": "desc", "limit": limit}
        if since is not None:
            params["after"] = int(since.timestamp())
        data = await self._json("GET", "/entries", params=params)
        return [
            ProviderEntry(
                remote_id=str(e["id"]),
                feed_remote_id=str(e["feed_id"]),
                title=e.get("title") or "",
                url=e.get("url") or "",
                author=e.get("author") or None,
                content=e.get("content") or None,
                published_at=e["published_at"],
            )
            for e in data.get("entries") or []
        ]

    async def _set_status(self, entry_ids: list[str], status: str) -> None:
        if not entry_ids:
            return
        await self._request(
            "PUT", "/entries", json={"entry_ids": as_int_ids(entry_ids), "status": status}
        )

    async def mark_as_read(self, entry_ids: list[str]) -> None:
        await self._set_status(entry_ids, "read")

    async def mark_as_unread(self, entry_ids: list[str]) -> None:
        await self._set_status(entry_ids, "unread")

    async def _toggle_bookmarks(self, entry_ids: list[str]) -> None:
        for entry_id in entry_ids:
            await self._request("PUT", f"/entries/{entry_id}/bookmark")

    async def star_entries(self, entry_ids: list[str]) -> None:
        if not entry_ids:
            return
        starred = await self.get_starred_ids()
        await self._toggle_bookmarks([i for i in entry_ids if i not in starred])

    async def unstar_entries(self, entry_ids: list[str]) -> None:
        if not entry_ids:
            return
        starred = await self.get_starred_ids()
        await self._toggle_bookmarks([i for i in entry_ids if i in starred])

"""Feedbin provider (REST v2, HTTP Basic auth)."""

from __future__ import annotations

import base64
import logging
from datetime import datetime
from typing import Any

import httpx

from fluxsync.core.exceptions import FluxSyncError
from fluxsync.http.client import HttpClient
from fluxsync.models.provider import FeedbinConfig, ProviderEntry, ProviderFeed
from fluxsync.providers.base import BaseProvider, as_int_ids

logger = logging.getLogger(__name__)


def basic_auth_header(username: str, password: str) -> str:
    """Value of an HTTP Basic ``Authorization`` header.

    Example:
        >>> basic_auth_header("user", "pass")
        'Basic dXNlcjpwYXNz'
    """
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


class FeedbinProvider(BaseProvider):
    """Client for the Feedbin v2 API."""

    kind = "feedbin"

    def __init__(
        self,
        config: FeedbinConfig,
        *,
        http: HttpClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            f"{config.base_url}/v2",
            headers={
                "Authorization": basic_auth_header(config.username, config.password),
                "Content-Type": "application/json; charset=utf-8",
            },
            http=http,
            transport=transport,
        )
        self._config = config

    async def _check_connection(self) -> None:
        await self._request("GET", "/authentication.json")

    async def _categories(self) -> dict[str, str]:
        # Taggings are optional; a failure only loses folder names
        try:
            taggings = await self._json("GET", "/taggings.json")
        except FluxSyncError as e:
            logger.warning(f"feedbin: taggings unavailable, importing without folders: {e}")
            return {}
        return {str(t["feed_id"]): t["name"] for t in taggings}

    async def get_feeds(self) -> list[ProviderFeed]:
        subscriptions = await self._json("GET", "/subscriptions.json")
        categories = await self._categories()
        return [
            ProviderFeed(
                remote_id=str(s["feed_id"]),
                title=s.get("title") or "",
                feed_url=s["feed_url"],
                site_url=s.get("site_url") or None,
                category=categories.get(str(s["feed_id"])),
            )
            for s in subscriptions
        ]

    async def get_unread_ids(self) -> set[str]:
        ids = await self._json("GET", "/unread_entries.json")
        return {str(i) for i in ids}

    async def get_starred_ids(self) -> set[str]:
        ids = await self._json("GET", "/starred_entries.json")
        return {str(i) for i in ids}

    async def get_entries(
        self, since: datetime | None = None, limit: int = 100
    ) -> list[ProviderEntry]:
        params: dict[str, Any] = {"per_page": limit}
        if since is not None:
            params["since"] = since.isoformat()
        entries = await self._json("GET", "/entries.json", params=params)
        return [
            ProviderEntry(
                remote_id=str(e["id"]),
                feed_remote_id=str(e["feed_id"]),
                title=e.get("title") or "",
                url=e.get("url") or "",
                author=e.get("author") or None,
                content=e.get("content") or None,
                published_at=e["published"],
            )
            for e in entries
        ]

    async def mark_as_read(self, entry_ids: list[str]) -> None:
        if not entry_ids:
            return
        await self._request(
            "DELETE", "/unread_entries.json", json={"unread_entries": as_int_ids(entry_ids)}
        )

    async def mark_as_unread(self, entry_ids: list[str]) -> None:
        if not entry_ids:
            return
        await self._request(
            "POST", "/unread_entries.json", json={"unread_entries": as_int_ids(entry_ids)}
        )

    async def star_entries(self, entry_ids: list[str]) -> None:
        if not entry_ids:
            return
        await self._request(
            "POST", "/starred_entries.json", json={"starred_entries": as_int_ids(entry_ids)}
        )

    async def unstar_entries(self, entry_ids: list[str]) -> None:
        if not entry_ids:
            return
        await self._request(
            "DELETE", "/starred_entries.json", json={"starred_entries": as_int_ids(entry_ids)}
        )

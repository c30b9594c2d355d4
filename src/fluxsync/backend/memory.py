"""In-memory remote backend for testing.

Example:
    >>> import asyncio
    >>> from fluxsync.backend.memory import MemoryBackend
    >>> backend = MemoryBackend()
    >>> asyncio.run(backend.upsert_feeds([{"id": "f1", "user_id": "u", "url": "https://a"}]))
    >>> len(asyncio.run(backend.select_feeds("u")))
    1
"""

from __future__ import annotations

import copy
from typing import Any

from fluxsync.core.exceptions import IntegrityError

Key = tuple[str, str]
Row = dict[str, Any]


class MemoryBackend:
    """Dictionary-backed backend keyed on ``(id, user_id)``.

    With ``enforce_foreign_keys`` an item row whose ``(feed_id, user_id)``
    has no feed row rejects the whole batch, like a relational database
    would.
    """

    def __init__(self, *, enforce_foreign_keys: bool = True) -> None:
        self.enforce_foreign_keys = enforce_foreign_keys
        self.feeds: dict[Key, Row] = {}
        self.items: dict[Key, Row] = {}
        self.calls: list[str] = []

    @staticmethod
    def _key(row: Row) -> Key:
        return (row["id"], row["user_id"])

    def _check_feeds(self, rows: list[Row]) -> None:
        if not self.enforce_foreign_keys:
            return
        for row in rows:
            if (row["feed_id"], row["user_id"]) not in self.feeds:
                raise IntegrityError(
                    f"feed_items.feed_id {row['feed_id']!r} references no feed"
                )

    async def close(self) -> None:
        return None

    async def select_feeds(self, user_id: str) -> list[Row]:
        self.calls.append("select_feeds")
        return [copy.deepcopy(r) for r in self.feeds.values() if r["user_id"] == user_id]

    async def select_items(self, user_id: str) -> list[Row]:
        self.calls.append("select_items")
        return [copy.deepcopy(r) for r in self.items.values() if r["user_id"] == user_id]

    async def insert_feeds(self, rows: list[Row]) -> None:
        self.calls.append("insert_feeds")
        for row in rows:
            self.feeds.setdefault(self._key(row), copy.deepcopy(row))

    async def insert_items(self, rows: list[Row]) -> None:
        self.calls.append("insert_items")
        self._check_feeds(rows)
        for row in rows:
            self.items.setdefault(self._key(row), copy.deepcopy(row))

    async def upsert_feeds(self, rows: list[Row]) -> None:
        self.calls.append("upsert_feeds")
        for row in rows:
            self.feeds[self._key(row)] = copy.deepcopy(row)

    async def upsert_items(self, rows: list[Row]) -> None:
        self.calls.append("upsert_items")
        self._check_feeds(rows)
        for row in rows:
            self.items[self._key(row)] = copy.deepcopy(row)

    async def delete_feed(self, feed_id: str, user_id: str) -> None:
        self.calls.append("delete_feed")
        self.feeds.pop((feed_id, user_id), None)
        self.items = {
            k: r for k, r in self.items.items() if (r["feed_id"], r["user_id"]) != (feed_id, user_id)
        }

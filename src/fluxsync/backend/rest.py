"""PostgREST-style HTTP backend.

Tables are exposed under ``/rest/v1/<table>``. Upserts post rows with
``Prefer: resolution=merge-duplicates`` and ``on_conflict=id,user_id``;
filters use the ``column=eq.value`` syntax.

Example:
    >>> from fluxsync.backend.rest import RestBackend
    >>> backend = RestBackend("https://db.example", api_key="anon")
    >>> backend.base_url
    'https://db.example/rest/v1'
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from fluxsync.core.exceptions import FormatError, IntegrityError, TransportError
from fluxsync.http.client import HttpClient
from fluxsync.providers.base import decode_json
from fluxsync.sync.mapping import FEEDS_TABLE, ITEMS_TABLE

logger = logging.getLogger(__name__)

CONFLICT_TARGET = "id,user_id"
# Foreign key violations come back as 409 Conflict
INTEGRITY_STATUS = 409
DEFAULT_PAGE_SIZE = 1000

Row = dict[str, Any]


class RestBackend:
    """Remote backend speaking the PostgREST dialect."""

    def __init__(
        self,
        url: str,
        *,
        api_key: str | None = None,
        access_token: str | None = None,
        http: HttpClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        """Initialize the backend client.

        Args:
            url: Project URL; ``/rest/v1`` is appended.
            api_key: Value of the ``apikey`` header.
            access_token: Bearer token of the signed-in user (default: api_key).
            http: Pre-built client, mainly for tests.
            transport: Custom transport (tests use ``httpx.MockTransport``).
            page_size: Rows requested per page when pulling.
        """
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.page_size = page_size
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
        token = access_token or api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = http or HttpClient(
            base_url=self.base_url,
            rate_limit=0,
            headers=headers,
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.close()

    async def _write(self, table: str, rows: list[Row], prefer: str) -> None:
        if not rows:
            return
        try:
            await self._http.post(
                f"/{table}",
                json=rows,
                params={"on_conflict": CONFLICT_TARGET},
                headers={"Prefer": prefer},
            )
        except TransportError as e:
            if e.status_code == INTEGRITY_STATUS:
                raise IntegrityError(f"{table}: {e}") from e
            raise

    async def _select(self, table: str, user_id: str) -> list[Row]:
        """Read every row of the user, one page at a time.

        Servers cap unpaged responses, and a truncated pull would look like
        remote deletions to the reconciliation cycle. Paging stops at the
        first short page.
        """
        rows: list[Row] = []
        while True:
            response = await self._http.get(
                f"/{table}",
                params={
                    "select": "*",
                    "user_id": f"eq.{user_id}",
                    "order": "id.asc",
                    "limit": self.page_size,
                    "offset": len(rows),
                },
            )
            page = decode_json(response, f"backend {table}")
            if not isinstance(page, list):
                raise FormatError(f"{table}: expected a list of rows, got {type(page).__name__}")
            rows.extend(page)
            if len(page) < self.page_size:
                return rows

    async def select_feeds(self, user_id: str) -> list[Row]:
        return await self._select(FEEDS_TABLE, user_id)

    async def select_items(self, user_id: str) -> list[Row]:
        return await self._select(ITEMS_TABLE, user_id)

    async def insert_feeds(self, rows: list[Row]) -> None:
        await self._write(FEEDS_TABLE, rows, "resolution=ignore-duplicates,return=minimal")

    async def insert_items(self, rows: list[Row]) -> None:
        await self._write(ITEMS_TABLE, rows, "resolution=ignore-duplicates,return=minimal")

    async def upsert_feeds(self, rows: list[Row]) -> None:
        await self._write(FEEDS_TABLE, rows, "resolution=merge-duplicates,return=minimal")

    async def upsert_items(self, rows: list[Row]) -> None:
        await self._write(ITEMS_TABLE, rows, "resolution=merge-duplicates,return=minimal")

    async def delete_feed(self, feed_id: str, user_id: str) -> None:
        user_filter = f"eq.{user_id}"
        await self._http.delete(
            f"/{ITEMS_TABLE}", params={"feed_id": f"eq.{feed_id}", "user_id": user_filter}
        )
        await self._http.delete(
            f"/{FEEDS_TABLE}", params={"id": f"eq.{feed_id}", "user_id": user_filter}
        )
        logger.debug(f"Deleted remote feed {feed_id}")

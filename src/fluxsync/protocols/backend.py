"""Remote relational backend protocol.

The backend stores one row per feed and per item, keyed on ``(id, user_id)``.
Rows are plain dictionaries using the remote column names; conversion to and
from models lives in :mod:`fluxsync.sync.mapping`.

Example:
    >>> from fluxsync.protocols.backend import RemoteBackend
    >>> from fluxsync.backend.memory import MemoryBackend
    >>> isinstance(MemoryBackend(), RemoteBackend)
    True
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

Row = dict[str, Any]


@runtime_checkable
class RemoteBackend(Protocol):
    """Per-user tables of feeds and feed items.

    See Also:
        fluxsync.backend.memory.MemoryBackend: In-memory implementation
        fluxsync.backend.rest.RestBackend: HTTP implementation
    """

    async def select_feeds(self, user_id: str) -> list[Row]:
        """All feed rows of ``user_id``."""
        ...

    async def select_items(self, user_id: str) -> list[Row]:
        """All item rows of ``user_id``."""
        ...

    async def insert_feeds(self, rows: list[Row]) -> None:
        """Insert feed rows, ignoring rows whose key already exists."""
        ...

    async def insert_items(self, rows: list[Row]) -> None:
        """Insert item rows, ignoring rows whose key already exists.

        Raises:
            IntegrityError: If a row references an unknown feed.
        """
        ...

    async def upsert_feeds(self, rows: list[Row]) -> None:
        """Insert or replace feed rows on ``(id, user_id)``."""
        ...

    async def upsert_items(self, rows: list[Row]) -> None:
        """Insert or replace item rows on ``(id, user_id)``.

        Raises:
            IntegrityError: If a row references an unknown feed.
        """
        ...

    async def delete_feed(self, feed_id: str, user_id: str) -> None:
        """Delete a feed row and the item rows referencing it."""
        ...

    async def close(self) -> None:
        """Release the connection, if any."""
        ...

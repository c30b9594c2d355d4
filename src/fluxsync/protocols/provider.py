"""Third-party feed reading service protocol.

A provider mirrors subscriptions and read/starred state held by a hosted
feed reader. Entry ids are provider-side identifiers, always as strings.

Example:
    >>> from fluxsync.protocols.provider import Provider
    >>> hasattr(Provider, "get_unread_ids")
    True
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from fluxsync.models.provider import ProviderEntry, ProviderFeed


@runtime_checkable
class Provider(Protocol):
    """Protocol implemented by every provider client.

    Mutations given an empty id list return without issuing a request.

    See Also:
        fluxsync.providers.miniflux.MinifluxProvider
        fluxsync.providers.feedbin.FeedbinProvider
        fluxsync.providers.google_reader.GoogleReaderProvider
    """

    async def test_connection(self) -> bool:
        """Return True if the credentials are accepted."""
        ...

    async def get_feeds(self) -> list[ProviderFeed]:
        ...

    async def get_unread_ids(self) -> set[str]:
        ...

    async def get_starred_ids(self) -> set[str]:
        ...

    async def get_entries(
        self, since: datetime | None = None, limit: int = 100
    ) -> list[ProviderEntry]:
        """Recent entries, newest first, optionally only those after ``since``."""
        ...

    async def mark_as_read(self, entry_ids: list[str]) -> None:
        ...

    async def mark_as_unread(self, entry_ids: list[str]) -> None:
        ...

    async def star_entries(self, entry_ids: list[str]) -> None:
        ...

    async def unstar_entries(self, entry_ids: list[str]) -> None:
        ...

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        ...

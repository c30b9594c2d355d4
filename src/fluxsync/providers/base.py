"""Base provider implementation.

Shared plumbing for hosted feed reader clients: one :class:`HttpClient` per
provider rooted at the API base URL, JSON decoding with format errors, and
credential failures mapped to :class:`~fluxsync.core.exceptions.AuthError`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import httpx

from fluxsync.core.exceptions import AuthError, FluxSyncError, FormatError, TransportError
from fluxsync.http.client import HttpClient
from fluxsync.models.provider import ProviderEntry, ProviderFeed

logger = logging.getLogger(__name__)

AUTH_STATUS = frozenset({401, 403})


class BaseProvider(ABC):
    """Base class for provider clients.

    Subclasses set ``kind`` and implement the read and mutation calls of
    :class:`~fluxsync.protocols.provider.Provider`.
    """

    kind: str = "base"

    def __init__(
        self,
        api_base: str,
        *,
        headers: dict[str, str] | None = None,
        http: HttpClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the provider client.

        Args:
            api_base: Base URL every request path is relative to.
            headers: Default headers (credentials, content type).
            http: Pre-built client, mainly for tests.
            transport: Custom transport (tests use ``httpx.MockTransport``).
        """
        self._api_base = api_base.rstrip("/")
        self._http = http or HttpClient(
            base_url=self._api_base,
            rate_limit=5.0,
            headers=headers,
            transport=transport,
        )

    @property
    def api_base(self) -> str:
        return self._api_base

    async def close(self) -> None:
        await self._http.close()

    async def __aenter__(self) -> BaseProvider:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, path, **kwargs)
        except TransportError as e:
            if e.status_code in AUTH_STATUS:
                logger.warning(f"{self.kind}: credentials rejected ({e.status_code})")
                raise AuthError(f"{self.kind} rejected the credentials: HTTP {e.status_code}") from e
            logger.warning(f"{self.kind}: {method} {path} failed: {e}")
            raise

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._request(method, path, **kwargs)
        return decode_json(response, self.kind)

    async def test_connection(self) -> bool:
        """Return True if the credentials are accepted."""
        try:
            await self._check_connection()
        except FluxSyncError as e:
            logger.info(f"{self.kind}: connection test failed: {e}")
            return False
        return True

    @abstractmethod
    async def _check_connection(self) -> None:
        """Issue an authenticated request; raise on failure."""
        ...

    @abstractmethod
    async def get_feeds(self) -> list[ProviderFeed]: ...

    @abstractmethod
    async def get_unread_ids(self) -> set[str]: ...

    @abstractmethod
    async def get_starred_ids(self) -> set[str]: ...

    @abstractmethod
    async def get_entries(
        self, since: datetime | None = None, limit: int = 100
    ) -> list[ProviderEntry]: ...

    @abstractmethod
    async def mark_as_read(self, entry_ids: list[str]) -> None: ...

    @abstractmethod
    async def mark_as_unread(self, entry_ids: list[str]) -> None: ...

    @abstractmethod
    async def star_entries(self, entry_ids: list[str]) -> None: ...

    @abstractmethod
    async def unstar_entries(self, entry_ids: list[str]) -> None: ...


def decode_json(response: httpx.Response, kind: str) -> Any:
    """Decode a JSON response body.

    Raises:
        FormatError: If the body is not JSON.
    """
    try:
        return response.json()
    except ValueError as e:
        logger.error(f"{kind}: invalid JSON from {response.request.url}")
        raise FormatError(f"{kind} returned invalid JSON") from e


def as_int_ids(entry_ids: list[str]) -> list[int]:
    """Numeric ids for providers whose API wants integers.

    Example:
        >>> as_int_ids(["1", "22"])
        [1, 22]
    """
    try:
        return [int(i) for i in entry_ids]
    except ValueError as e:
        raise FormatError(f"Non-numeric entry id in {entry_ids!r}") from e

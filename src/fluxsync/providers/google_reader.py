"""Google Reader API provider, spoken by FreshRSS and BazQux.

Authentication is a ``ClientLogin`` form post that answers with an
``Auth=<token>`` line. Every request carries ``Authorization: GoogleLogin
auth=<token>``; mutations additionally need a short-lived edit token from
``/api/0/token``.

A 401 answer means the session expired: the client logs in again and
retries the request exactly once. A second 401 raises
:class:`~fluxsync.core.exceptions.AuthError`.

Example:
    >>> from fluxsync.models.provider import GoogleReaderConfig
    >>> from fluxsync.providers.google_reader import GoogleReaderProvider
    >>> cfg = GoogleReaderConfig(kind="freshrss", username="u", password="p", base_url="https://rss.example")
    >>> GoogleReaderProvider(cfg).api_base
    'https://rss.example/api/greader.php'
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import httpx

from fluxsync.core.exceptions import AuthError, TransportError
from fluxsync.http.client import HttpClient
from fluxsync.models.provider import GoogleReaderConfig, ProviderEntry, ProviderFeed
from fluxsync.providers.base import AUTH_STATUS, BaseProvider

logger = logging.getLogger(__name__)

BAZQUX_LOGIN_URL = "https://www.bazqux.com/accounts/ClientLogin"
FRESHRSS_API_PATH = "/api/greader.php"

READING_LIST = "user/-/state/com.google/reading-list"
READ = "user/-/state/com.google/read"
STARRED = "user/-/state/com.google/starred"
MAX_IDS = 10000

FormBuilder = Callable[[], Awaitable[dict[str, Any]]]


class GoogleReaderProvider(BaseProvider):
    """Client for Google Reader compatible services."""

    kind = "google_reader"

    def __init__(
        self,
        config: GoogleReaderConfig,
        *,
        http: HttpClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if config.kind == "bazqux":
            api_base = config.base_url
            self._login_url = BAZQUX_LOGIN_URL
        else:
            api_base = f"{config.base_url}{FRESHRSS_API_PATH}"
            self._login_url = f"{api_base}/accounts/ClientLogin"
        super().__init__(api_base, http=http, transport=transport)
        self.kind = config.kind
        self._config = config
        self._auth_token: str | None = config.auth_token
        self._login_lock = asyncio.Lock()

    @property
    def auth_token(self) -> str | None:
        """Current session token (persist it to skip the next login)."""
        return self._auth_token

    async def login(self) -> str:
        """Obtain a fresh session token.

        Raises:
            AuthError: If the service rejects the credentials or answers
                without a token.
        """
        try:
            response = await self._http.post(
                self._login_url,
                data={"Email": self._config.username, "Passwd": self._config.password},
            )
        except TransportError as e:
            logger.warning(f"{self.kind}: login failed: {e}")
            raise AuthError(f"Login failed: HTTP {e.status_code}") from e

        for line in response.text.splitlines():
            if line.startswith("Auth="):
                self._auth_token = line[len("Auth=") :].strip()
                logger.debug(f"{self.kind}: logged in as {self._config.username}")
                return self._auth_token
        raise AuthError("No Auth token in login response")

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"GoogleLogin auth={self._auth_token}"}

    async def _ensure_session(self) -> None:
        # concurrent first requests share one ClientLogin
        async with self._login_lock:
            if not self._auth_token:
                await self.login()

    async def _send(
        self, method: str, path: str, form: FormBuilder | None, kwargs: dict[str, Any]
    ) -> httpx.Response:
        if form is not None:
            kwargs = {**kwargs, "data": await form()}
        return await self._http.request(method, path, headers=self._auth_headers(), **kwargs)

    async def _request(
        self, method: str, path: str, *, form: FormBuilder | None = None, **kwargs: Any
    ) -> httpx.Response:
        """Send an authenticated request, re-logging in once on 401.

        ``form`` is awaited before every attempt, so a form carrying an edit
        token is rebuilt with a token of the new session after a re-login.
        """
        await self._ensure_session()
        try:
            return await self._send(method, path, form, kwargs)
        except TransportError as e:
            if e.status_code != 401:
                raise

        logger.info(f"{self.kind}: session expired, logging in again")
        await self.login()
        try:
            return await self._send(method, path, form, kwargs)
        except TransportError as e:
            if e.status_code in AUTH_STATUS:
                raise AuthError(f"{self.kind} rejected the session after re-login") from e
            raise

    async def _check_connection(self) -> None:
        await self.login()
        await self._json("GET", "/api/0/user-info", params={"output": "json"})

    async def get_feeds(self) -> list[ProviderFeed]:
        data = await self._json("GET", "/api/0/subscription/list", params={"output": "json"})
        return [
            ProviderFeed(
                remote_id=s["id"],
                title=s.get("title") or "",
                feed_url=s["url"],
                site_url=s.get("htmlUrl") or None,
                category=(s.get("categories") or [{}])[0].get("label"),
            )
            for s in data.get("subscriptions") or []
        ]

    async def _item_ids(self, params: dict[str, Any]) -> set[str]:
        data = await self._json(
            "GET", "/api/0/stream/items/ids", params={"output": "json", **params, "n": MAX_IDS}
        )
        return {ref["id"] for ref in data.get("itemRefs") or []}

    async def get_unread_ids(self) -> set[str]:
        return await self._item_ids({"s": READING_LIST, "xt": READ})

    async def get_starred_ids(self) -> set[str]:
        return await self._item_ids({"s": STARRED})

    async def get_entries(
        self, since: datetime | None = None, limit: int = 100
    ) -> list[ProviderEntry]:
        params: dict[str, Any] = {"output": "json", "n": limit}
        if since is not None:
            params["ot"] = int(since.timestamp())
        data = await self._json("GET", f"/api/0/stream/contents/{READING_LIST}", params=params)
        return [_to_entry(item) for item in data.get("items") or []]

    async def _edit_token(self) -> str:
        response = await self._request("GET", "/api/0/token")
        return response.text.strip()

    async def _edit_tag(self, entry_ids: list[str], action: str, tag: str) -> None:
        if not entry_ids:
            return

        async def build_form() -> dict[str, Any]:
            return {"i": list(entry_ids), action: tag, "T": await self._edit_token()}

        await self._request("POST", "/api/0/edit-tag", form=build_form)

    async def mark_as_read(self, entry_ids: list[str]) -> None:
        await self._edit_tag(entry_ids, "a", READ)

    async def mark_as_unread(self, entry_ids: list[str]) -> None:
        await self._edit_tag(entry_ids, "r", READ)

    async def star_entries(self, entry_ids: list[str]) -> None:
        await self._edit_tag(entry_ids, "a", STARRED)

    async def unstar_entries(self, entry_ids: list[str]) -> None:
        await self._edit_tag(entry_ids, "r", STARRED)


def _first_href(links: list[dict[str, Any]] | None) -> str:
    return (links or [{}])[0].get("href") or ""


def _to_entry(item: dict[str, Any]) -> ProviderEntry:
    return ProviderEntry(
        remote_id=item["id"],
        feed_remote_id=(item.get("origin") or {}).get("streamId") or "",
        title=item.get("title") or "",
        url=_first_href(item.get("canonical")) or _first_href(item.get("alternate")),
        author=item.get("author") or None,
        content=(item.get("content") or {}).get("content")
        or (item.get("summary") or {}).get("content")
        or "",
        published_at=datetime.fromtimestamp(item.get("published") or 0, UTC),
    )

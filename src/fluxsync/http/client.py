"""Shared HTTP boundary for adapters, providers and the remote backend.

One ``HttpClient`` wraps an ``httpx.AsyncClient`` and adds the policies
every caller relies on:

- requests are spaced by a :class:`RateLimiter`
- idempotent requests are retried with backoff on 5xx and network errors
- HTTP 429 surfaces as :class:`RateLimitedError`, other failures as
  :class:`TransportError` carrying the status code
- an optional fetch proxy routes every request

Example:
    >>> from fluxsync.http import HttpClient
    >>>
    >>> async with HttpClient(rate_limit=10.0) as client:
    ...     xml = await client.get_text("https://example.com/feed.xml")
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from fluxsync.core.exceptions import RateLimitedError, TransportError
from fluxsync.http.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
RETRYABLE_STATUS = frozenset({500, 502, 503, 504})


class HttpClient:
    """Rate-limited async client mapping failures onto FluxSync errors.

    The underlying ``httpx.AsyncClient`` is created lazily and recreated
    after :meth:`close`, so one instance may outlive several sessions.
    Pass ``transport`` to bypass the network (tests use
    ``httpx.MockTransport``); ``proxy`` is ignored in that case.
    """

    def __init__(
        self,
        base_url: str = "",
        rate_limit: float = 10.0,
        user_agent: str = "FluxSync/0.1",
        timeout: float = 30.0,
        max_retries: int = 2,
        headers: dict[str, str] | None = None,
        proxy: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff_base: float = 1.0,
    ):
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max_retries
        self._base_url = base_url
        self._limiter = RateLimiter(rate_limit)
        self._default_headers = {"User-Agent": user_agent, "Accept": "*/*", **(headers or {})}
        self._proxy = proxy
        self._transport = transport
        self._backoff_base = backoff_base
        self._client: httpx.AsyncClient | None = None

    @property
    def rate_limit(self) -> float:
        return self._limiter.rate

    @property
    def headers(self) -> dict[str, str]:
        """Headers sent with every request."""
        return dict(self._default_headers)

    def _open(self) -> httpx.AsyncClient:
        if self._client is not None and not self._client.is_closed:
            return self._client
        options: dict[str, Any] = {}
        if self._transport is not None:
            options["transport"] = self._transport
        elif self._proxy:
            options["proxy"] = self._proxy
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            **options,
        )
        return self._client

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is not None and not client.is_closed:
            await client.aclose()

    async def __aenter__(self) -> HttpClient:
        self._open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _backoff(self, attempt: int) -> None:
        await asyncio.sleep(self._backoff_base * 2**attempt)

    async def request(
        self,
        method: str,
        url: str,
        *,
        retry: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and return a response with status below 400.

        Only GET, HEAD and OPTIONS are retried, and only when ``retry``
        is true. Extra keyword arguments go straight to httpx.

        Raises:
            RateLimitedError: The upstream answered 429. Never retried
                here; callers wrap the call in ``with_retry`` when they
                want to wait it out.
            TransportError: Any other HTTP status of 400 or above, a
                timeout, or a connection failure.
        """
        client = self._open()
        method = method.upper()
        retries = self.max_retries if retry and method in IDEMPOTENT_METHODS else 0
        attempt = 0

        while True:
            await self._limiter.acquire()
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.RequestError as exc:
                if attempt < retries:
                    logger.debug("%s %s failed (%s), retrying", method, url, exc)
                    await self._backoff(attempt)
                    attempt += 1
                    continue
                kind = "timeout" if isinstance(exc, httpx.TimeoutException) else "failed"
                raise TransportError(f"Request {kind}: {exc}", url=url) from exc

            if response.status_code in RETRYABLE_STATUS and attempt < retries:
                logger.debug("HTTP %d for %s, retrying", response.status_code, url)
                await self._backoff(attempt)
                attempt += 1
                continue

            _raise_for_status(response, method, url)
            return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def get_text(self, url: str, **kwargs: Any) -> str:
        """GET ``url`` and return the decoded body."""
        return (await self.get(url, **kwargs)).text

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        """GET ``url`` and return the parsed JSON body."""
        return (await self.get(url, **kwargs)).json()


def _raise_for_status(response: httpx.Response, method: str, url: str) -> None:
    status = response.status_code
    if status == 429:
        raise RateLimitedError(
            f"Rate limited by {response.request.url.host}",
            attempts=1,
            retry_after=_retry_after_seconds(response.headers.get("Retry-After")),
            url=url,
        )
    if status >= 400:
        raise TransportError(
            f"HTTP {status} for {method} {url}: {response.text[:200]}",
            status_code=status,
            url=url,
        )


def _retry_after_seconds(value: str | None) -> float | None:
    # HTTP-date values are not worth parsing; callers fall back to backoff
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


@asynccontextmanager
async def http_client(base_url: str = "", **kwargs: Any) -> AsyncIterator[HttpClient]:
    """Open an :class:`HttpClient` for the duration of a block.

    Example:
        >>> async with http_client(rate_limit=10.0) as client:
        ...     text = await client.get_text("/some/url")
    """
    async with HttpClient(base_url=base_url, **kwargs) as client:
        yield client


__all__ = [
    "HttpClient",
    "http_client",
]

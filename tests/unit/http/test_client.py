"""Tests for fluxsync.http.client - shared HTTP boundary."""

from __future__ import annotations

import httpx
import pytest

from fluxsync.core.exceptions import RateLimitedError, TransportError
from fluxsync.http.client import HttpClient, http_client


def make_client(handler, **kwargs) -> HttpClient:
    return HttpClient(
        base_url="https://api.example",
        rate_limit=0,
        backoff_base=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


# =============================================================================
# Requests
# =============================================================================


class TestRequests:
    """Tests for successful requests."""

    async def test_get_text(self) -> None:
        client = make_client(lambda request: httpx.Response(200, text="<rss/>"))
        assert await client.get_text("/feed.xml") == "<rss/>"
        await client.close()

    async def test_get_json(self) -> None:
        client = make_client(lambda request: httpx.Response(200, json={"ok": True}))
        assert await client.get_json("/status") == {"ok": True}
        await client.close()

    async def test_default_headers(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        client = make_client(handler, user_agent="Test/1.0", headers={"X-Auth-Token": "k"})
        await client.get("/me")
        await client.close()

        assert seen[0].headers["User-Agent"] == "Test/1.0"
        assert seen[0].headers["X-Auth-Token"] == "k"
        assert str(seen[0].url) == "https://api.example/me"

    async def test_context_manager(self) -> None:
        async with http_client(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, text="ok")), rate_limit=0
        ) as client:
            assert await client.get_text("https://x.example/") == "ok"


# =============================================================================
# Error Mapping
# =============================================================================


class TestErrors:
    """Tests for status and network error mapping."""

    async def test_429_raises_rate_limited(self) -> None:
        client = make_client(lambda r: httpx.Response(429, headers={"Retry-After": "7"}))
        with pytest.raises(RateLimitedError) as exc_info:
            await client.get("/timeline")
        await client.close()
        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 7.0

    async def test_4xx_raises_transport_error_with_status(self) -> None:
        client = make_client(lambda r: httpx.Response(404, text="missing"))
        with pytest.raises(TransportError) as exc_info:
            await client.get("/nope")
        await client.close()
        assert exc_info.value.status_code == 404

    async def test_get_retried_on_5xx(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503) if len(calls) < 2 else httpx.Response(200, text="ok")

        client = make_client(handler, max_retries=2)
        assert await client.get_text("/flaky") == "ok"
        await client.close()
        assert len(calls) == 2

    async def test_post_not_retried(self) -> None:
        """Non-idempotent requests are sent exactly once."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        client = make_client(handler, max_retries=2)
        with pytest.raises(TransportError):
            await client.post("/entries", json={})
        await client.close()
        assert len(calls) == 1

    async def test_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = make_client(handler, max_retries=1)
        with pytest.raises(TransportError) as exc_info:
            await client.get("/down")
        await client.close()
        assert exc_info.value.status_code is None


class TestProperties:
    """Tests for client configuration."""

    def test_defaults(self) -> None:
        client = HttpClient()
        assert client.rate_limit == 10.0
        assert client.timeout == 30.0
        assert client.max_retries == 2
        assert client.headers["User-Agent"] == client.user_agent

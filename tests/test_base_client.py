"""
Tests for the shared request gateway (BaseAPIClient._execute_request).

Wire traffic is stubbed with httpx.MockTransport; backoff sleeps are
replaced with an AsyncMock so retry tests run instantly.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from scholar_federation.domain.entities.api import ApiConfig, ApiResponse, RateLimit
from scholar_federation.infrastructure.sources.base_client import BaseAPIClient, SourceClient


class EchoClient(BaseAPIClient):
    """Minimal concrete client hitting ``/echo``."""

    key = "echo"

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return await self._execute_request(self._get("/echo", params={"q": title, "n": limit}))

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        return self._unsupported("Author search")

    async def search_by_doi(self, doi: str) -> ApiResponse:
        return self._invalid_doi()

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return await self._execute_request(self._get("/echo", params={"q": keyword}), parse_as="text")

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        return [response] if isinstance(response, dict) else []


def make_client(handler, *, retries: int = 3, timeout: int = 10000, rps: float | None = None) -> EchoClient:
    client = EchoClient(
        ApiConfig(
            name="Echo",
            base_url="https://api.example.org/",
            rate_limit=RateLimit(requests_per_second=rps),
            timeout=timeout,
            retries=retries,
        ),
        transport=httpx.MockTransport(handler),
    )
    return client


# =============================================================================
# Success path
# =============================================================================


class TestSuccess:
    """Successful calls parse the body and update metrics."""

    async def test_json_response(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"hello": "world"})

        async with make_client(handler) as client:
            response = await client.search_by_title("graphs", 5)

        assert response.success is True
        assert response.api_name == "Echo"
        assert response.data == {"hello": "world"}
        assert str(seen[0].url) == "https://api.example.org/echo?q=graphs&n=5"
        assert seen[0].headers["User-Agent"].startswith("scholar-federation/")

    async def test_text_response(self):
        async with make_client(lambda request: httpx.Response(200, text="<feed/>")) as client:
            response = await client.search_by_keyword("x")
        assert response.data == "<feed/>"

    async def test_metrics_recorded(self):
        async with make_client(lambda request: httpx.Response(200, json={})) as client:
            await client.search_by_title("a")
            await client.search_by_title("b")
            metrics = client.get_metrics()

        assert metrics.total_requests == 2
        assert metrics.successful_requests == 2
        assert metrics.failed_requests == 0
        assert metrics.average_response_time >= 0

    async def test_get_metrics_returns_copy(self):
        async with make_client(lambda request: httpx.Response(200, json={})) as client:
            before = client.get_metrics()
            await client.search_by_title("a")
        assert before.total_requests == 0

    async def test_rate_limit_headers_captured(self):
        headers = {"x-ratelimit-limit": "100", "x-ratelimit-remaining": "99", "x-ratelimit-reset": "1700000000"}
        async with make_client(lambda request: httpx.Response(200, json={}, headers=headers)) as client:
            await client.search_by_title("a")
            info = client.get_rate_limit_info()

        assert info is not None
        assert info.limit == 100
        assert info.remaining == 99
        assert info.reset_at.year == 2023

    async def test_partial_rate_limit_headers_ignored(self):
        headers = {"x-ratelimit-limit": "100"}
        async with make_client(lambda request: httpx.Response(200, json={}, headers=headers)) as client:
            await client.search_by_title("a")
            assert client.get_rate_limit_info() is None

    def test_satisfies_protocol(self):
        client = make_client(lambda request: httpx.Response(200))
        assert isinstance(client, SourceClient)
        assert client.name == "Echo"


# =============================================================================
# Failures and retries
# =============================================================================


class TestFailures:
    """Every failure becomes ApiResponse(success=False); nothing escapes."""

    async def test_not_found_is_not_retried(self):
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            return httpx.Response(404)

        async with make_client(handler) as client:
            client._delay = AsyncMock()
            response = await client.search_by_title("x")
            metrics = client.get_metrics()

        assert response.success is False
        assert response.error == "HTTP 404: Not Found"
        assert calls == 1
        assert metrics.total_requests == 1
        assert metrics.failed_requests == 1
        assert metrics.last_error == "HTTP 404: Not Found"
        client._delay.assert_not_awaited()

    async def test_invalid_json_is_parse_error(self):
        async with make_client(lambda request: httpx.Response(200, text="not json")) as client:
            response = await client.search_by_title("x")
        assert response.success is False
        assert response.error == "Parse error (Echo): Invalid JSON response"

    @pytest.mark.parametrize("status", [429, 503])
    async def test_retryable_status_then_success(self, status):
        statuses = [status, status, 200]

        def handler(request):
            code = statuses.pop(0)
            return httpx.Response(code, json={"ok": True} if code == 200 else None)

        async with make_client(handler, retries=3) as client:
            client._delay = AsyncMock()
            response = await client.search_by_title("x")
            metrics = client.get_metrics()

        assert response.success is True
        assert metrics.total_requests == 3
        assert metrics.failed_requests == 2
        assert metrics.successful_requests == 1
        assert [c.args[0] for c in client._delay.await_args_list] == [1.0, 2.0]

    async def test_timeout_retried_exactly_configured_times(self):
        calls = 0

        async def handler(request):
            nonlocal calls
            calls += 1
            await asyncio.sleep(1)
            return httpx.Response(200, json={})

        async with make_client(handler, retries=2, timeout=20) as client:
            client._delay = AsyncMock()
            response = await client.search_by_title("x")

        assert response.success is False
        assert "timeout" in response.error.lower()
        assert calls == 3
        assert [c.args[0] for c in client._delay.await_args_list] == [1.0, 2.0]

    async def test_retries_override(self):
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            return httpx.Response(503)

        async with make_client(handler, retries=3) as client:
            client._delay = AsyncMock()
            response = await client._execute_request(client._get("/echo"), retries=0)

        assert response.success is False
        assert calls == 1

    async def test_unexpected_exception_becomes_failure(self):
        async with make_client(lambda request: httpx.Response(200)) as client:

            async def explode():
                raise RuntimeError("boom")

            response = await client._execute_request(explode)

        assert response.success is False
        assert response.error == "boom"

    async def test_transport_error_becomes_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            response = await client.search_by_title("x")

        assert response.success is False
        assert "connection refused" in response.error

    async def test_backoff_capped(self):
        async with make_client(lambda request: httpx.Response(503), retries=6) as client:
            client._delay = AsyncMock()
            await client.search_by_title("x")
        assert [c.args[0] for c in client._delay.await_args_list] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]


# =============================================================================
# Rate limiting
# =============================================================================


class TestRateLimiting:
    """Consecutive calls on one client honor the minimum interval."""

    async def test_two_per_second_spacing(self):
        stamps: list[float] = []

        def handler(request):
            stamps.append(time.monotonic())
            return httpx.Response(200, json={})

        async with make_client(handler, rps=2) as client:
            await client.search_by_title("a")
            await client.search_by_title("b")

        assert stamps[1] - stamps[0] >= 0.45

    async def test_concurrent_calls_are_spaced(self):
        stamps: list[float] = []

        def handler(request):
            stamps.append(time.monotonic())
            return httpx.Response(200, json={})

        async with make_client(handler, rps=10) as client:
            await asyncio.gather(*(client.search_by_title(str(i)) for i in range(3)))

        gaps = [b - a for a, b in zip(stamps, stamps[1:], strict=False)]
        assert all(gap >= 0.08 for gap in gaps)

    async def test_unthrottled_client_does_not_wait(self):
        async with make_client(lambda request: httpx.Response(200, json={})) as client:
            client._delay = AsyncMock()
            await client.search_by_title("a")
            await client.search_by_title("b")
        client._delay.assert_not_awaited()


# =============================================================================
# Helpers
# =============================================================================


class TestHelpers:
    async def test_unsupported(self):
        client = make_client(lambda request: httpx.Response(200))
        response = await client.search_by_author("x")
        assert response.success is False
        assert response.error == "Author search not supported"
        await client.close()

    async def test_invalid_doi(self):
        client = make_client(lambda request: httpx.Response(200))
        response = await client.search_by_doi("nope")
        assert response.error == "Invalid DOI format"
        await client.close()

    def test_build_url(self):
        client = make_client(lambda request: httpx.Response(200))
        assert client._build_url("/works") == "https://api.example.org/works"
        assert client._build_url("https://other.org/x") == "https://other.org/x"

    async def test_post_sends_json(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={})

        async with make_client(handler) as client:
            await client._execute_request(client._post("/search", json={"q": "x"}))

        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"q": "x"}

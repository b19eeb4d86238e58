"""
Base API Client - Shared request execution for every provider client.

Every provider client subclasses ``BaseAPIClient`` and routes each HTTP call
through ``_execute_request``, which provides:
- Rate limiting (minimum interval derived from requests-per-second)
- A per-call timeout (request raced against a timer)
- Retry with capped exponential backoff on timeout / 429 / 503
- Metrics (request counters, running average response time, last error)
- Opportunistic capture of x-ratelimit-* response headers

No exception escapes ``_execute_request``: every failure becomes a failed
``ApiResponse``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

import httpx
from typing_extensions import Self

from scholar_federation.core.exceptions import (
    FederationError,
    HttpStatusError,
    NetworkTimeoutError,
    ParseError,
    UnsupportedOperationError,
    get_retry_delay,
    is_retryable_error,
)
from scholar_federation.domain.entities.api import ApiConfig, ApiMetrics, ApiResponse, RateLimitInfo

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

USER_AGENT = "scholar-federation/0.1"


@runtime_checkable
class SourceClient(Protocol):
    """Capability interface every provider implements."""

    key: str

    @property
    def name(self) -> str: ...

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse: ...

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse: ...

    async def search_by_doi(self, doi: str) -> ApiResponse: ...

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse: ...

    def transform_response(self, response: Any) -> list[dict[str, Any]]: ...

    def get_metrics(self) -> ApiMetrics: ...


class BaseAPIClient(ABC):
    """
    Base class for external provider clients.

    Provides common infrastructure:
    - httpx.AsyncClient management
    - Rate limiting with an interval derived from the config
    - Timeout, retry and backoff around each call
    - Metrics and rate-limit header bookkeeping

    Subclasses set ``key`` (registry key) and implement the four search
    operations plus ``transform_response``.

    Example:
        class MyClient(BaseAPIClient):
            key = "myapi"

            def __init__(self):
                super().__init__(ApiConfig(name="MyAPI", base_url="https://api.example.com"))

            async def search_by_title(self, title, limit=10):
                return await self._execute_request(self._get("/items", params={"q": title}))
    """

    key: str = "api"

    def __init__(
        self,
        config: ApiConfig,
        *,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize base client.

        Args:
            config: Provider configuration (name, base URL, rate limit, timeout, retries)
            headers: Default headers for all requests
            transport: Optional httpx transport (used by tests to stub the wire)
        """
        self.config = config
        self._base_url = config.base_url.rstrip("/")
        self._min_interval = config.rate_limit.min_interval
        self._last_request_time: float | None = None
        self._rate_lock = asyncio.Lock()
        self._metrics = ApiMetrics()
        self._rate_limit_info: RateLimitInfo | None = None
        self._client = httpx.AsyncClient(
            timeout=config.timeout / 1000,
            headers={"User-Agent": USER_AGENT, **(headers or {})},
            follow_redirects=True,
            transport=transport,
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )

    @property
    def name(self) -> str:
        return self.config.name

    # =========================================================================
    # Capability interface
    # =========================================================================

    @abstractmethod
    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse: ...

    @abstractmethod
    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse: ...

    @abstractmethod
    async def search_by_doi(self, doi: str) -> ApiResponse: ...

    @abstractmethod
    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse: ...

    @abstractmethod
    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        """Map a raw payload to intermediate dicts using provider field names."""

    # =========================================================================
    # Gateway
    # =========================================================================

    async def _execute_request(
        self,
        request_fn: Callable[[], Awaitable[httpx.Response]],
        *,
        retries: int | None = None,
        timeout: int | None = None,
        parse_as: Literal["json", "text"] = "json",
    ) -> ApiResponse:
        """
        Execute a request with rate limiting, timeout, retries and metrics.

        Args:
            request_fn: Zero-arg callable returning an awaitable httpx.Response
            retries: Retries left (default: config.retries)
            timeout: Per-call timeout in milliseconds (default: config.timeout)
            parse_as: "json" or "text"

        Returns:
            ApiResponse (success with parsed data, or failure with error text)
        """
        configured = self.config.retries
        remaining = configured if retries is None else retries
        timeout_s = (self.config.timeout if timeout is None else timeout) / 1000

        while True:
            try:
                await self._rate_limit()
                self._metrics.total_requests += 1
                start = time.monotonic()

                try:
                    response = await asyncio.wait_for(request_fn(), timeout=timeout_s)
                except (TimeoutError, httpx.TimeoutException) as e:
                    raise NetworkTimeoutError(timeout_s) from e

                if not 200 <= response.status_code < 300:
                    raise HttpStatusError(response.status_code, response.reason_phrase)

                data = self._parse_response(response, parse_as)
                self._metrics.record_success((time.monotonic() - start) * 1000)
                self._extract_rate_limit_info(response)
                return ApiResponse.ok(self.name, data)

            except Exception as e:
                message = str(e) or type(e).__name__
                self._metrics.record_failure(message)

                if remaining > 0 and is_retryable_error(e):
                    attempt = configured - remaining
                    delay = get_retry_delay(attempt)
                    logger.warning(
                        f"{self.name}: {message}, retry {attempt + 1}/{configured} in {delay:.1f}s"
                    )
                    await self._delay(delay)
                    remaining -= 1
                    continue

                if isinstance(e, FederationError | httpx.HTTPError):
                    logger.warning(f"{self.name} request failed: {message}")
                else:
                    logger.exception(f"{self.name} request failed: {message}")
                return ApiResponse.fail(self.name, message)

    async def _rate_limit(self) -> None:
        """Enforce the minimum interval between requests of this client."""
        async with self._rate_lock:
            if self._last_request_time is not None and self._min_interval > 0:
                elapsed = time.monotonic() - self._last_request_time
                if elapsed < self._min_interval:
                    wait = self._min_interval - elapsed
                    logger.debug(f"{self.name}: rate limit, waiting {wait:.2f}s")
                    await self._delay(wait)
            self._last_request_time = time.monotonic()

    async def _delay(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def _parse_response(self, response: httpx.Response, parse_as: str) -> Any:
        """Parse response body. Override for custom extraction logic."""
        if parse_as == "text":
            return response.text
        try:
            return response.json()
        except ValueError as e:
            raise ParseError("Invalid JSON response", source=self.name) from e

    def _extract_rate_limit_info(self, response: httpx.Response) -> None:
        limit = response.headers.get("x-ratelimit-limit")
        remaining = response.headers.get("x-ratelimit-remaining")
        reset = response.headers.get("x-ratelimit-reset")
        if not (limit and remaining and reset):
            return
        try:
            self._rate_limit_info = RateLimitInfo(
                limit=int(limit),
                remaining=int(remaining),
                reset_at=datetime.fromtimestamp(int(reset), UTC),
            )
        except (ValueError, OverflowError, OSError):
            logger.debug(f"{self.name}: unparseable rate limit headers")

    # =========================================================================
    # Request helpers
    # =========================================================================

    def _build_url(self, url: str) -> str:
        """Build full URL from path or full URL."""
        if url.startswith(("http://", "https://")):
            return url
        return f"{self._base_url}{url}"

    def _get(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Callable[[], Awaitable[httpx.Response]]:
        """Return a request function for a GET (re-invoked on every retry)."""
        full_url = self._build_url(url)
        return lambda: self._client.get(full_url, params=params, headers=headers)

    def _post(
        self,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Callable[[], Awaitable[httpx.Response]]:
        """Return a request function for a JSON POST."""
        full_url = self._build_url(url)
        return lambda: self._client.post(full_url, json=json, headers=headers)

    def _unsupported(self, capability: str) -> ApiResponse:
        """Explicit failure for a query type this provider cannot serve."""
        error = UnsupportedOperationError(capability)
        logger.debug(f"{self.name}: {error}")
        return ApiResponse.fail(self.name, str(error))

    def _invalid_doi(self) -> ApiResponse:
        return ApiResponse.fail(self.name, "Invalid DOI format")

    # =========================================================================
    # Introspection / lifecycle
    # =========================================================================

    def get_metrics(self) -> ApiMetrics:
        """Return a copy of the current metrics."""
        return self._metrics.snapshot()

    def get_rate_limit_info(self) -> RateLimitInfo | None:
        return self._rate_limit_info

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

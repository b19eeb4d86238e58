"""
CrossRef API Integration

CrossRef is the official DOI registration agency for scholarly publications
(130M+ DOI records).

API Documentation: https://api.crossref.org/swagger-ui/index.html

Rate Limits:
- Polite pool (with mailto): ~50 req/sec
- Anonymous: ~1 req/sec
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import Any

import httpx

from scholar_federation.application.search.normalizer import SourceNormalizer
from scholar_federation.domain.entities.api import ApiConfig, ApiResponse, RateLimit
from scholar_federation.infrastructure.sources.base_client import BaseAPIClient

logger = logging.getLogger(__name__)

CROSSREF_API_BASE = "https://api.crossref.org"


class CrossRefClient(BaseAPIClient):
    """
    CrossRef works API client.

    Usage:
        client = CrossRefClient(email="your@email.com")
        response = await client.search_by_doi("10.1001/jama.2024.12345")
        records = client.transform_response(response.data)

    Note:
        Providing an email puts requests in the "polite pool" with a much
        higher rate limit.
    """

    key = "crossref"

    def __init__(self, email: str | None = None, *, transport: httpx.AsyncBaseTransport | None = None):
        self._email = email
        super().__init__(
            ApiConfig(
                name="CrossRef",
                base_url=CROSSREF_API_BASE,
                api_key=email,
                rate_limit=RateLimit(requests_per_second=50 if email else 1),
                timeout=10000,
                retries=3,
            ),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    def _params(self, **params: Any) -> dict[str, Any]:
        if self._email:
            params["mailto"] = self._email
        return params

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return await self._execute_request(self._get("/works", params=self._params(query=title, rows=limit)))

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        params = self._params(**{"query.author": author, "rows": limit})
        return await self._execute_request(self._get("/works", params=params))

    async def search_by_doi(self, doi: str) -> ApiResponse:
        clean = SourceNormalizer.extract_doi(doi)
        if not clean:
            return self._invalid_doi()
        url = f"/works/{urllib.parse.quote(clean, safe='')}"
        return await self._execute_request(self._get(url, params=self._params() or None))

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return await self.search_by_title(keyword, limit)

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        """Map a ``message`` payload (single work or item list) to records."""
        if not isinstance(response, dict) or not isinstance(response.get("message"), dict):
            return []

        message = response["message"]
        items = message["items"] if isinstance(message.get("items"), list) else [message]

        records = []
        for item in items:
            if not isinstance(item, dict):
                continue
            date_parts = [
                p for p in ((item.get("published") or {}).get("date-parts") or [[]])[0] or [] if p is not None
            ]
            records.append(
                {
                    "doi": item.get("DOI"),
                    "title": (item.get("title") or [None])[0],
                    "authors": item.get("author") or [],
                    "year": date_parts[0] if date_parts else None,
                    "published": "-".join(str(p) for p in date_parts) or None,
                    "type": item.get("type"),
                    "journal": (item.get("container-title") or [None])[0],
                    "volume": item.get("volume"),
                    "issue": item.get("issue"),
                    "pages": item.get("page"),
                    "publisher": item.get("publisher"),
                    "url": item.get("URL"),
                    "is_open_access": bool(item.get("is-oa", False)),
                    "citation_count": item.get("is-referenced-by-count"),
                    "abstract": item.get("abstract"),
                }
            )
        return records

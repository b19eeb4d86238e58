"""
CORE Integration

270M+ open access papers aggregated from repositories and journals.

API Documentation: https://api.core.ac.uk/docs/v3

Rate Limits:
- With API key (Bearer token): 10 req/sec
- Without: one request every 2 seconds
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from scholar_federation.application.search.normalizer import SourceNormalizer
from scholar_federation.domain.entities.api import ApiConfig, ApiResponse, RateLimit
from scholar_federation.infrastructure.sources.base_client import BaseAPIClient

logger = logging.getLogger(__name__)

CORE_API_BASE = "https://api.core.ac.uk/v3"


class CoreClient(BaseAPIClient):
    """CORE v3 works search client."""

    key = "core"

    def __init__(self, api_key: str | None = None, *, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            ApiConfig(
                name="CORE",
                base_url=CORE_API_BASE,
                api_key=api_key,
                rate_limit=RateLimit(requests_per_second=10 if api_key else 0.5),
                timeout=15000,
                retries=3,
            ),
            headers={"Authorization": f"Bearer {api_key}"} if api_key else None,
            transport=transport,
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'title:"{title}"', limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'authors:"{author}"', limit)

    async def search_by_doi(self, doi: str) -> ApiResponse:
        clean = SourceNormalizer.extract_doi(doi)
        if not clean:
            return self._invalid_doi()
        return await self._search(f'doi:"{clean}"', 1)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return await self._search(keyword, limit)

    async def _search(self, query: str, limit: int, offset: int = 0) -> ApiResponse:
        body = {"q": query, "limit": limit, "offset": offset}
        return await self._execute_request(self._post("/search/works", json=body))

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        if not isinstance(response, dict) or not isinstance(response.get("results"), list):
            return []

        records = []
        for work in response["results"]:
            if not isinstance(work, dict):
                continue
            doi = work.get("doi")
            fulltext_urls = work.get("sourceFulltextUrls") or []
            journals = work.get("journals") or []
            journal = journals[0] if journals else None
            if isinstance(journal, dict):
                journal = journal.get("title")

            records.append(
                {
                    "id": f"core:{work['id']}" if work.get("id") else None,
                    "doi": doi,
                    "title": work.get("title"),
                    "authors": [
                        a if isinstance(a, str) else {"full_name": a.get("name")}
                        for a in work.get("authors") or []
                        if isinstance(a, str | dict)
                    ],
                    "year": work.get("yearPublished"),
                    "publication_date": work.get("publishedDate"),
                    "type": work.get("documentType") or "journal",
                    "journal": journal,
                    "publisher": work.get("publisher"),
                    "url": work.get("downloadUrl")
                    or (fulltext_urls[0] if fulltext_urls else None)
                    or (f"https://doi.org/{doi}" if doi else None)
                    or (f"https://core.ac.uk/display/{work['id']}" if work.get("id") else None),
                    "pdf_url": work.get("downloadUrl"),
                    "is_open_access": True,
                    "abstract": work.get("abstract"),
                    "citation_count": work.get("citationCount"),
                }
            )
        return records

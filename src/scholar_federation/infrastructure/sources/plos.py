"""
PLOS Search Integration

Public Library of Science articles via its Solr search API.

API Documentation: https://api.plos.org/solr/faq/
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

PLOS_API_BASE = "https://api.plos.org/search"


class PLOSClient(BaseAPIClient):
    """PLOS Solr search client."""

    key = "plos"

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            ApiConfig(
                name="PLOS",
                base_url=PLOS_API_BASE,
                rate_limit=RateLimit(requests_per_second=2),
                timeout=10000,
                retries=3,
            ),
            transport=transport,
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'title:"{title}"', limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'author:"{author}"', limit)

    async def search_by_doi(self, doi: str) -> ApiResponse:
        clean = SourceNormalizer.extract_doi(doi)
        if not clean:
            return self._invalid_doi()
        return await self._search(f'id:"{clean}"', 1)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'everything:"{keyword}"', limit)

    async def _search(self, query: str, limit: int) -> ApiResponse:
        params = {"q": query, "rows": limit, "wt": "json"}
        return await self._execute_request(self._get(PLOS_API_BASE, params=params))

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        body = response.get("response") if isinstance(response, dict) else None
        docs = body.get("docs") if isinstance(body, dict) else None
        if not isinstance(docs, list):
            return []

        records = []
        for doc in docs:
            if not isinstance(doc, dict):
                continue
            doi = doc.get("id")
            abstract = doc.get("abstract")
            records.append(
                {
                    "id": doi,
                    "doi": doi,
                    "title": doc.get("title_display") or doc.get("title"),
                    "authors": doc.get("author_display") or [],
                    "year": doc.get("publication_date"),
                    "publication_date": doc.get("publication_date"),
                    "type": "journal",
                    "journal": doc.get("journal"),
                    "abstract": abstract[0] if isinstance(abstract, list) and abstract else abstract,
                    "url": f"https://journals.plos.org/plosone/article?id={urllib.parse.quote(doi, safe='/')}"
                    if doi
                    else None,
                    "is_open_access": True,
                    "keywords": doc.get("subject") or [],
                }
            )
        return records

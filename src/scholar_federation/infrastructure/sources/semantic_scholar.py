"""
Semantic Scholar Integration

200M+ papers via the Academic Graph API.

API Documentation: https://api.semanticscholar.org/api-docs/graph

Rate Limits:
- With API key (x-api-key header): 10 req/sec
- Without: 1 req/sec (shared pool)

Author search is two-step: resolve the best matching author, then list
that author's papers.
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

S2_API_BASE = "https://api.semanticscholar.org/graph/v1"

PAPER_FIELDS = (
    "title,authors,year,abstract,citationCount,referenceCount,fieldsOfStudy,"
    "publicationTypes,journal,externalIds,url,isOpenAccess,openAccessPdf"
)


class SemanticScholarClient(BaseAPIClient):
    """Semantic Scholar Graph API client."""

    key = "semanticscholar"

    def __init__(self, api_key: str | None = None, *, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            ApiConfig(
                name="SemanticScholar",
                base_url=S2_API_BASE,
                api_key=api_key,
                rate_limit=RateLimit(requests_per_second=10 if api_key else 1),
                timeout=10000,
                retries=3,
            ),
            headers={"x-api-key": api_key} if api_key else None,
            transport=transport,
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        params = {"query": title, "limit": limit, "fields": PAPER_FIELDS}
        return await self._execute_request(self._get("/paper/search", params=params))

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        lookup = await self._execute_request(
            self._get("/author/search", params={"query": author, "limit": 1, "fields": "name"})
        )
        if not lookup.success:
            return lookup

        candidates = lookup.data.get("data") if isinstance(lookup.data, dict) else None
        if not candidates or not isinstance(candidates[0], dict) or not candidates[0].get("authorId"):
            logger.debug(f"SemanticScholar: no author matching '{author}'")
            return lookup.with_data({"data": []})

        author_id = candidates[0]["authorId"]
        params = {"limit": limit, "fields": PAPER_FIELDS}
        return await self._execute_request(self._get(f"/author/{author_id}/papers", params=params))

    async def search_by_doi(self, doi: str) -> ApiResponse:
        clean = SourceNormalizer.extract_doi(doi)
        if not clean:
            return self._invalid_doi()
        url = f"/paper/DOI:{urllib.parse.quote(clean, safe='/')}"
        return await self._execute_request(self._get(url, params={"fields": PAPER_FIELDS}))

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return await self.search_by_title(keyword, limit)

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        if not isinstance(response, dict):
            return []

        papers = response["data"] if isinstance(response.get("data"), list) else [response]
        records = []
        for paper in papers:
            if not isinstance(paper, dict) or not paper.get("title"):
                continue
            journal = paper.get("journal") or {}
            external = paper.get("externalIds") or {}
            records.append(
                {
                    "id": paper.get("paperId"),
                    "doi": external.get("DOI") or paper.get("doi"),
                    "pmid": external.get("PubMed"),
                    "arxiv_id": external.get("ArXiv"),
                    "title": paper.get("title"),
                    "authors": [
                        {"full_name": a.get("name")}
                        for a in paper.get("authors") or []
                        if isinstance(a, dict)
                    ],
                    "year": paper.get("year"),
                    "type": self._infer_type(paper.get("publicationTypes")),
                    "journal": journal.get("name"),
                    "volume": journal.get("volume"),
                    "pages": journal.get("pages"),
                    "abstract": paper.get("abstract"),
                    "url": paper.get("url"),
                    "pdf_url": (paper.get("openAccessPdf") or {}).get("url"),
                    "is_open_access": bool(paper.get("isOpenAccess")),
                    "citation_count": paper.get("citationCount"),
                    "keywords": paper.get("fieldsOfStudy") or [],
                }
            )
        return records

    @staticmethod
    def _infer_type(publication_types: list[str] | None) -> str:
        if not publication_types:
            return "other"
        first = str(publication_types[0]).lower()
        if "conference" in first:
            return "conference"
        if "book" in first:
            return "book"
        return "journal"

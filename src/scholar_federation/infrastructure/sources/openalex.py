"""
OpenAlex Integration

250M+ works, fully open (CC0), no API key required.

API Documentation: https://docs.openalex.org/

Rate Limits:
- 10 req/sec, 100k req/day (polite pool with mailto)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from scholar_federation.application.search.normalizer import SourceNormalizer
from scholar_federation.domain.entities.api import ApiConfig, ApiResponse, RateLimit
from scholar_federation.infrastructure.sources.base_client import BaseAPIClient

logger = logging.getLogger(__name__)

OA_API_BASE = "https://api.openalex.org"

OA_TYPE_MAP: dict[str, str] = {
    "journal-article": "journal",
    "article": "journal",
    "book-chapter": "book",
    "book": "book",
    "proceedings-article": "conference",
    "posted-content": "preprint",
    "preprint": "preprint",
    "dissertation": "thesis",
    "dataset": "dataset",
}


def reconstruct_abstract(inverted_index: dict[str, list[int]] | None) -> str | None:
    """
    Rebuild abstract text from OpenAlex's inverted index.

    Format: {"word": [positions], ...}
    """
    if not isinstance(inverted_index, dict) or not inverted_index:
        return None
    positioned = [
        (pos, word)
        for word, positions in inverted_index.items()
        for pos in positions or []
        if isinstance(pos, int)
    ]
    positioned.sort(key=lambda x: x[0])
    return " ".join(word for _, word in positioned) or None


class OpenAlexClient(BaseAPIClient):
    """
    OpenAlex works API client.

    Usage:
        client = OpenAlexClient(email="your@email.com")
        response = await client.search_by_keyword("CRISPR gene editing", limit=10)
    """

    key = "openalex"

    def __init__(self, email: str | None = None, *, transport: httpx.AsyncBaseTransport | None = None):
        self._email = email
        super().__init__(
            ApiConfig(
                name="OpenAlex",
                base_url=OA_API_BASE,
                api_key=email,
                rate_limit=RateLimit(requests_per_second=10, requests_per_day=100000),
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
        params = self._params(filter=f"title.search:{title}", per_page=limit)
        return await self._execute_request(self._get("/works", params=params))

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        params = self._params(filter=f"raw_author_name.search:{author}", per_page=limit)
        return await self._execute_request(self._get("/works", params=params))

    async def search_by_doi(self, doi: str) -> ApiResponse:
        clean = SourceNormalizer.extract_doi(doi)
        if not clean:
            return self._invalid_doi()
        return await self._execute_request(self._get(f"/works/doi:{clean}", params=self._params() or None))

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        params = self._params(search=keyword, per_page=limit)
        return await self._execute_request(self._get("/works", params=params))

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        if not isinstance(response, dict):
            return []

        works = response["results"] if isinstance(response.get("results"), list) else [response]
        records = []
        for work in works:
            if not isinstance(work, dict) or not (work.get("id") or work.get("title")):
                continue

            doi = SourceNormalizer.extract_doi(work.get("doi"))
            location = work.get("primary_location") or {}
            source = location.get("source") or {}
            biblio = work.get("biblio") or {}
            open_access = work.get("open_access") or {}
            first_page, last_page = biblio.get("first_page"), biblio.get("last_page")

            records.append(
                {
                    "id": work.get("id"),
                    "doi": doi,
                    "title": work.get("title") or work.get("display_name"),
                    "authors": [
                        {
                            "full_name": (a.get("author") or {}).get("display_name"),
                            "orcid": (a.get("author") or {}).get("orcid"),
                            "affiliation": ((a.get("institutions") or [{}])[0] or {}).get("display_name"),
                        }
                        for a in work.get("authorships") or []
                        if isinstance(a, dict)
                    ],
                    "year": work.get("publication_year"),
                    "publication_date": work.get("publication_date"),
                    "type": OA_TYPE_MAP.get(str(work.get("type")), "other"),
                    "journal": source.get("display_name"),
                    "issn": source.get("issn_l"),
                    "volume": biblio.get("volume"),
                    "issue": biblio.get("issue"),
                    "pages": f"{first_page}-{last_page}" if first_page and last_page else None,
                    "publisher": source.get("host_organization_name"),
                    "url": location.get("landing_page_url") or (f"https://doi.org/{doi}" if doi else None),
                    "pdf_url": open_access.get("oa_url"),
                    "is_open_access": bool(open_access.get("is_oa")),
                    "abstract": reconstruct_abstract(work.get("abstract_inverted_index")),
                    "citation_count": work.get("cited_by_count"),
                    "impact_factor": (source.get("summary_stats") or {}).get("2yr_mean_citedness"),
                    "keywords": [
                        c.get("display_name")
                        for c in work.get("concepts") or []
                        if isinstance(c, dict) and c.get("display_name")
                    ],
                }
            )
        return records

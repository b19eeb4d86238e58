"""
DOAJ Integration

Articles from 20,000+ open access journals listed in the Directory of Open
Access Journals. Queries use Elasticsearch query-string syntax in the URL
path.

API Documentation: https://doaj.org/api/docs
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

DOAJ_API_BASE = "https://doaj.org/api/search"


class DOAJClient(BaseAPIClient):
    """DOAJ article search client."""

    key = "doaj"

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            ApiConfig(
                name="DOAJ",
                base_url=DOAJ_API_BASE,
                rate_limit=RateLimit(requests_per_second=2),
                timeout=10000,
                retries=3,
            ),
            transport=transport,
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'bibjson.title:"{title}"', limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'bibjson.author.name:"{author}"', limit)

    async def search_by_doi(self, doi: str) -> ApiResponse:
        clean = SourceNormalizer.extract_doi(doi)
        if not clean:
            return self._invalid_doi()
        return await self._search(f'bibjson.identifier.id:"{clean}"', 1)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return await self._search(keyword, limit)

    async def _search(self, query: str, limit: int) -> ApiResponse:
        url = f"/articles/{urllib.parse.quote(query, safe='')}"
        return await self._execute_request(self._get(url, params={"pageSize": limit}))

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        if not isinstance(response, dict) or not isinstance(response.get("results"), list):
            return []

        records = []
        for article in response["results"]:
            bib = article.get("bibjson") if isinstance(article, dict) else None
            if not isinstance(bib, dict):
                continue

            identifiers = [i for i in bib.get("identifier") or [] if isinstance(i, dict)]
            links = [link for link in bib.get("link") or [] if isinstance(link, dict)]
            journal = bib.get("journal") or {}
            year, month = bib.get("year"), bib.get("month")
            start, end = bib.get("start_page"), bib.get("end_page")

            records.append(
                {
                    "id": f"doaj:{article['id']}" if article.get("id") else None,
                    "doi": next((i.get("id") for i in identifiers if str(i.get("type")).lower() == "doi"), None),
                    "issn": next(
                        (i.get("id") for i in identifiers if str(i.get("type")).lower() in ("eissn", "pissn")),
                        None,
                    ),
                    "title": bib.get("title"),
                    "authors": [
                        {"full_name": a.get("name"), "affiliation": a.get("affiliation")}
                        for a in bib.get("author") or []
                        if isinstance(a, dict)
                    ],
                    "year": year,
                    "publication_date": f"{year}-{month}" if year and month else year,
                    "type": "journal",
                    "journal": journal.get("title"),
                    "volume": journal.get("volume"),
                    "issue": journal.get("number"),
                    "pages": f"{start}-{end}" if start and end else None,
                    "publisher": journal.get("publisher"),
                    "url": next((link.get("url") for link in links if link.get("type") == "fulltext"), None),
                    "is_open_access": True,
                    "abstract": bib.get("abstract"),
                    "keywords": bib.get("keywords") or [],
                }
            )
        return records

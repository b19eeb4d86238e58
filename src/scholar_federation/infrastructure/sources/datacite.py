"""
DataCite Integration

DOIs for research data, software and other non-journal outputs.

API Documentation: https://support.datacite.org/docs/api
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from scholar_federation.application.search.normalizer import SourceNormalizer
from scholar_federation.domain.entities.api import ApiConfig, ApiResponse, RateLimit
from scholar_federation.infrastructure.sources.base_client import BaseAPIClient

logger = logging.getLogger(__name__)

DATACITE_API_BASE = "https://api.datacite.org"

RESOURCE_TYPE_MAP: dict[str, str] = {
    "JournalArticle": "journal",
    "Book": "book",
    "BookChapter": "book",
    "Dissertation": "thesis",
    "Dataset": "dataset",
    "ConferencePaper": "conference",
    "Preprint": "preprint",
}


class DataCiteClient(BaseAPIClient):
    """DataCite REST API client."""

    key = "datacite"

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            ApiConfig(
                name="DataCite",
                base_url=DATACITE_API_BASE,
                rate_limit=RateLimit(requests_per_second=2),
                timeout=10000,
                retries=3,
            ),
            transport=transport,
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'titles.title:"{title}"', limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'creators.name:"{author}"', limit)

    async def search_by_doi(self, doi: str) -> ApiResponse:
        clean = SourceNormalizer.extract_doi(doi)
        if not clean:
            return self._invalid_doi()
        return await self._execute_request(self._get(f"/dois/{clean}"))

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return await self._search(keyword, limit)

    async def _search(self, query: str, limit: int) -> ApiResponse:
        return await self._execute_request(self._get("/dois", params={"query": query, "page[size]": limit}))

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        if not isinstance(response, dict) or not response.get("data"):
            return []

        data = response["data"]
        items = data if isinstance(data, list) else [data]
        records = []
        for item in items:
            attrs = item.get("attributes") if isinstance(item, dict) else None
            if not isinstance(attrs, dict):
                continue

            titles = [t for t in attrs.get("titles") or [] if isinstance(t, dict)]
            descriptions = [d for d in attrs.get("descriptions") or [] if isinstance(d, dict)]
            resource_type = (attrs.get("types") or {}).get("resourceTypeGeneral")
            publisher = attrs.get("publisher")
            if isinstance(publisher, dict):
                publisher = publisher.get("name")

            records.append(
                {
                    "doi": attrs.get("doi"),
                    "title": titles[0].get("title") if titles else None,
                    "authors": [
                        {
                            "full_name": c.get("name"),
                            "first_name": c.get("givenName"),
                            "last_name": c.get("familyName"),
                            "orcid": next(
                                (
                                    n.get("nameIdentifier")
                                    for n in c.get("nameIdentifiers") or []
                                    if isinstance(n, dict) and n.get("nameIdentifierScheme") == "ORCID"
                                ),
                                None,
                            ),
                        }
                        for c in attrs.get("creators") or []
                        if isinstance(c, dict)
                    ],
                    "year": attrs.get("publicationYear"),
                    "publication_date": attrs.get("published"),
                    "type": RESOURCE_TYPE_MAP.get(str(resource_type), "other"),
                    "publisher": publisher,
                    "url": attrs.get("url"),
                    "abstract": next(
                        (d.get("description") for d in descriptions if d.get("descriptionType") == "Abstract"),
                        None,
                    ),
                    "citation_count": attrs.get("citationCount"),
                }
            )
        return records

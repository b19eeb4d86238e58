"""
Zenodo Integration

CERN's general-purpose research repository (datasets, software, papers).

API Documentation: https://developers.zenodo.org/
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from scholar_federation.application.search.normalizer import SourceNormalizer
from scholar_federation.domain.entities.api import ApiConfig, ApiResponse, RateLimit
from scholar_federation.infrastructure.sources.base_client import BaseAPIClient

logger = logging.getLogger(__name__)

ZENODO_API_BASE = "https://zenodo.org/api"


class ZenodoClient(BaseAPIClient):
    """Zenodo records search client."""

    key = "zenodo"

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            ApiConfig(
                name="Zenodo",
                base_url=ZENODO_API_BASE,
                rate_limit=RateLimit(requests_per_second=2),
                timeout=10000,
                retries=3,
            ),
            transport=transport,
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'title:"{title}"', limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'creators.name:"{author}"', limit)

    async def search_by_doi(self, doi: str) -> ApiResponse:
        clean = SourceNormalizer.extract_doi(doi)
        if not clean:
            return self._invalid_doi()
        return await self._search(f'doi:"{clean}"', 1)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return await self._search(keyword, limit)

    async def _search(self, query: str, limit: int) -> ApiResponse:
        return await self._execute_request(self._get("/records", params={"q": query, "size": limit}))

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        hits = response.get("hits") if isinstance(response, dict) else None
        records_raw = hits.get("hits") if isinstance(hits, dict) else None
        if not isinstance(records_raw, list):
            return []

        records = []
        for record in records_raw:
            metadata = record.get("metadata") if isinstance(record, dict) else None
            if not isinstance(metadata, dict):
                continue

            files = [f for f in record.get("files") or [] if isinstance(f, dict)]
            records.append(
                {
                    "id": f"zenodo:{record['id']}" if record.get("id") else None,
                    "doi": metadata.get("doi") or record.get("doi"),
                    "title": metadata.get("title"),
                    "authors": [
                        {
                            "full_name": c.get("name"),
                            "orcid": c.get("orcid"),
                            "affiliation": c.get("affiliation"),
                        }
                        for c in metadata.get("creators") or []
                        if isinstance(c, dict)
                    ],
                    "year": metadata.get("publication_date"),
                    "publication_date": metadata.get("publication_date"),
                    "type": (metadata.get("resource_type") or {}).get("type") or "dataset",
                    "publisher": (metadata.get("imprint") or {}).get("publisher"),
                    "url": (record.get("links") or {}).get("html"),
                    "pdf_url": (files[0].get("links") or {}).get("self") if files else None,
                    "is_open_access": metadata.get("access_right") == "open",
                    "abstract": metadata.get("description"),
                    "keywords": metadata.get("keywords") or [],
                }
            )
        return records

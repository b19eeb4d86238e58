"""
bioRxiv Integration

Life-sciences preprints. The public API exposes DOI lookup and date-range
listings only, so:
- DOI search hits ``/details/biorxiv/{doi}``
- Author search lists the last 30 days and keeps preprints whose author
  list mentions every token of the name
- Title and keyword search are unsupported

API Documentation: https://api.biorxiv.org/
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from scholar_federation.application.search.normalizer import SourceNormalizer
from scholar_federation.domain.entities.api import ApiConfig, ApiResponse, RateLimit
from scholar_federation.infrastructure.sources.base_client import BaseAPIClient

logger = logging.getLogger(__name__)

BIORXIV_API_BASE = "https://api.biorxiv.org"

AUTHOR_WINDOW_DAYS = 30


class BioRxivClient(BaseAPIClient):
    """bioRxiv details API client."""

    key = "biorxiv"

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            ApiConfig(
                name="bioRxiv",
                base_url=BIORXIV_API_BASE,
                rate_limit=RateLimit(requests_per_second=1),
                timeout=15000,
                retries=3,
            ),
            transport=transport,
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return self._unsupported("Title search")

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        today = datetime.now(UTC).date()
        start = today - timedelta(days=AUTHOR_WINDOW_DAYS)
        response = await self._execute_request(self._get(f"/details/biorxiv/{start}/{today}/0"))
        if not response.success:
            return response

        collection = response.data.get("collection") if isinstance(response.data, dict) else None
        tokens = author.lower().split()
        matches = [
            item
            for item in collection or []
            if isinstance(item, dict)
            and tokens
            and all(t in str(item.get("authors") or "").lower() for t in tokens)
        ]
        logger.debug(f"bioRxiv: {len(matches)} preprints by '{author}' in last {AUTHOR_WINDOW_DAYS} days")
        return response.with_data({"collection": matches[:limit]})

    async def search_by_doi(self, doi: str) -> ApiResponse:
        clean = SourceNormalizer.extract_doi(doi)
        if not clean:
            return self._invalid_doi()
        return await self._execute_request(self._get(f"/details/biorxiv/{clean}"))

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return self._unsupported("Keyword search")

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        if not isinstance(response, dict) or not isinstance(response.get("collection"), list):
            return []

        records = []
        for preprint in response["collection"]:
            if not isinstance(preprint, dict):
                continue
            doi = preprint.get("doi")
            records.append(
                {
                    "doi": doi,
                    "title": preprint.get("title"),
                    "authors": preprint.get("authors") or [],
                    "year": preprint.get("date"),
                    "publication_date": preprint.get("date"),
                    "type": "preprint",
                    "journal": preprint.get("server") or "bioRxiv",
                    "abstract": preprint.get("abstract"),
                    "url": f"https://www.biorxiv.org/content/{doi}" if doi else None,
                    "pdf_url": f"https://www.biorxiv.org/content/{doi}.full.pdf" if doi else None,
                    "is_open_access": True,
                    "keywords": [preprint["category"]] if preprint.get("category") else [],
                }
            )
        return records

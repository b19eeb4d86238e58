"""
OpenCitations Integration

Open bibliographic and citation data (COCI index). Lookup is by DOI only;
title, author and keyword search are reported as unsupported.

API Documentation: https://opencitations.net/index/coci/api/v1
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from scholar_federation.application.search.normalizer import SourceNormalizer
from scholar_federation.domain.entities.api import ApiConfig, ApiResponse, RateLimit
from scholar_federation.infrastructure.sources.base_client import BaseAPIClient

logger = logging.getLogger(__name__)

OPENCITATIONS_API_BASE = "https://opencitations.net/index/coci/api/v1"


class OpenCitationsClient(BaseAPIClient):
    """OpenCitations COCI metadata client."""

    key = "opencitations"

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            ApiConfig(
                name="OpenCitations",
                base_url=OPENCITATIONS_API_BASE,
                rate_limit=RateLimit(requests_per_second=1),
                timeout=10000,
                retries=3,
            ),
            transport=transport,
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return self._unsupported("Title search")

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        return self._unsupported("Author search")

    async def search_by_doi(self, doi: str) -> ApiResponse:
        clean = SourceNormalizer.extract_doi(doi)
        if not clean:
            return self._invalid_doi()
        return await self._execute_request(self._get(f"/metadata/{clean}"))

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return self._unsupported("Keyword search")

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        if not isinstance(response, list):
            return []

        records = []
        for item in response:
            if not isinstance(item, dict):
                continue
            doi = item.get("doi") or item.get("citing") or item.get("cited")
            records.append(
                {
                    "doi": doi,
                    "title": item.get("title"),
                    "authors": item.get("author") or [],
                    "year": item.get("year"),
                    "type": "journal",
                    "journal": item.get("source_title"),
                    "volume": item.get("volume"),
                    "issue": item.get("issue"),
                    "pages": item.get("page"),
                    "url": item.get("oa_link") or (f"https://doi.org/{doi}" if doi else None),
                    "citation_count": item.get("citation_count"),
                }
            )
        return records

"""
Unpaywall API Integration

Finds open access copies of articles by DOI. Unpaywall indexes OA copies
from repositories, preprint servers and publisher sites.

API Documentation: https://unpaywall.org/products/api

Rate Limits:
- 100,000 requests/day with email
- No API key required, just email

Only DOI lookup exists; the other search operations are unsupported.
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

UNPAYWALL_API_BASE = "https://api.unpaywall.org/v2"


class UnpaywallClient(BaseAPIClient):
    """
    Unpaywall API client.

    Note:
        Email is required. Unpaywall uses it to track usage and contact you
        if there are issues.
    """

    key = "unpaywall"

    def __init__(self, email: str, *, transport: httpx.AsyncBaseTransport | None = None):
        """
        Initialize Unpaywall client.

        Args:
            email: Contact email (required by Unpaywall ToS)
            transport: Optional httpx transport
        """
        self._email = email
        super().__init__(
            ApiConfig(
                name="Unpaywall",
                base_url=UNPAYWALL_API_BASE,
                api_key=email,
                rate_limit=RateLimit(requests_per_day=100000),
                timeout=10000,
                retries=3,
            ),
            headers={"Accept": "application/json"},
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
        url = f"/{urllib.parse.quote(clean, safe='/')}"
        return await self._execute_request(self._get(url, params={"email": self._email}))

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return self._unsupported("Keyword search")

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        if not isinstance(response, dict) or not response.get("doi"):
            return []

        best = response.get("best_oa_location") or {}
        return [
            {
                "doi": response.get("doi"),
                "title": response.get("title"),
                "authors": [
                    {"given": a.get("given"), "family": a.get("family"), "ORCID": a.get("ORCID")}
                    for a in response.get("z_authors") or []
                    if isinstance(a, dict)
                ],
                "year": response.get("year"),
                "publication_date": response.get("published_date"),
                "type": response.get("genre") or "journal",
                "journal": response.get("journal_name"),
                "issn": response.get("journal_issn_l"),
                "publisher": response.get("publisher"),
                "url": response.get("doi_url"),
                "pdf_url": best.get("url_for_pdf"),
                "is_open_access": bool(response.get("is_oa")),
            }
        ]

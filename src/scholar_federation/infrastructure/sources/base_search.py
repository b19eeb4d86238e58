"""
BASE (Bielefeld Academic Search Engine) Integration

340M+ documents harvested from academic repositories.

API Documentation: https://www.base-search.net/about/download/base_interface.pdf

Note:
    Access is IP-whitelisted by the BASE operators; non-registered callers
    receive HTTP errors, which surface as failed responses.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from scholar_federation.application.search.normalizer import SourceNormalizer
from scholar_federation.domain.entities.api import ApiConfig, ApiResponse, RateLimit
from scholar_federation.infrastructure.sources.base_client import BaseAPIClient

logger = logging.getLogger(__name__)

BASE_API_URL = "https://api.base-search.net/cgi-bin/BaseHttpSearchInterface.fcgi"


def _head(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


class BASEClient(BaseAPIClient):
    """BASE HTTP search interface client."""

    key = "base"

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            ApiConfig(
                name="BASE",
                base_url=BASE_API_URL,
                rate_limit=RateLimit(requests_per_second=1),
                timeout=15000,
                retries=3,
            ),
            transport=transport,
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return await self._search(f"dctitle:({title})", limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        return await self._search(f"dccreator:({author})", limit)

    async def search_by_doi(self, doi: str) -> ApiResponse:
        clean = SourceNormalizer.extract_doi(doi)
        if not clean:
            return self._invalid_doi()
        return await self._search(f'dcdoi:"{clean}"', 1)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return await self._search(keyword, limit)

    async def _search(self, query: str, limit: int) -> ApiResponse:
        params = {"func": "PerformSearch", "query": query, "hits": limit, "format": "json"}
        return await self._execute_request(self._get(BASE_API_URL, params=params))

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        body = response.get("response") if isinstance(response, dict) else None
        docs = body.get("docs") if isinstance(body, dict) else None
        if not isinstance(docs, list):
            return []

        records = []
        for doc in docs:
            if not isinstance(doc, dict):
                continue
            identifiers = doc.get("dcidentifier") or []
            if isinstance(identifiers, str):
                identifiers = [identifiers]
            doi = _head(doc.get("dcdoi")) or next(
                (d for i in identifiers if (d := SourceNormalizer.extract_doi(i))), None
            )

            records.append(
                {
                    "id": f"base:{doc['dcdocid']}" if doc.get("dcdocid") else None,
                    "doi": doi,
                    "title": _head(doc.get("dctitle")),
                    "authors": doc.get("dccreator") or [],
                    "year": doc.get("dcyear") or _head(doc.get("dcdate")),
                    "publication_date": _head(doc.get("dcdate")),
                    "type": _head(doc.get("dctypenorm")) or "other",
                    "publisher": _head(doc.get("dcpublisher")),
                    "url": _head(doc.get("dclink")),
                    "is_open_access": str(doc.get("dcoa")) == "1",
                    "abstract": _head(doc.get("dcdescription")),
                    "keywords": doc.get("dcsubject") or [],
                }
            )
        return records

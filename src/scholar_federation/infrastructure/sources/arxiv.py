"""
arXiv Integration

2.4M+ preprints in physics, mathematics and computer science. The API
answers with an Atom feed, parsed with defusedxml.

API Documentation: https://info.arxiv.org/help/api/user-manual.html

Rate Limits:
- 1 request every 3 seconds

arXiv has no DOI lookup; ``search_by_doi`` reports it as unsupported.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import defusedxml
import defusedxml.ElementTree as ET  # Security: prevent XML attacks
import httpx

from scholar_federation.domain.entities.api import ApiConfig, ApiResponse, RateLimit
from scholar_federation.infrastructure.sources.base_client import BaseAPIClient

logger = logging.getLogger(__name__)

ARXIV_API_BASE = "https://export.arxiv.org/api"

ATOM_NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
}

_ABS_ID = re.compile(r"arxiv\.org/abs/(.+)")


def _text(element: Any) -> str | None:
    if element is None or not element.text:
        return None
    return " ".join(element.text.split()) or None


class ArxivClient(BaseAPIClient):
    """arXiv Atom API client."""

    key = "arxiv"

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            ApiConfig(
                name="arXiv",
                base_url=ARXIV_API_BASE,
                rate_limit=RateLimit(requests_per_second=1 / 3),
                timeout=10000,
                retries=2,
            ),
            transport=transport,
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'ti:"{title}"', limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'au:"{author}"', limit)

    async def search_by_doi(self, doi: str) -> ApiResponse:
        return self._unsupported("DOI search")

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'all:"{keyword}"', limit)

    async def _search(self, query: str, limit: int) -> ApiResponse:
        params = {
            "search_query": query,
            "start": 0,
            "max_results": limit,
            "sortBy": "relevance",
            "sortOrder": "descending",
        }
        return await self._execute_request(self._get("/query", params=params), parse_as="text")

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        """Parse Atom feed entries into records."""
        if not isinstance(response, str) or not response.strip():
            return []

        try:
            root = ET.fromstring(response)
        except (ET.ParseError, defusedxml.DefusedXmlException) as e:
            logger.warning(f"Error parsing arXiv XML: {e}")
            return []

        records = []
        for entry in root.findall("atom:entry", ATOM_NS):
            entry_id = _text(entry.find("atom:id", ATOM_NS))
            match = _ABS_ID.search(entry_id or "")

            pdf_url = None
            for link in entry.findall("atom:link", ATOM_NS):
                if link.get("title") == "pdf":
                    pdf_url = link.get("href")
                    break
            if pdf_url is None and entry_id:
                pdf_url = entry_id.replace("/abs/", "/pdf/")

            published = _text(entry.find("atom:published", ATOM_NS))
            records.append(
                {
                    "id": entry_id,
                    "arxiv_id": match.group(1) if match else None,
                    "doi": _text(entry.find("arxiv:doi", ATOM_NS)),
                    "title": _text(entry.find("atom:title", ATOM_NS)),
                    "abstract": _text(entry.find("atom:summary", ATOM_NS)),
                    "published": published[:10] if published else None,
                    "authors": [
                        {"full_name": name}
                        for author in entry.findall("atom:author", ATOM_NS)
                        if (name := _text(author.find("atom:name", ATOM_NS)))
                    ],
                    "journal": _text(entry.find("arxiv:journal_ref", ATOM_NS)),
                    "url": entry_id,
                    "pdf_url": pdf_url,
                    "type": "preprint",
                    "keywords": [
                        term for cat in entry.findall("atom:category", ATOM_NS) if (term := cat.get("term"))
                    ],
                    "is_open_access": True,
                }
            )
        return records

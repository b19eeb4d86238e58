"""
Europe PMC Integration

Life-sciences literature (PubMed, PMC and preprints) via the Europe PMC
REST API.

API Documentation: https://europepmc.org/RestfulWebService

Rate Limits:
- ~5 req/sec (no key)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from scholar_federation.application.search.normalizer import SourceNormalizer
from scholar_federation.domain.entities.api import ApiConfig, ApiResponse, RateLimit
from scholar_federation.infrastructure.sources.base_client import BaseAPIClient

logger = logging.getLogger(__name__)

EUROPE_PMC_BASE = "https://www.ebi.ac.uk/europepmc/webservices/rest"


class EuropePMCClient(BaseAPIClient):
    """Europe PMC search client."""

    key = "europepmc"

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            ApiConfig(
                name="EuropePMC",
                base_url=EUROPE_PMC_BASE,
                rate_limit=RateLimit(requests_per_second=5),
                timeout=10000,
                retries=3,
            ),
            transport=transport,
        )

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'TITLE:"{title}"', limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        return await self._search(f'AUTH:"{author}"', limit)

    async def search_by_doi(self, doi: str) -> ApiResponse:
        clean = SourceNormalizer.extract_doi(doi)
        if not clean:
            return self._invalid_doi()
        return await self._search(f'DOI:"{clean}"', 1)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return await self._search(keyword, limit)

    async def _search(self, query: str, limit: int) -> ApiResponse:
        params = {
            "query": query,
            "pageSize": limit,
            "format": "json",
            "resultType": "core",
        }
        return await self._execute_request(self._get("/search", params=params))

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        result_list = response.get("resultList") if isinstance(response, dict) else None
        articles = result_list.get("result") if isinstance(result_list, dict) else None
        if not isinstance(articles, list):
            return []

        records = []
        for article in articles:
            if not isinstance(article, dict):
                continue
            pmid, pmcid, doi = article.get("pmid"), article.get("pmcid"), article.get("doi")
            if pmid:
                url = f"https://europepmc.org/article/MED/{pmid}"
            elif pmcid:
                url = f"https://europepmc.org/article/PMC/{pmcid}"
            else:
                url = f"https://doi.org/{doi}" if doi else None

            journal_info = article.get("journalInfo") or {}
            records.append(
                {
                    "id": f"{article.get('source', 'EPMC')}:{article['id']}" if article.get("id") else None,
                    "pmid": pmid,
                    "pmcid": pmcid,
                    "doi": doi,
                    "title": article.get("title"),
                    "authors": [
                        SourceNormalizer.split_surname_initials(a)
                        for a in str(article.get("authorString") or "").split(",")
                        if a.strip(" .")
                    ],
                    "year": article.get("pubYear"),
                    "publication_date": article.get("firstPublicationDate"),
                    "type": "journal",
                    "journal": article.get("journalTitle") or (journal_info.get("journal") or {}).get("title"),
                    "volume": article.get("journalVolume") or journal_info.get("volume"),
                    "issue": article.get("issue") or journal_info.get("issue"),
                    "pages": article.get("pageInfo"),
                    "abstract": article.get("abstractText"),
                    "url": url,
                    "is_open_access": article.get("isOpenAccess") == "Y",
                    "citation_count": article.get("citedByCount"),
                }
            )
        return records

"""
PubMed (NCBI E-utilities) Integration

35M+ biomedical citations. Searching is a two-step protocol:
1. ESearch resolves a query term to a list of PMIDs
2. ESummary fetches document summaries for those PMIDs (JSON)

Each step goes through the gateway on its own, so each has its own timeout
and retry allowance.

API Documentation: https://www.ncbi.nlm.nih.gov/books/NBK25500/

Rate Limits:
- With API key: 10 req/sec
- Without: 3 req/sec
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from scholar_federation.application.search.normalizer import SourceNormalizer
from scholar_federation.domain.entities.api import ApiConfig, ApiResponse, RateLimit
from scholar_federation.infrastructure.sources.base_client import BaseAPIClient

logger = logging.getLogger(__name__)

EUTILS_BASE = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"


class PubMedClient(BaseAPIClient):
    """PubMed client using ESearch + ESummary."""

    key = "pubmed"

    def __init__(self, api_key: str | None = None, *, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(
            ApiConfig(
                name="PubMed",
                base_url=EUTILS_BASE,
                api_key=api_key,
                rate_limit=RateLimit(requests_per_second=10 if api_key else 3),
                timeout=15000,
                retries=3,
            ),
            transport=transport,
        )

    def _params(self, **params: Any) -> dict[str, Any]:
        params["db"] = "pubmed"
        params["retmode"] = "json"
        if self.config.api_key:
            params["api_key"] = self.config.api_key
        return params

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return await self._search(f"{title}[Title]", limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        return await self._search(f"{author}[Author]", limit)

    async def search_by_doi(self, doi: str) -> ApiResponse:
        clean = SourceNormalizer.extract_doi(doi)
        if not clean:
            return self._invalid_doi()
        return await self._search(f"{clean}[DOI]", 1)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return await self._search(keyword, limit)

    async def _search(self, term: str, limit: int) -> ApiResponse:
        ids = await self._search_ids(term, limit)
        if not ids.success or not ids.data:
            return ids
        return await self._fetch_summaries(ids.data)

    async def _search_ids(self, term: str, limit: int) -> ApiResponse:
        """ESearch: query term -> PMIDs."""
        response = await self._execute_request(
            self._get("/esearch.fcgi", params=self._params(term=term, retmax=limit))
        )
        if not response.success:
            return response

        data = response.data if isinstance(response.data, dict) else {}
        ids = (data.get("esearchresult") or {}).get("idlist") or []
        logger.debug(f"PubMed ESearch '{term}': {len(ids)} ids")
        return response.with_data([str(i) for i in ids])

    async def _fetch_summaries(self, pmids: list[str]) -> ApiResponse:
        """ESummary: PMIDs -> document summaries."""
        return await self._execute_request(
            self._get("/esummary.fcgi", params=self._params(id=",".join(pmids)))
        )

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        """Map an ESummary ``result`` block to records (in ``uids`` order)."""
        if not isinstance(response, dict) or not isinstance(response.get("result"), dict):
            return []

        result = response["result"]
        records = []
        for uid in result.get("uids") or []:
            doc = result.get(str(uid))
            if not isinstance(doc, dict):
                continue

            article_ids = {
                a.get("idtype"): a.get("value")
                for a in doc.get("articleids") or []
                if isinstance(a, dict)
            }
            pmid = str(uid)
            records.append(
                {
                    "id": f"pmid:{pmid}",
                    "pmid": pmid,
                    "pmcid": article_ids.get("pmc"),
                    "doi": article_ids.get("doi") or doc.get("elocationid"),
                    "title": doc.get("title"),
                    "authors": [
                        SourceNormalizer.split_surname_initials(a["name"])
                        for a in doc.get("authors") or []
                        if isinstance(a, dict) and isinstance(a.get("name"), str) and a["name"].strip()
                    ],
                    "year": doc.get("pubdate") or doc.get("epubdate"),
                    "published": doc.get("sortpubdate") or doc.get("pubdate"),
                    "type": "journal",
                    "journal": doc.get("fulljournalname") or doc.get("source"),
                    "volume": doc.get("volume"),
                    "issue": doc.get("issue"),
                    "pages": doc.get("pages"),
                    "issn": doc.get("issn") or doc.get("essn"),
                    "url": f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
                }
            )
        return records

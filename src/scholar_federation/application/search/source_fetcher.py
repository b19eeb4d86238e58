"""
SourceFetcher - Federated Search Orchestration

Runs one query against many providers and merges the answers:

    SearchQuery
        │
        ▼
    select_clients            ← registry minus excluded, preferred narrowing,
        │                       per-query-type priority order
        ▼
    execute_parallel_searches ← sequential batches, concurrent within a batch
        │
        ▼
    normalize_results         ← transform_response + SourceNormalizer.normalize
        │
        ▼
    deduplicate → sort_results → truncate
        │
        ▼
    SearchResult

A provider that fails, raises or returns garbage is skipped with a log line;
nothing a single provider does can fail the whole search.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from scholar_federation.application.search.normalizer import SourceNormalizer
from scholar_federation.core.async_utils import batch_process
from scholar_federation.domain.entities.source import (
    NormalizedSource,
    QueryType,
    SearchQuery,
    SearchResult,
)

if TYPE_CHECKING:
    from scholar_federation.domain.entities.api import ApiMetrics, ApiResponse
    from scholar_federation.infrastructure.sources.base_client import SourceClient

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

UNRANKED_PRIORITY = 999

# Lower number = queried (and listed) earlier
API_PRIORITIES: dict[QueryType | None, dict[str, int]] = {
    QueryType.DOI: {
        "crossref": 1,  # primary DOI registry
        "openalex": 2,
        "datacite": 3,  # research data DOIs
        "semanticscholar": 4,
        "europepmc": 5,
    },
    QueryType.TITLE: {
        "openalex": 1,
        "semanticscholar": 2,
        "crossref": 3,
        "pubmed": 4,
        "arxiv": 5,
        "core": 6,
        "base": 7,
        "europepmc": 8,
    },
    QueryType.AUTHOR: {
        "openalex": 1,
        "semanticscholar": 2,
        "crossref": 3,
        "pubmed": 4,
        "arxiv": 5,
        "europepmc": 6,
    },
    QueryType.KEYWORD: {
        "openalex": 1,
        "semanticscholar": 2,
        "pubmed": 3,
        "arxiv": 4,
        "crossref": 5,
        "core": 6,
        "base": 7,
        "doaj": 8,
    },
    None: {
        "openalex": 1,
        "semanticscholar": 2,
        "crossref": 3,
        "pubmed": 4,
        "arxiv": 5,
        "core": 6,
        "europepmc": 7,
        "base": 8,
    },
}

COMPLETENESS_THRESHOLD = 0.1


@dataclass
class FetcherOptions:
    """Fetcher configuration. API lists hold registry keys (case-insensitive)."""

    max_parallel_requests: int = 5
    preferred_apis: list[str] = field(default_factory=list)
    excluded_apis: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProviderPayload:
    """Transformed records of one successful provider call."""

    api_name: str
    data: Any


# =============================================================================
# Ranking
# =============================================================================


def compare_sources(a: NormalizedSource, b: NormalizedSource) -> int:
    """
    Ranking comparator (negative = ``a`` first).

    1. Completeness, when the gap exceeds 0.1
    2. Citation count, when both are present and non-zero
    3. Publication year, when both are present
    4. Otherwise equal (stable sort keeps input order)
    """
    diff = b.completeness - a.completeness
    if abs(diff) > COMPLETENESS_THRESHOLD:
        return -1 if diff < 0 else 1
    if a.citation_count and b.citation_count:
        return b.citation_count - a.citation_count
    if a.publication_year and b.publication_year:
        return b.publication_year - a.publication_year
    return 0


class SourceFetcher:
    """
    Federated search across registered provider clients.

    Usage:
        fetcher = SourceFetcher(create_default_clients(), FetcherOptions(max_parallel_requests=3))
        result = await fetcher.search(SearchQuery("deep learning", type=QueryType.TITLE))
        for source in result.sources:
            print(source.best_identifier, source.title)
    """

    def __init__(
        self,
        clients: Mapping[str, SourceClient],
        options: FetcherOptions | None = None,
    ):
        """
        Initialize fetcher.

        Args:
            clients: Registry key -> provider client
            options: Concurrency cap and preferred/excluded providers
        """
        self.options = options or FetcherOptions()
        excluded = {api.lower() for api in self.options.excluded_apis}
        self._clients: dict[str, SourceClient] = {
            key: client for key, client in clients.items() if key.lower() not in excluded
        }
        if excluded:
            logger.debug(f"Excluded providers: {', '.join(sorted(excluded))}")

    # =========================================================================
    # Search pipeline
    # =========================================================================

    async def search(self, query: SearchQuery) -> SearchResult:
        """Run a federated search and return deduplicated, ranked sources."""
        start = time.monotonic()
        selected = self.select_clients(query)
        logger.info(f"Searching {len(selected)} APIs for: '{query.query}' ({query.type.value})")

        payloads = await self.execute_parallel_searches(selected, query)
        unique = SourceNormalizer.deduplicate(self.normalize_results(payloads))
        ranked = self.sort_results(unique)
        limited = ranked[: query.limit] if query.limit else ranked

        search_time = int((time.monotonic() - start) * 1000)
        logger.info(
            f"Found {len(limited)} of {len(unique)} unique sources "
            f"from {len(payloads)}/{len(selected)} APIs in {search_time}ms"
        )
        return SearchResult(
            sources=limited,
            total_results=len(unique),
            query=query,
            apis=[client.name for client in selected],
            search_time=search_time,
        )

    def select_clients(self, query: SearchQuery) -> list[SourceClient]:
        """Pick and order providers for a query."""
        entries = list(self._clients.items())

        preferred = {api.lower() for api in self.options.preferred_apis}
        if preferred:
            narrowed = [(key, client) for key, client in entries if key.lower() in preferred]
            if narrowed:
                entries = narrowed
            else:
                logger.warning("No registered provider matches preferred_apis, using all")

        priorities = self.get_api_priorities(query.type)
        entries.sort(key=lambda entry: priorities.get(entry[0].lower(), UNRANKED_PRIORITY))
        return [client for _, client in entries]

    @staticmethod
    def get_api_priorities(query_type: QueryType | str | None) -> dict[str, int]:
        """Priority table for a query type (identifier uses the default table)."""
        return API_PRIORITIES.get(QueryType.parse(query_type) if query_type else None, API_PRIORITIES[None])

    async def execute_parallel_searches(
        self,
        clients: list[SourceClient],
        query: SearchQuery,
    ) -> list[ProviderPayload]:
        """Query providers in bounded batches, keeping successful payloads only."""
        outcomes = await batch_process(
            clients,
            lambda client: self.execute_search(client, query),
            batch_size=self.options.max_parallel_requests,
        )

        payloads: list[ProviderPayload] = []
        for client, outcome in zip(clients, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.warning(f"Error with {client.name}: {outcome}")
            elif outcome:
                payloads.append(outcome)
        return payloads

    async def execute_search(self, client: SourceClient, query: SearchQuery) -> ProviderPayload | None:
        """Dispatch one query to one provider. Never raises."""
        try:
            response = await self._dispatch(client, query)
            if not response.success:
                logger.warning(f"{client.name}: {response.error}")
                return None
            return self._to_payload(client, response)

        except Exception as e:
            logger.exception(f"Error with {client.name}: {e}")
            return None

    @staticmethod
    def _to_payload(client: SourceClient, response: ApiResponse) -> ProviderPayload:
        transform = getattr(client, "transform_response", None)
        data = transform(response.data) if callable(transform) else response.data
        return ProviderPayload(api_name=client.name, data=data)

    @staticmethod
    async def _dispatch(client: SourceClient, query: SearchQuery) -> ApiResponse:
        limit = query.limit or 10
        match query.type:
            case QueryType.DOI | QueryType.IDENTIFIER:
                return await client.search_by_doi(query.query)
            case QueryType.TITLE:
                return await client.search_by_title(query.query, limit)
            case QueryType.AUTHOR:
                return await client.search_by_author(query.query, limit)
            case _:
                return await client.search_by_keyword(query.query, limit)

    def normalize_results(self, payloads: list[ProviderPayload]) -> list[NormalizedSource]:
        """Flatten payloads into NormalizedSources, skipping bad or untitled records."""
        normalized: list[NormalizedSource] = []
        for payload in payloads:
            if not payload.data:
                continue
            records = payload.data if isinstance(payload.data, list) else [payload.data]
            for record in records:
                try:
                    source = SourceNormalizer.normalize(record, payload.api_name)
                except Exception as e:
                    logger.warning(f"Error normalizing source from {payload.api_name}: {e}")
                    continue
                if source.title:
                    normalized.append(source)
        return normalized

    @staticmethod
    def sort_results(sources: list[NormalizedSource]) -> list[NormalizedSource]:
        """Stable ranking by completeness, citations, then recency."""
        return sorted(sources, key=functools.cmp_to_key(compare_sources))

    # =========================================================================
    # Streaming / resolve
    # =========================================================================

    async def search_stream(self, query: SearchQuery) -> AsyncIterator[dict[str, Any]]:
        """
        Query providers one at a time and yield progress events.

        Events:
            {"type": "start", "total_apis": n}
            {"type": "progress", "api": name, "completed": i, "total_apis": n}
            {"type": "results", "api": name, "sources": [...], "total_found": k}
            {"type": "error", "api": name, "message": str}
            {"type": "complete", "total_found": k, "search_time": ms}

        ``results`` carries only sources not already emitted (DOI, then
        comparison title); the overall total is capped at ``query.limit``.
        """
        start = time.monotonic()
        selected = self.select_clients(query)
        total = len(selected)
        yield {"type": "start", "total_apis": total}

        seen_dois: set[str] = set()
        seen_titles: set[str] = set()
        found = 0

        for index, client in enumerate(selected, start=1):
            yield {"type": "progress", "api": client.name, "completed": index - 1, "total_apis": total}

            try:
                response = await self._dispatch(client, query)
                if not response.success:
                    logger.warning(f"{client.name}: {response.error}")
                    yield {"type": "error", "api": client.name, "message": response.error}
                    continue
                payload = self._to_payload(client, response)
            except Exception as e:
                logger.exception(f"Streaming search failed for {client.name}")
                yield {"type": "error", "api": client.name, "message": str(e)}
                continue

            fresh: list[NormalizedSource] = []
            for source in self.sort_results(self.normalize_results([payload])):
                title_key = SourceNormalizer.normalize_title_for_comparison(source.title)
                doi_key = source.doi.lower() if source.doi else None
                if (doi_key and doi_key in seen_dois) or title_key in seen_titles:
                    continue
                if doi_key:
                    seen_dois.add(doi_key)
                seen_titles.add(title_key)
                fresh.append(source)

            if query.limit:
                fresh = fresh[: max(query.limit - found, 0)]
            if fresh:
                found += len(fresh)
                yield {
                    "type": "results",
                    "api": client.name,
                    "sources": [s.to_dict() for s in fresh],
                    "total_found": found,
                }

            if query.limit and found >= query.limit:
                break

        yield {
            "type": "complete",
            "total_found": found,
            "search_time": int((time.monotonic() - start) * 1000),
        }

    async def resolve(self, identifier: str) -> NormalizedSource | None:
        """Resolve a DOI (or identifier) to its best-ranked record."""
        result = await self.search(SearchQuery(query=identifier, type=QueryType.DOI, limit=1))
        return result.sources[0] if result.sources else None

    # =========================================================================
    # Introspection / lifecycle
    # =========================================================================

    def get_metrics(self) -> dict[str, ApiMetrics]:
        return {key: client.get_metrics() for key, client in self._clients.items()}

    def get_available_apis(self) -> list[str]:
        return list(self._clients)

    async def close(self) -> None:
        """Close every client's HTTP pool."""
        for client in self._clients.values():
            close = getattr(client, "close", None)
            if callable(close):
                await close()

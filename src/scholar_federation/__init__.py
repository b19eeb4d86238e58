"""
Scholar Federation - Federated Search over Scholarly Metadata Providers

One query fans out to CrossRef, PubMed, arXiv, Semantic Scholar, OpenAlex,
CORE, Europe PMC, DOAJ, bioRxiv, DataCite, Zenodo, BASE, PLOS and
OpenCitations; the answers come back as one deduplicated, ranked list of
NormalizedSource records.

Usage:
    from scholar_federation import SearchQuery, SourceFetcher, create_default_clients

    fetcher = SourceFetcher(create_default_clients({"email": "you@example.com"}))
    result = await fetcher.search(SearchQuery("protein folding", type="title", limit=5))

    for source in result.sources:
        print(f"{source.best_identifier}: {source.title} ({source.source_api})")

    await fetcher.close()
"""

from .application.search import FetcherOptions, SourceFetcher, SourceNormalizer
from .domain import (
    Author,
    NormalizedSource,
    QueryType,
    SearchFilters,
    SearchQuery,
    SearchResult,
    SourceType,
)
from .infrastructure.sources import PROVIDER_KEYS, create_default_clients

__version__ = "0.1.0"

__all__ = [
    # Search
    "FetcherOptions",
    "SourceFetcher",
    "SourceNormalizer",
    "create_default_clients",
    "PROVIDER_KEYS",
    # Entities
    "Author",
    "NormalizedSource",
    "QueryType",
    "SearchFilters",
    "SearchQuery",
    "SearchResult",
    "SourceType",
]

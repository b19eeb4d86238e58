"""
Federated Search

Key Components:
- SourceNormalizer: Reconciles provider records into NormalizedSource and deduplicates
- SourceFetcher: Selects providers, fans out, merges and ranks results

Architecture:
    SearchQuery
        │
        ▼
    ┌──────────────────┐
    │  SourceFetcher   │  ← Selects providers based on query type
    └────────┬─────────┘
             │
    ┌────────┴────────┐
    ▼        ▼        ▼
  OpenAlex CrossRef  PubMed ...  ← Batched parallel queries
    │        │        │
    └────────┴────────┘
             │
             ▼
    ┌──────────────────┐
    │ SourceNormalizer │  ← Normalize + dedup
    └────────┬─────────┘
             │
             ▼
    NormalizedSource[]
"""

from __future__ import annotations

from .normalizer import SourceNormalizer
from .source_fetcher import (
    API_PRIORITIES,
    FetcherOptions,
    ProviderPayload,
    SourceFetcher,
    compare_sources,
)

__all__ = [
    "API_PRIORITIES",
    "FetcherOptions",
    "ProviderPayload",
    "SourceFetcher",
    "SourceNormalizer",
    "compare_sources",
]

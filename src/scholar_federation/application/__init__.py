"""
Application Layer - Use Cases and Business Logic Orchestration

Contains:
- search: Federated search (normalization, deduplication, fan-out, ranking)
"""

from .search import FetcherOptions, SourceFetcher, SourceNormalizer

__all__ = [
    "FetcherOptions",
    "SourceFetcher",
    "SourceNormalizer",
]

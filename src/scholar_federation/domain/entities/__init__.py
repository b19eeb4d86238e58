"""
Domain entities.

- source: canonical record, query and result envelopes
- api: provider configuration, metrics and call results
"""

from .api import ApiConfig, ApiMetrics, ApiResponse, RateLimit, RateLimitInfo
from .source import (
    Author,
    NormalizedSource,
    QueryType,
    SearchFilters,
    SearchQuery,
    SearchResult,
    SourceType,
)

__all__ = [
    "ApiConfig",
    "ApiMetrics",
    "ApiResponse",
    "Author",
    "NormalizedSource",
    "QueryType",
    "RateLimit",
    "RateLimitInfo",
    "SearchFilters",
    "SearchQuery",
    "SearchResult",
    "SourceType",
]

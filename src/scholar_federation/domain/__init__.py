"""Domain layer: pure data types, no I/O."""

from .entities import (
    ApiConfig,
    ApiMetrics,
    ApiResponse,
    Author,
    NormalizedSource,
    QueryType,
    RateLimit,
    RateLimitInfo,
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

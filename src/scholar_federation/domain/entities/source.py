"""
NormalizedSource - Canonical Record Model for Federated Search

This module defines the canonical record shape every provider response is
reconciled into, plus the query and result envelopes of a search.

Architecture Decision:
    We use frozen dataclasses instead of Pydantic for:
    1. Immutability - a record never changes after the normalizer builds it
    2. Performance - faster instantiation for large fan-out batches
    3. Simplicity - easy to understand and maintain

    Sequences on a record are tuples so the freeze is not only shallow.

Example:
    >>> source = NormalizedSource(
    ...     id="10.1000/example",
    ...     title="Machine Learning in Healthcare",
    ...     doi="10.1000/example",
    ...     source_api="CrossRef",
    ... )
    >>> source.best_identifier
    'DOI:10.1000/example'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class SourceType(str, Enum):
    """Closed set of publication types."""

    JOURNAL = "journal"
    BOOK = "book"
    CONFERENCE = "conference"
    PREPRINT = "preprint"
    THESIS = "thesis"
    WEBSITE = "website"
    DATASET = "dataset"
    OTHER = "other"


class QueryType(str, Enum):
    """How the query string should be interpreted by providers."""

    TITLE = "title"
    AUTHOR = "author"
    DOI = "doi"
    KEYWORD = "keyword"
    IDENTIFIER = "identifier"

    @classmethod
    def parse(cls, value: str | QueryType | None) -> QueryType:
        """Parse a loose query type, defaulting to keyword."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "keyword").strip().lower())
        except ValueError:
            return cls.KEYWORD


@dataclass(frozen=True, slots=True)
class Author:
    """
    Author information.

    Handles name formats from different sources:
    - CrossRef: {"given": "John", "family": "Smith"}
    - OpenAlex: {"display_name": "John Smith"}
    - Europe PMC: "Smith J"
    """

    first_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    orcid: str | None = None
    affiliation: str | None = None

    @property
    def display_name(self) -> str:
        """Return best available name representation."""
        if self.full_name:
            return self.full_name
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else "Unknown"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, omitting empty fields."""
        data = {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "orcid": self.orcid,
            "affiliation": self.affiliation,
        }
        return {k: v for k, v in data.items() if v}


@dataclass(frozen=True, slots=True)
class NormalizedSource:
    """
    Unified record representation across all providers.

    Design Principles:
    1. Nullable fields - not all providers supply all data
    2. Multiple identifiers - the same work may carry DOI, PMID, arXiv ID
    3. Provenance - ``source_api`` names the provider that produced it
    4. Completeness is computed once, by the normalizer, at creation

    Downstream consumers depend only on this shape, never on raw provider
    fields.
    """

    # === Core Identity ===
    id: str
    title: str

    # === Identifiers ===
    doi: str | None = None
    pmid: str | None = None
    pmcid: str | None = None
    arxiv_id: str | None = None
    isbn: str | None = None
    issn: str | None = None

    # === Bibliographic ===
    authors: tuple[Author, ...] = ()
    publication_year: int | None = None
    publication_date: str | None = None
    type: SourceType = SourceType.OTHER
    journal: str | None = None
    volume: str | None = None
    issue: str | None = None
    pages: str | None = None
    publisher: str | None = None

    # === Access ===
    url: str | None = None
    pdf_url: str | None = None
    is_open_access: bool = False

    # === Additional Metadata ===
    abstract: str | None = None
    keywords: tuple[str, ...] = ()
    citation_count: int | None = None
    impact_factor: float | None = None

    # === Quality & Provenance ===
    completeness: float = 0.0
    source_api: str = ""
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def best_identifier(self) -> str:
        """Return the best available identifier for display."""
        if self.doi:
            return f"DOI:{self.doi}"
        if self.pmid:
            return f"PMID:{self.pmid}"
        if self.arxiv_id:
            return f"arXiv:{self.arxiv_id}"
        return self.id

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return {
            "id": self.id,
            "doi": self.doi,
            "pmid": self.pmid,
            "pmcid": self.pmcid,
            "arxiv_id": self.arxiv_id,
            "isbn": self.isbn,
            "issn": self.issn,
            "title": self.title,
            "authors": [a.to_dict() for a in self.authors],
            "publication_year": self.publication_year,
            "publication_date": self.publication_date,
            "type": self.type.value,
            "journal": self.journal,
            "volume": self.volume,
            "issue": self.issue,
            "pages": self.pages,
            "publisher": self.publisher,
            "url": self.url,
            "pdf_url": self.pdf_url,
            "is_open_access": self.is_open_access,
            "abstract": self.abstract,
            "keywords": list(self.keywords),
            "citation_count": self.citation_count,
            "impact_factor": self.impact_factor,
            "completeness": round(self.completeness, 4),
            "source_api": self.source_api,
            "fetched_at": self.fetched_at.isoformat(),
        }


# =============================================================================
# Query / Result Envelopes
# =============================================================================


@dataclass
class SearchFilters:
    """
    Post-hoc filters carried on a query.

    Accepted and echoed back, but not applied to results.
    """

    year_from: int | None = None
    year_to: int | None = None
    source_type: list[SourceType] = field(default_factory=list)
    open_access_only: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SearchFilters | None:
        if not data:
            return None
        types = data.get("source_type") or data.get("sourceType") or []
        return cls(
            year_from=data.get("year_from", data.get("yearFrom")),
            year_to=data.get("year_to", data.get("yearTo")),
            source_type=[SourceType(t) for t in types if t in SourceType._value2member_map_],
            open_access_only=bool(data.get("open_access_only", data.get("openAccessOnly", False))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "year_from": self.year_from,
            "year_to": self.year_to,
            "source_type": [t.value for t in self.source_type],
            "open_access_only": self.open_access_only,
        }


@dataclass
class SearchQuery:
    """A single federated search request."""

    query: str
    type: QueryType = QueryType.KEYWORD
    limit: int | None = 10
    offset: int = 0
    filters: SearchFilters | None = None

    def __post_init__(self) -> None:
        self.type = QueryType.parse(self.type)
        if self.limit is not None and self.limit < 1:
            raise ValueError(f"limit must be a positive integer, got {self.limit}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchQuery:
        """Build a query from a request body (camelCase or snake_case)."""
        return cls(
            query=str(data.get("query") or ""),
            type=QueryType.parse(data.get("type")),
            limit=data.get("limit", 10),
            offset=data.get("offset", 0) or 0,
            filters=SearchFilters.from_dict(data.get("filters")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "type": self.type.value,
            "limit": self.limit,
            "offset": self.offset,
            "filters": self.filters.to_dict() if self.filters else None,
        }


@dataclass
class SearchResult:
    """
    Outcome of one federated search.

    ``total_results`` counts unique records after deduplication and before
    truncation to the query limit.
    """

    sources: list[NormalizedSource]
    total_results: int
    query: SearchQuery
    apis: list[str]
    search_time: int  # milliseconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "sources": [s.to_dict() for s in self.sources],
            "total_results": self.total_results,
            "query": self.query.to_dict(),
            "apis": list(self.apis),
            "search_time": self.search_time,
        }

"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from typing import Any

import pytest

from scholar_federation.domain.entities.api import ApiMetrics, ApiResponse
from scholar_federation.domain.entities.source import NormalizedSource, SourceType

# ============================================================
# Stub Provider
# ============================================================


class StubClient:
    """
    In-memory provider satisfying the SourceClient protocol.

    Every search operation answers with ``records`` (or ``error`` when set)
    and remembers which operation was called.
    """

    def __init__(
        self,
        key: str,
        records: list[dict[str, Any]] | None = None,
        *,
        name: str | None = None,
        error: str | None = None,
        raises: Exception | None = None,
    ):
        self.key = key
        self._name = name or key
        self.records = records or []
        self.error = error
        self.raises = raises
        self.calls: list[tuple[str, str, int | None]] = []
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    async def _answer(self, operation: str, query: str, limit: int | None) -> ApiResponse:
        self.calls.append((operation, query, limit))
        if self.raises is not None:
            raise self.raises
        if self.error is not None:
            return ApiResponse.fail(self.name, self.error)
        return ApiResponse.ok(self.name, {"items": list(self.records)})

    async def search_by_title(self, title: str, limit: int = 10) -> ApiResponse:
        return await self._answer("title", title, limit)

    async def search_by_author(self, author: str, limit: int = 10) -> ApiResponse:
        return await self._answer("author", author, limit)

    async def search_by_doi(self, doi: str) -> ApiResponse:
        return await self._answer("doi", doi, None)

    async def search_by_keyword(self, keyword: str, limit: int = 10) -> ApiResponse:
        return await self._answer("keyword", keyword, limit)

    def transform_response(self, response: Any) -> list[dict[str, Any]]:
        return list(response.get("items") or [])

    def get_metrics(self) -> ApiMetrics:
        return ApiMetrics(total_requests=len(self.calls), successful_requests=len(self.calls))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def stub_client():
    """Factory for StubClient instances."""
    return StubClient


# ============================================================
# Records
# ============================================================


@pytest.fixture
def full_record():
    """A provider record with every weighted field present."""
    return {
        "doi": "10.1000/full.2024.001",
        "title": "Graph Neural Networks for Protein Folding",
        "authors": [{"given": "Ada", "family": "Lovelace"}],
        "year": 2024,
        "abstract": "We fold proteins with message passing.",
        "journal": "Journal of Computational Biology",
        "url": "https://doi.org/10.1000/full.2024.001",
        "type": "journal-article",
        "volume": "12",
        "issue": "3",
        "pages": "100-110",
        "publisher": "Example Press",
        "citation_count": 42,
    }


@pytest.fixture
def make_source():
    """Factory for NormalizedSource with sensible defaults."""

    def _make(title: str = "A Study", **kwargs: Any) -> NormalizedSource:
        kwargs.setdefault("id", kwargs.get("doi") or title.lower().replace(" ", "-"))
        kwargs.setdefault("type", SourceType.JOURNAL)
        return NormalizedSource(title=title, **kwargs)

    return _make

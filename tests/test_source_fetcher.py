"""
Tests for SourceFetcher - selection, fan-out, merge, ranking, streaming.

Providers are in-memory StubClients (see conftest.py), so these tests cover
orchestration only; wire behavior lives in test_base_client.py and
test_provider_clients.py.
"""

from __future__ import annotations

import asyncio

import pytest

from scholar_federation.application.search.normalizer import SourceNormalizer
from scholar_federation.application.search.source_fetcher import (
    API_PRIORITIES,
    UNRANKED_PRIORITY,
    FetcherOptions,
    ProviderPayload,
    SourceFetcher,
    compare_sources,
)
from scholar_federation.domain.entities.api import ApiResponse
from scholar_federation.domain.entities.source import QueryType, SearchQuery


def titles(sources):
    return [s.title for s in sources]


# =============================================================================
# Selection
# =============================================================================


class TestSelectClients:
    """Registry filtering and per-query-type ordering."""

    def test_doi_priority_order(self, stub_client):
        fetcher = SourceFetcher(
            {key: stub_client(key) for key in ("zenodo", "datacite", "openalex", "crossref")}
        )
        selected = fetcher.select_clients(SearchQuery("10.1/x", type="doi"))
        assert [c.key for c in selected] == ["crossref", "openalex", "datacite", "zenodo"]

    def test_unranked_keep_registry_order(self, stub_client):
        fetcher = SourceFetcher({key: stub_client(key) for key in ("zeta", "alpha", "openalex")})
        selected = fetcher.select_clients(SearchQuery("x", type="title"))
        assert [c.key for c in selected] == ["openalex", "zeta", "alpha"]

    def test_preferred_narrows(self, stub_client):
        fetcher = SourceFetcher(
            {key: stub_client(key) for key in ("crossref", "pubmed", "arxiv")},
            FetcherOptions(preferred_apis=["ArXiv", "pubmed", "unknown"]),
        )
        selected = fetcher.select_clients(SearchQuery("x", type="keyword"))
        assert [c.key for c in selected] == ["pubmed", "arxiv"]

    def test_preferred_without_match_falls_back(self, stub_client):
        fetcher = SourceFetcher(
            {key: stub_client(key) for key in ("crossref", "pubmed")},
            FetcherOptions(preferred_apis=["nothing"]),
        )
        assert len(fetcher.select_clients(SearchQuery("x"))) == 2

    def test_excluded_removed_at_construction(self, stub_client):
        fetcher = SourceFetcher(
            {key: stub_client(key) for key in ("crossref", "pubmed", "base")},
            FetcherOptions(excluded_apis=["BASE"]),
        )
        assert fetcher.get_available_apis() == ["crossref", "pubmed"]

    def test_excluded_wins_over_preferred(self, stub_client):
        fetcher = SourceFetcher(
            {key: stub_client(key) for key in ("crossref", "pubmed")},
            FetcherOptions(preferred_apis=["crossref"], excluded_apis=["crossref"]),
        )
        assert [c.key for c in fetcher.select_clients(SearchQuery("x"))] == ["pubmed"]

    def test_priority_tables(self):
        assert SourceFetcher.get_api_priorities(QueryType.DOI)["crossref"] == 1
        assert SourceFetcher.get_api_priorities("identifier") is API_PRIORITIES[None]
        assert SourceFetcher.get_api_priorities(None) is API_PRIORITIES[None]
        assert UNRANKED_PRIORITY == 999


# =============================================================================
# Dispatch
# =============================================================================


class TestExecuteSearch:
    """One query against one provider."""

    @pytest.mark.parametrize(
        ("query_type", "operation"),
        [
            ("title", "title"),
            ("author", "author"),
            ("keyword", "keyword"),
            ("doi", "doi"),
            ("identifier", "doi"),
        ],
    )
    async def test_dispatch_by_type(self, stub_client, query_type, operation):
        client = stub_client("x", [{"title": "T"}])
        fetcher = SourceFetcher({"x": client})
        await fetcher.execute_search(client, SearchQuery("q", type=query_type, limit=7))
        assert client.calls[0][0] == operation

    async def test_missing_limit_defaults_to_ten(self, stub_client):
        client = stub_client("x")
        await SourceFetcher({"x": client}).execute_search(client, SearchQuery("q", limit=None))
        assert client.calls == [("keyword", "q", 10)]

    async def test_payload_uses_transform(self, stub_client):
        client = stub_client("x", [{"title": "T"}], name="Provider X")
        payload = await SourceFetcher({"x": client}).execute_search(client, SearchQuery("q"))
        assert payload == ProviderPayload(api_name="Provider X", data=[{"title": "T"}])

    async def test_raw_data_without_transform(self, stub_client):
        class RawClient(stub_client):
            transform_response = None

        client = RawClient("raw", [{"title": "T"}])
        payload = await SourceFetcher({"raw": client}).execute_search(client, SearchQuery("q"))
        assert payload.data == {"items": [{"title": "T"}]}

    async def test_failure_returns_none(self, stub_client):
        client = stub_client("x", error="HTTP 500: Internal Server Error")
        assert await SourceFetcher({"x": client}).execute_search(client, SearchQuery("q")) is None

    async def test_exception_returns_none(self, stub_client):
        client = stub_client("x", raises=RuntimeError("kaput"))
        assert await SourceFetcher({"x": client}).execute_search(client, SearchQuery("q")) is None


class TestParallelSearches:
    async def test_concurrency_capped(self, stub_client):
        active = 0
        peak = 0

        class SlowClient(stub_client):
            async def _answer(self, operation, query, limit):
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1
                return ApiResponse.ok(self.name, {"items": [{"title": self.key}]})

        clients = {f"p{i}": SlowClient(f"p{i}") for i in range(5)}
        fetcher = SourceFetcher(clients, FetcherOptions(max_parallel_requests=2))
        payloads = await fetcher.execute_parallel_searches(list(clients.values()), SearchQuery("q"))

        assert peak == 2
        assert [p.api_name for p in payloads] == ["p0", "p1", "p2", "p3", "p4"]

    async def test_only_successes_kept(self, stub_client):
        clients = [
            stub_client("ok", [{"title": "Kept"}]),
            stub_client("down", error="Request timeout after 10s"),
            stub_client("broken", raises=ValueError("bad")),
            stub_client("empty"),
        ]
        fetcher = SourceFetcher({c.key: c for c in clients})
        payloads = await fetcher.execute_parallel_searches(clients, SearchQuery("q"))
        assert [p.api_name for p in payloads] == ["ok", "empty"]


# =============================================================================
# Normalize / rank
# =============================================================================


class TestNormalizeResults:
    def test_untitled_records_dropped(self):
        fetcher = SourceFetcher({})
        sources = fetcher.normalize_results(
            [ProviderPayload("X", [{"title": "Keep"}, {"title": "  "}, {"doi": "10.1000/x"}, "junk"])]
        )
        assert titles(sources) == ["Keep"]

    def test_single_record_payload(self):
        sources = SourceFetcher({}).normalize_results([ProviderPayload("X", {"title": "Solo"})])
        assert titles(sources) == ["Solo"]

    def test_record_error_skipped(self, monkeypatch):
        original = SourceNormalizer.normalize

        def flaky(raw, api_name):
            if raw.get("title") == "Bad":
                raise RuntimeError("unexpected")
            return original(raw, api_name)

        monkeypatch.setattr(SourceNormalizer, "normalize", staticmethod(flaky))
        sources = SourceFetcher({}).normalize_results([ProviderPayload("X", [{"title": "Bad"}, {"title": "Good"}])])
        assert titles(sources) == ["Good"]


class TestRanking:
    def test_completeness_gap(self, make_source):
        low = make_source("Low", completeness=0.3)
        high = make_source("High", completeness=0.8)
        assert compare_sources(high, low) < 0
        assert titles(SourceFetcher.sort_results([low, high])) == ["High", "Low"]

    def test_citations_break_close_completeness(self, make_source):
        a = make_source("A", completeness=0.50, citation_count=5)
        b = make_source("B", completeness=0.55, citation_count=50)
        assert titles(SourceFetcher.sort_results([a, b])) == ["B", "A"]
        c = make_source("C", completeness=0.58, citation_count=1)
        assert titles(SourceFetcher.sort_results([c, a])) == ["A", "C"]

    def test_year_breaks_when_citations_missing(self, make_source):
        old = make_source("Old", completeness=0.5, publication_year=1999)
        new = make_source("New", completeness=0.5, publication_year=2024, citation_count=3)
        assert titles(SourceFetcher.sort_results([old, new])) == ["New", "Old"]

    def test_stable_when_equal(self, make_source):
        sources = [make_source(t, completeness=0.5) for t in ("First", "Second", "Third")]
        assert titles(SourceFetcher.sort_results(sources)) == ["First", "Second", "Third"]


# =============================================================================
# End to end
# =============================================================================


@pytest.fixture
def overlapping_clients(stub_client):
    """Two providers, 3 + 4 records, two titles in common."""
    first = stub_client(
        "first",
        [
            {"title": "Shared One", "year": 2020, "journal": "J"},
            {"title": "Shared Two"},
            {"title": "Only First", "year": 2021, "abstract": "abc"},
        ],
        name="First",
    )
    second = stub_client(
        "second",
        [
            {"title": "shared one", "authors": ["Ada Lovelace"], "year": 2020, "journal": "J", "abstract": "x"},
            {"title": "SHARED TWO!"},
            {"title": "Only Second", "url": "https://example.org/a"},
            {
                "doi": "10.1000/best",
                "title": "Most Complete",
                "authors": ["Ada Lovelace"],
                "year": 2022,
                "abstract": "x",
                "journal": "J",
                "url": "https://doi.org/10.1000/best",
                "volume": "1",
                "issue": "2",
                "pages": "3-4",
                "publisher": "P",
            },
        ],
        name="Second",
    )
    return {"first": first, "second": second}


class TestSearch:
    async def test_merge_dedup_rank_truncate(self, overlapping_clients):
        fetcher = SourceFetcher(overlapping_clients)
        result = await fetcher.search(SearchQuery("shared", type="title", limit=5))

        assert len(result.sources) <= 5
        assert result.total_results == 5
        assert result.apis == ["First", "Second"]
        assert result.search_time >= 0

        comparison = [SourceNormalizer.normalize_title_for_comparison(s.title) for s in result.sources]
        assert len(comparison) == len(set(comparison))

        for i, earlier in enumerate(result.sources):
            for later in result.sources[i + 1 :]:
                assert later.completeness - earlier.completeness <= 0.1

        assert titles(result.sources)[:3] == ["Most Complete", "shared one", "Only First"]
        assert result.sources[1].source_api == "Second"

    async def test_limit_applied_after_ranking(self, overlapping_clients):
        result = await SourceFetcher(overlapping_clients).search(SearchQuery("shared", limit=2))
        assert titles(result.sources) == ["Most Complete", "shared one"]
        assert result.total_results == 5

    async def test_no_limit_returns_everything(self, overlapping_clients):
        result = await SourceFetcher(overlapping_clients).search(SearchQuery("shared", limit=None))
        assert len(result.sources) == 5

    async def test_limit_one_keeps_more_complete_duplicate(self, stub_client):
        sparse = stub_client("sparse", [{"doi": "10.1000/same", "title": "The Work"}], name="Sparse")
        rich = stub_client(
            "rich",
            [{"doi": "10.1000/SAME", "title": "The Work", "year": 2020, "abstract": "a", "journal": "J"}],
            name="Rich",
        )
        result = await SourceFetcher({"sparse": sparse, "rich": rich}).search(SearchQuery("the work", limit=1))

        assert len(result.sources) == 1
        assert result.sources[0].source_api == "Rich"
        assert result.total_results == 1

    async def test_failing_providers_do_not_fail_search(self, stub_client):
        clients = {
            "slow": stub_client("slow", error="Request timeout after 10s"),
            "broken": stub_client("broken", raises=RuntimeError("boom")),
            "good": stub_client("good", [{"title": "Survivor"}]),
        }
        result = await SourceFetcher(clients).search(SearchQuery("x"))
        assert titles(result.sources) == ["Survivor"]
        assert len(result.apis) == 3

    async def test_no_results(self, stub_client):
        result = await SourceFetcher({"a": stub_client("a")}).search(SearchQuery("nothing"))
        assert result.sources == []
        assert result.total_results == 0

    async def test_filters_echoed(self, stub_client):
        query = SearchQuery.from_dict({"query": "x", "filters": {"year_from": 2000}})
        result = await SourceFetcher({"a": stub_client("a", [{"title": "Old", "year": 1990}])}).search(query)
        assert titles(result.sources) == ["Old"]
        assert result.to_dict()["query"]["filters"]["year_from"] == 2000


# =============================================================================
# Streaming / resolve / lifecycle
# =============================================================================


class TestSearchStream:
    async def collect(self, fetcher, query):
        return [event async for event in fetcher.search_stream(query)]

    async def test_event_sequence(self, overlapping_clients):
        events = await self.collect(SourceFetcher(overlapping_clients), SearchQuery("shared", limit=None))
        types = [e["type"] for e in events]

        assert types == ["start", "progress", "results", "progress", "results", "complete"]
        assert events[0] == {"type": "start", "total_apis": 2}
        assert events[1] == {"type": "progress", "api": "First", "completed": 0, "total_apis": 2}
        assert events[3]["completed"] == 1

        first_titles = [s["title"] for s in events[2]["sources"]]
        second_titles = [s["title"] for s in events[4]["sources"]]
        assert len(first_titles) == 3
        # titles already emitted by First are not repeated
        assert sorted(second_titles) == ["Most Complete", "Only Second"]
        assert events[4]["total_found"] == 5
        assert events[-1]["total_found"] == 5

    async def test_error_event(self, stub_client):
        clients = {
            "down": stub_client("down", error="HTTP 503: Service Unavailable"),
            "broken": stub_client("broken", raises=RuntimeError("boom")),
        }
        events = await self.collect(SourceFetcher(clients), SearchQuery("x"))
        errors = [e for e in events if e["type"] == "error"]
        assert errors == [
            {"type": "error", "api": "down", "message": "HTTP 503: Service Unavailable"},
            {"type": "error", "api": "broken", "message": "boom"},
        ]
        assert events[-1]["type"] == "complete"
        assert events[-1]["total_found"] == 0

    async def test_limit_stops_early(self, overlapping_clients):
        events = await self.collect(SourceFetcher(overlapping_clients), SearchQuery("shared", limit=2))
        results = [e for e in events if e["type"] == "results"]

        assert len(results) == 1
        assert len(results[0]["sources"]) == 2
        assert events[-1]["total_found"] == 2
        assert overlapping_clients["second"].calls == []


class TestResolve:
    async def test_resolves_doi(self, stub_client):
        client = stub_client("crossref", [{"doi": "10.1000/x", "title": "Resolved"}])
        source = await SourceFetcher({"crossref": client}).resolve("https://doi.org/10.1000/x")

        assert source is not None
        assert source.doi == "10.1000/x"
        assert client.calls == [("doi", "https://doi.org/10.1000/x", None)]

    async def test_not_found(self, stub_client):
        assert await SourceFetcher({"crossref": stub_client("crossref")}).resolve("10.1000/none") is None


class TestLifecycle:
    def test_metrics_per_key(self, stub_client):
        fetcher = SourceFetcher({"a": stub_client("a"), "b": stub_client("b")})
        assert set(fetcher.get_metrics()) == {"a", "b"}

    async def test_close_closes_clients(self, stub_client):
        clients = {"a": stub_client("a"), "b": stub_client("b")}
        await SourceFetcher(clients).close()
        assert all(c.closed for c in clients.values())

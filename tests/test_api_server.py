"""
Tests for the HTTP API server.

The container's client registry is overridden with StubClients so the
endpoints exercise the real SourceFetcher without network access.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from scholar_federation.api.server import app, create_api_server, get_container, set_container
from scholar_federation.container import ApplicationContainer


@pytest.fixture
def stubs(stub_client):
    return {
        "crossref": stub_client(
            "crossref",
            [{"doi": "10.1000/api", "title": "API Paper", "year": 2021, "abstract": "x"}],
            name="CrossRef",
        ),
        "openalex": stub_client("openalex", [{"title": "Second Paper"}], name="OpenAlex"),
    }


@pytest.fixture
def container(stubs):
    container = ApplicationContainer()
    container.config.from_dict({"max_parallel_requests": 5, "preferred_apis": [], "excluded_apis": []})
    container.clients.override(providers.Object(stubs))
    set_container(container)
    yield container
    set_container(None)


@pytest.fixture
def client(container):
    return TestClient(app)


def parse_events(body: str) -> list[dict]:
    return [json.loads(line[len("data: ") :]) for line in body.splitlines() if line.startswith("data: ")]


# ============================================================================
# App / container
# ============================================================================


class TestApp:
    def test_create_api_server(self) -> None:
        server = create_api_server()
        assert server.title == "Scholar Federation API"

    def test_get_container_uses_installed(self, container) -> None:
        assert get_container() is container

    def test_get_container_builds_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("FEDERATION_EXCLUDED_APIS", "base")
        set_container(None)
        try:
            built = get_container()
            assert built.config.excluded_apis() == ["base"]
            assert get_container() is built
        finally:
            set_container(None)

    def test_health(self, client) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "apis": ["crossref", "openalex"]}

    def test_lifespan_closes_clients(self, container, stubs) -> None:
        with TestClient(app) as lifespan_client:
            assert lifespan_client.get("/health").status_code == 200
        assert all(stub.closed for stub in stubs.values())


# ============================================================================
# Search
# ============================================================================


class TestSearchEndpoints:
    def test_get_search(self, client, stubs) -> None:
        response = client.get("/api/sources/search", params={"query": "api", "type": "title", "limit": 5})

        assert response.status_code == 200
        data = response.json()
        assert [s["title"] for s in data["sources"]] == ["API Paper", "Second Paper"]
        assert data["total_results"] == 2
        assert data["apis"] == ["OpenAlex", "CrossRef"]
        assert data["query"]["type"] == "title"
        assert stubs["crossref"].calls == [("title", "api", 5)]

    def test_get_search_requires_query(self, client) -> None:
        response = client.get("/api/sources/search")
        assert response.status_code == 400
        assert response.json()["detail"] == "Query parameter is required"

    def test_get_search_blank_query(self, client) -> None:
        assert client.get("/api/sources/search", params={"query": "   "}).status_code == 400

    @pytest.mark.parametrize("limit", [0, 101])
    def test_get_search_limit_bounds(self, client, limit) -> None:
        assert client.get("/api/sources/search", params={"query": "x", "limit": limit}).status_code == 422

    def test_post_search(self, client) -> None:
        response = client.post(
            "/api/sources/search",
            json={"query": "api", "type": "doi", "limit": 1, "filters": {"yearFrom": 2000}},
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data["sources"]) == 1
        assert data["query"]["type"] == "doi"
        assert data["query"]["filters"]["year_from"] == 2000

    @pytest.mark.parametrize("limit", [0, -3, 101])
    def test_post_search_limit_bounds(self, client, stubs, limit) -> None:
        response = client.post("/api/sources/search", json={"query": "api", "limit": limit})
        assert response.status_code == 422
        assert stubs["crossref"].calls == []

    def test_post_search_requires_query(self, client) -> None:
        response = client.post("/api/sources/search", json={"type": "title"})
        assert response.status_code == 400

    def test_search_failure_is_500(self, client, container) -> None:
        fetcher = MagicMock()
        fetcher.search = AsyncMock(side_effect=RuntimeError("down"))
        container.source_fetcher.override(providers.Object(fetcher))
        try:
            response = client.get("/api/sources/search", params={"query": "x"})
        finally:
            container.source_fetcher.reset_override()

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to search sources"


# ============================================================================
# Resolve / stream / metrics
# ============================================================================


class TestResolveEndpoint:
    def test_resolve(self, client, stubs) -> None:
        response = client.post("/api/sources/resolve", json={"identifier": "10.1000/api"})

        assert response.status_code == 200
        assert response.json()["doi"] == "10.1000/api"
        assert stubs["crossref"].calls[0][0] == "doi"

    def test_resolve_requires_identifier(self, client) -> None:
        assert client.post("/api/sources/resolve", json={"identifier": " "}).status_code == 400
        assert client.post("/api/sources/resolve", json={}).status_code == 400

    def test_resolve_not_found(self, client, stubs) -> None:
        for stub in stubs.values():
            stub.records = []
        response = client.post("/api/sources/resolve", json={"identifier": "10.1000/missing"})
        assert response.status_code == 404
        assert response.json()["detail"] == "Source not found"


class TestStreamEndpoint:
    def test_stream_events(self, client) -> None:
        response = client.get("/api/sources/search/stream", params={"query": "api"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = parse_events(response.text)
        assert events[0] == {"type": "start", "total_apis": 2}
        assert events[-1]["type"] == "complete"
        assert events[-1]["total_found"] == 2

    def test_stream_requires_query(self, client) -> None:
        assert client.get("/api/sources/search/stream").status_code == 400


class TestMetricsEndpoint:
    def test_metrics(self, client) -> None:
        client.get("/api/sources/search", params={"query": "x"})
        response = client.get("/api/metrics")

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"crossref", "openalex"}
        assert data["crossref"]["total_requests"] == 1

"""
HTTP API Server for federated source search.

Endpoints:
- GET  /health                    → status and registered providers
- GET  /api/sources/search        → federated search (query string)
- POST /api/sources/search        → federated search (JSON body)
- POST /api/sources/resolve       → best record for a DOI / identifier
- GET  /api/sources/search/stream → per-provider progress as server-sent events
- GET  /api/metrics               → per-provider request metrics
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from scholar_federation.application.search import SourceFetcher
from scholar_federation.container import ApplicationContainer, load_config_from_env
from scholar_federation.domain.entities.source import SearchQuery

logger = logging.getLogger(__name__)

DEFAULT_API_PORT = 8766


# Pydantic models for API requests / responses
class SearchRequest(BaseModel):
    """Body of POST /api/sources/search."""

    query: str | None = None
    type: str = "keyword"
    limit: int | None = Field(default=10, ge=1, le=100)
    offset: int = 0
    filters: dict[str, Any] | None = None


class ResolveRequest(BaseModel):
    """Body of POST /api/sources/resolve."""

    identifier: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    apis: list[str]


# Global container (initialized lazily or on startup)
_container: ApplicationContainer | None = None


def get_container() -> ApplicationContainer:
    """Return the process container, building it from the environment on first use."""
    global _container
    if _container is None:
        container = ApplicationContainer()
        container.config.from_dict(load_config_from_env())
        _container = container
        logger.info("Federation container initialized from environment")
    return _container


def set_container(container: ApplicationContainer | None) -> None:
    """Install a pre-configured container (tests, embedding)."""
    global _container
    _container = container


def _fetcher() -> SourceFetcher:
    return get_container().source_fetcher()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    get_container()
    logger.info("HTTP API server initialized")

    yield

    logger.info("HTTP API server shutting down")
    if _container is not None:
        await _container.source_fetcher().close()


def create_api_server() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title="Scholar Federation API",
        description="Federated search across scholarly metadata providers.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_api_server()


async def _run_search(query: SearchQuery) -> dict[str, Any]:
    if not query.query.strip():
        raise HTTPException(status_code=400, detail="Query parameter is required")
    try:
        result = await _fetcher().search(query)
    except Exception as e:
        logger.exception(f"Source search error: {e}")
        raise HTTPException(status_code=500, detail="Failed to search sources") from e
    return result.to_dict()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", apis=_fetcher().get_available_apis())


@app.get("/api/sources/search")
async def search_sources(
    query: str | None = Query(default=None, description="Search string"),
    type: str = Query(default="keyword", description="title | author | doi | keyword | identifier"),
    limit: int = Query(default=10, ge=1, le=100),
):
    """Federated search via query string."""
    return await _run_search(SearchQuery(query=query or "", type=type, limit=limit))


@app.post("/api/sources/search")
async def search_sources_post(request: SearchRequest):
    """Federated search via JSON body (camelCase filters accepted)."""
    return await _run_search(SearchQuery.from_dict(request.model_dump()))


@app.post("/api/sources/resolve")
async def resolve_source(request: ResolveRequest):
    """Resolve a DOI / identifier to its best record."""
    if not request.identifier or not request.identifier.strip():
        raise HTTPException(status_code=400, detail="Identifier parameter is required")

    try:
        source = await _fetcher().resolve(request.identifier.strip())
    except Exception as e:
        logger.exception(f"Source resolution error: {e}")
        raise HTTPException(status_code=500, detail="Failed to resolve identifier") from e

    if source is None:
        raise HTTPException(status_code=404, detail="Source not found")
    return source.to_dict()


@app.get("/api/sources/search/stream")
async def stream_sources(
    query: str | None = Query(default=None),
    type: str = Query(default="keyword"),
    limit: int | None = Query(default=None, ge=1),
):
    """Server-sent events: one ``data:`` frame per progress event."""
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Query parameter is required")

    search_query = SearchQuery(query=query, type=type, limit=limit)
    fetcher = _fetcher()

    async def event_stream() -> AsyncIterator[str]:
        async for event in fetcher.search_stream(search_query):
            yield f"data: {json.dumps(event)}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@app.get("/api/metrics")
async def get_metrics():
    """Per-provider request metrics."""
    return {key: metrics.to_dict() for key, metrics in _fetcher().get_metrics().items()}


def run_api_server(host: str = "127.0.0.1", port: int = DEFAULT_API_PORT):
    """
    Run the HTTP API server.

    Args:
        host: Host to bind to (default: 127.0.0.1 for local only)
        port: Port to bind to
    """
    import uvicorn

    logger.info(f"Starting HTTP API server on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Scholar Federation HTTP API Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=DEFAULT_API_PORT, help="Port to bind to")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    run_api_server(host=args.host, port=args.port)

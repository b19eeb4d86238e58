"""
Application DI Container (dependency-injector).

Centralizes provider-client creation and the fetcher built on top of them.

Usage::

    from scholar_federation.container import ApplicationContainer, load_config_from_env

    container = ApplicationContainer()
    container.config.from_dict(load_config_from_env())

    fetcher = container.source_fetcher()
    result = await fetcher.search(SearchQuery("graph neural networks"))

    # In tests, override any provider:
    container.clients.override(providers.Object({"stub": stub_client}))
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any

from dependency_injector import containers, providers

from scholar_federation.core.exceptions import ConfigurationError, ErrorContext

logger = logging.getLogger(__name__)

DEFAULT_MAX_PARALLEL = 5

# config key -> environment variable
ENV_VARS: dict[str, str] = {
    "email": "FEDERATION_EMAIL",
    "crossref_email": "CROSSREF_EMAIL",
    "openalex_email": "OPENALEX_EMAIL",
    "ncbi_api_key": "NCBI_API_KEY",
    "semantic_scholar_api_key": "SEMANTIC_SCHOLAR_API_KEY",
    "core_api_key": "CORE_API_KEY",
    "unpaywall_email": "UNPAYWALL_EMAIL",
}


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip().lower() for item in value.split(",") if item.strip()]


def load_config_from_env(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Read container configuration from environment variables.

    Raises:
        ConfigurationError: FEDERATION_MAX_PARALLEL is not a positive integer
    """
    env = os.environ if environ is None else environ
    config: dict[str, Any] = {key: env.get(var) or None for key, var in ENV_VARS.items()}

    raw_parallel = env.get("FEDERATION_MAX_PARALLEL")
    try:
        max_parallel = int(raw_parallel) if raw_parallel else DEFAULT_MAX_PARALLEL
    except ValueError:
        max_parallel = 0
    if max_parallel < 1:
        raise ConfigurationError(
            f"Invalid FEDERATION_MAX_PARALLEL: {raw_parallel!r}",
            context=ErrorContext(operation="load_config", suggestion="Use a positive integer"),
        )

    config["max_parallel_requests"] = max_parallel
    config["preferred_apis"] = _split_list(env.get("FEDERATION_PREFERRED_APIS"))
    config["excluded_apis"] = _split_list(env.get("FEDERATION_EXCLUDED_APIS"))
    return config


def _create_clients(**credentials: Any) -> dict[str, Any]:
    """Lazy factory for the provider registry."""
    from scholar_federation.infrastructure.sources import create_default_clients

    return create_default_clients(credentials)


def _create_source_fetcher(
    clients: Mapping[str, Any],
    max_parallel_requests: int | None,
    preferred_apis: list[str] | None,
    excluded_apis: list[str] | None,
) -> object:
    """Lazy factory for SourceFetcher."""
    from scholar_federation.application.search import FetcherOptions, SourceFetcher

    options = FetcherOptions(
        max_parallel_requests=max_parallel_requests or DEFAULT_MAX_PARALLEL,
        preferred_apis=list(preferred_apis or []),
        excluded_apis=list(excluded_apis or []),
    )
    return SourceFetcher(clients, options)


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for the federation engine.

    - ``clients``: one client per provider for the whole process
    - ``source_fetcher``: a fetcher over those clients (new per call)
    """

    config = providers.Configuration()

    clients = providers.Singleton(
        _create_clients,
        email=config.email,
        crossref_email=config.crossref_email,
        openalex_email=config.openalex_email,
        ncbi_api_key=config.ncbi_api_key,
        semantic_scholar_api_key=config.semantic_scholar_api_key,
        core_api_key=config.core_api_key,
        unpaywall_email=config.unpaywall_email,
    )

    source_fetcher = providers.Factory(
        _create_source_fetcher,
        clients=clients,
        max_parallel_requests=config.max_parallel_requests,
        preferred_apis=config.preferred_apis,
        excluded_apis=config.excluded_apis,
    )


__all__ = ["ApplicationContainer", "load_config_from_env"]

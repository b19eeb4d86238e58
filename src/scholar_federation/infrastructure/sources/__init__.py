"""
Provider clients and the default registry.

Registry keys are lowercase and stable; the fetcher's priority tables and
the preferred/excluded options refer to providers by these keys.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from scholar_federation.infrastructure.sources.base_client import BaseAPIClient, SourceClient
from scholar_federation.infrastructure.sources.arxiv import ArxivClient
from scholar_federation.infrastructure.sources.base_search import BASEClient
from scholar_federation.infrastructure.sources.biorxiv import BioRxivClient
from scholar_federation.infrastructure.sources.core import CoreClient
from scholar_federation.infrastructure.sources.crossref import CrossRefClient
from scholar_federation.infrastructure.sources.datacite import DataCiteClient
from scholar_federation.infrastructure.sources.doaj import DOAJClient
from scholar_federation.infrastructure.sources.europe_pmc import EuropePMCClient
from scholar_federation.infrastructure.sources.openalex import OpenAlexClient
from scholar_federation.infrastructure.sources.opencitations import OpenCitationsClient
from scholar_federation.infrastructure.sources.plos import PLOSClient
from scholar_federation.infrastructure.sources.pubmed import PubMedClient
from scholar_federation.infrastructure.sources.semantic_scholar import SemanticScholarClient
from scholar_federation.infrastructure.sources.unpaywall import UnpaywallClient
from scholar_federation.infrastructure.sources.zenodo import ZenodoClient

logger = logging.getLogger(__name__)

# Registration order; the optional Unpaywall client is appended last
PROVIDER_KEYS: tuple[str, ...] = (
    "crossref",
    "pubmed",
    "arxiv",
    "semanticscholar",
    "openalex",
    "core",
    "europepmc",
    "doaj",
    "biorxiv",
    "datacite",
    "zenodo",
    "base",
    "plos",
    "opencitations",
)


def create_default_clients(
    config: Mapping[str, Any] | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, BaseAPIClient]:
    """
    Build one client per provider.

    Args:
        config: Optional credentials (email, crossref_email, openalex_email,
            ncbi_api_key, semantic_scholar_api_key, core_api_key,
            unpaywall_email)
        transport: Optional httpx transport shared by every client

    Returns:
        Registry key -> client, in ``PROVIDER_KEYS`` order
    """
    config = config or {}
    email = config.get("email") or None

    clients: list[BaseAPIClient] = [
        CrossRefClient(config.get("crossref_email") or email, transport=transport),
        PubMedClient(config.get("ncbi_api_key") or None, transport=transport),
        ArxivClient(transport=transport),
        SemanticScholarClient(config.get("semantic_scholar_api_key") or None, transport=transport),
        OpenAlexClient(config.get("openalex_email") or email, transport=transport),
        CoreClient(config.get("core_api_key") or None, transport=transport),
        EuropePMCClient(transport=transport),
        DOAJClient(transport=transport),
        BioRxivClient(transport=transport),
        DataCiteClient(transport=transport),
        ZenodoClient(transport=transport),
        BASEClient(transport=transport),
        PLOSClient(transport=transport),
        OpenCitationsClient(transport=transport),
    ]

    unpaywall_email = config.get("unpaywall_email")
    if unpaywall_email:
        clients.append(UnpaywallClient(unpaywall_email, transport=transport))

    registry = {client.key: client for client in clients}
    logger.debug(f"Registered {len(registry)} providers: {', '.join(registry)}")
    return registry


__all__ = [
    "PROVIDER_KEYS",
    "ArxivClient",
    "BASEClient",
    "BaseAPIClient",
    "BioRxivClient",
    "CoreClient",
    "CrossRefClient",
    "DOAJClient",
    "DataCiteClient",
    "EuropePMCClient",
    "OpenAlexClient",
    "OpenCitationsClient",
    "PLOSClient",
    "PubMedClient",
    "SemanticScholarClient",
    "SourceClient",
    "UnpaywallClient",
    "ZenodoClient",
    "create_default_clients",
]

"""
Infrastructure Layer - External Systems Integration

Contains:
- sources: Provider clients (CrossRef, PubMed, arXiv, OpenAlex, etc.)
  sharing one request gateway
"""

from .sources import PROVIDER_KEYS, BaseAPIClient, SourceClient, create_default_clients

__all__ = [
    "PROVIDER_KEYS",
    "BaseAPIClient",
    "SourceClient",
    "create_default_clients",
]

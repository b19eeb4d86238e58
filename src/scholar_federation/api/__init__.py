"""
HTTP API for federated source search.

Provides REST and server-sent-event endpoints over the SourceFetcher.
"""

from .server import create_api_server, run_api_server

__all__ = ["create_api_server", "run_api_server"]

"""
Core module for Scholar Federation.

Provides:
- Unified exception hierarchy
- Async fan-out utilities
"""

from .async_utils import batch_process, gather_settled
from .exceptions import (
    APIError,
    ConfigurationError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    FederationError,
    HttpStatusError,
    NetworkTimeoutError,
    ParseError,
    UnsupportedOperationError,
    get_retry_delay,
    is_retryable_error,
)

__all__ = [
    # Exceptions
    "FederationError",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "APIError",
    "NetworkTimeoutError",
    "HttpStatusError",
    "UnsupportedOperationError",
    "DataError",
    "ParseError",
    "ConfigurationError",
    "is_retryable_error",
    "get_retry_delay",
    # Async utilities
    "gather_settled",
    "batch_process",
]

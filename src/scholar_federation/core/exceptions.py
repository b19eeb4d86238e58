"""
Unified Exception Hierarchy for Scholar Federation.

Exception Hierarchy:
    FederationError (base)
    ├── APIError
    │   ├── NetworkTimeoutError
    │   ├── HttpStatusError
    │   └── UnsupportedOperationError
    ├── DataError
    │   └── ParseError
    └── ConfigurationError

The network gateway never lets these escape: every call-level failure is
converted into a failed ``ApiResponse``. The classes exist so that the
gateway can classify failures (retryable or not) by type instead of by
string matching alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

# HTTP status codes worth another attempt
RETRYABLE_STATUS_CODES = frozenset({429, 503})

MAX_RETRY_DELAY = 10.0


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    WARNING = auto()  # Recoverable, can continue
    ERROR = auto()  # Failed but can retry
    CRITICAL = auto()  # Cannot continue
    TRANSIENT = auto()  # Temporary, should retry automatically


class ErrorCategory(Enum):
    """Categories for error classification."""

    API = "api"
    DATA = "data"
    CONFIGURATION = "config"
    NETWORK = "network"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Rich context for error messages."""

    api_name: str | None = None
    operation: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class FederationError(Exception):
    """
    Base exception for all federation errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    """

    __slots__ = ("category", "context", "retryable", "severity")

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.API,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        if self.context.api_name:
            result["api"] = self.context.api_name
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        return result


# =============================================================================
# API Errors
# =============================================================================


class APIError(FederationError):
    """Base class for provider call errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.API,
            retryable=retryable,
        )


class NetworkTimeoutError(APIError):
    """Raised when a single provider call loses the race against its timer."""

    def __init__(
        self,
        timeout: float,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(f"Request timeout after {timeout:g}s", context=context, retryable=True)
        self.category = ErrorCategory.NETWORK
        self.severity = ErrorSeverity.TRANSIENT
        self.timeout = timeout


class HttpStatusError(APIError):
    """Raised for a non-2xx response. Carries the status code."""

    def __init__(
        self,
        status_code: int,
        reason: str = "",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        message = f"HTTP {status_code}: {reason}" if reason else f"HTTP {status_code}"
        super().__init__(
            message,
            context=context,
            retryable=status_code in RETRYABLE_STATUS_CODES,
        )
        self.status_code = status_code
        if self.retryable:
            self.severity = ErrorSeverity.TRANSIENT


class UnsupportedOperationError(APIError):
    """Raised when a provider cannot perform the requested query type."""

    def __init__(
        self,
        capability: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(f"{capability} not supported", context=context, retryable=False)
        self.severity = ErrorSeverity.WARNING
        self.capability = capability


# =============================================================================
# Data Errors
# =============================================================================


class DataError(FederationError):
    """Base class for data-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.DATA,
            retryable=False,
        )


class ParseError(DataError):
    """Raised when a payload is malformed or has an unexpected shape."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        full_msg = f"Parse error: {message}"
        if source:
            full_msg = f"Parse error ({source}): {message}"
        super().__init__(full_msg, context=context)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(FederationError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )


# =============================================================================
# Retry Classification
# =============================================================================


def is_retryable_error(error: BaseException) -> bool:
    """
    Check if a failed provider call should be retried.

    Only timeouts, HTTP 429 and HTTP 503 qualify. Typed errors answer
    directly; anything else is classified by its message text.
    """
    if isinstance(error, FederationError):
        return error.retryable
    if isinstance(error, TimeoutError):
        return True

    error_str = str(error).lower()
    return "timeout" in error_str or "429" in error_str or "503" in error_str


def get_retry_delay(attempt: int) -> float:
    """
    Exponential backoff delay in seconds for a 0-based attempt index.

    1s, 2s, 4s, 8s, then capped at 10s.
    """
    return min(1.0 * (2 ** max(attempt, 0)), MAX_RETRY_DELAY)

"""
Provider configuration and runtime bookkeeping.

Each provider client owns one ``ApiConfig``, one ``ApiMetrics`` and one
``RateLimitInfo`` slot for its whole lifetime. Nothing here is shared
between providers.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any


@dataclass(frozen=True)
class RateLimit:
    """
    Advertised rate limits of a provider.

    Only ``requests_per_second`` is enforced by the gateway; the per-minute
    and per-day figures document the provider's published quota.
    """

    requests_per_second: float | None = None
    requests_per_minute: int | None = None
    requests_per_day: int | None = None

    @property
    def min_interval(self) -> float:
        """Minimum seconds between two requests (0 when unthrottled)."""
        if not self.requests_per_second:
            return 0.0
        return 1.0 / self.requests_per_second


@dataclass(frozen=True)
class ApiConfig:
    """Static per-provider configuration."""

    name: str
    base_url: str
    api_key: str | None = None
    rate_limit: RateLimit = field(default_factory=RateLimit)
    timeout: int = 10000  # milliseconds
    retries: int = 3


@dataclass(frozen=True)
class RateLimitInfo:
    """Rate-limit state reported by the provider through response headers."""

    limit: int
    remaining: int
    reset_at: datetime


@dataclass
class ApiMetrics:
    """Runtime counters of one provider client."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time: float = 0.0  # milliseconds
    last_error: str | None = None
    last_error_at: datetime | None = None

    def record_success(self, response_time_ms: float) -> None:
        """Count a success and fold its duration into the running average."""
        self.successful_requests += 1
        n = self.successful_requests
        self.average_response_time = (self.average_response_time * (n - 1) + response_time_ms) / n

    def record_failure(self, error: str) -> None:
        self.failed_requests += 1
        self.last_error = error
        self.last_error_at = datetime.now(UTC)

    def snapshot(self) -> ApiMetrics:
        """Return an independent copy."""
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "average_response_time": round(self.average_response_time, 2),
            "last_error": self.last_error,
            "last_error_at": self.last_error_at.isoformat() if self.last_error_at else None,
        }


@dataclass(frozen=True)
class ApiResponse:
    """
    Discriminated result of a provider call.

    ``success=True`` carries ``data``; ``success=False`` carries ``error``.
    The gateway returns one of these for every call and never raises.
    """

    success: bool
    api_name: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, api_name: str, data: Any) -> ApiResponse:
        return cls(success=True, api_name=api_name, data=data)

    @classmethod
    def fail(cls, api_name: str, error: str) -> ApiResponse:
        return cls(success=False, api_name=api_name, error=error)

    def with_data(self, data: Any) -> ApiResponse:
        """Return a copy of a successful response with replaced data."""
        return replace(self, data=data)

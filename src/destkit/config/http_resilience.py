"""Per-client HTTP behaviour profiles: retries, rate limits and caching."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
from httpx_retries import Retry

if TYPE_CHECKING:
    from collections.abc import Mapping

type ShouldCacheHook = Callable[[object], bool]

# batch reads and writes are POSTs, so every verb the clients send is eligible
RETRYABLE_METHODS = frozenset({"GET", "POST", "PATCH", "PUT", "DELETE"})


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    attempts: int = 4
    backoff_factor: float = 0.5
    max_backoff_wait: float = 30.0
    retry_statuses: frozenset[int] = frozenset({429, 500, 502, 503, 504})
    retry_exceptions: tuple[type[httpx.HTTPError], ...] = (
        httpx.TimeoutException,
        httpx.NetworkError,
    )

    def build(self) -> Retry:
        return Retry(
            total=self.attempts,
            backoff_factor=self.backoff_factor,
            max_backoff_wait=self.max_backoff_wait,
            allowed_methods=RETRYABLE_METHODS,
            status_forcelist=self.retry_statuses,
            retry_on_exceptions=self.retry_exceptions,
        )


def write_safe_retry_policy() -> RetryPolicy:
    """Retry only when the remote cannot have applied the request.

    429 responses and refused connections are never processed by the server,
    so replaying them cannot duplicate a batch create.
    """

    return RetryPolicy(
        retry_statuses=frozenset({429}),
        retry_exceptions=(httpx.ConnectError, httpx.ConnectTimeout),
    )


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class CacheConfig:
    """sqlite response cache; ``sqlite_path`` defaults to the data dir cache file."""

    ttl_seconds: float | None = None
    sqlite_path: str | None = None
    should_cache: ShouldCacheHook | None = None


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    cache: CacheConfig | None = None
    default_headers: Mapping[str, str] | None = None

"""HTTP transport shared by destination clients.

Each request waits on the profile's rate limiter and goes through a retrying
transport. Profiles with a ``CacheConfig`` additionally read through hishel's
sqlite store, which is meant for slowly changing metadata, never for writes.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as HishelCacheResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import RetryTransport

from destkit.config.http_resilience import (
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
    ShouldCacheHook,
)
from destkit.config.storage import get_http_cache_path

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

__all__ = [
    "CacheConfig",
    "RateLimit",
    "ResilienceConfig",
    "ResilientClient",
    "RetryPolicy",
]


class ResilientClient:
    """Async HTTP client built from one ``ResilienceConfig`` profile."""

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit is not None
            else None
        )
        self._client = _open_client(config)

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: object = None,
        params: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        if self._limiter is None:
            return await self._client.request(method, url, json=json, params=params)
        async with self._limiter:
            return await self._client.request(method, url, json=json, params=params)

    async def get(self, url: str, *, params: Mapping[str, str] | None = None) -> httpx.Response:
        return await self.request("GET", url, params=params)

    async def post(self, url: str, *, json: object) -> httpx.Response:
        return await self.request("POST", url, json=json)

    async def patch(
        self,
        url: str,
        *,
        json: object,
        params: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        return await self.request("PATCH", url, json=json, params=params)


def _open_client(config: ResilienceConfig) -> httpx.AsyncClient:
    options: dict[str, Any] = {
        "timeout": config.timeout_seconds,
        "transport": RetryTransport(retry=config.retry.build()),
        "headers": dict(config.default_headers or {}),
    }
    if config.base_url is not None:
        options["base_url"] = config.base_url
    if config.cache is None:
        return httpx.AsyncClient(**options)
    return AsyncCacheClient(
        **options,
        storage=_cache_storage(config.cache),
        policy=_cache_policy(config.cache),
    )


def _cache_storage(cache: CacheConfig) -> AsyncSqliteStorage:
    return AsyncSqliteStorage(
        database_path=cache.sqlite_path or str(get_http_cache_path()),
        default_ttl=cache.ttl_seconds,
    )


def _cache_policy(cache: CacheConfig) -> FilterPolicy | None:
    if cache.should_cache is None:
        return None
    return FilterPolicy(response_filters=[_JsonPredicateFilter(cache.should_cache)])


class _JsonPredicateFilter(BaseFilter[HishelCacheResponse]):
    """Store a response only when its JSON body satisfies ``predicate``."""

    def __init__(self, predicate: ShouldCacheHook) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: HishelCacheResponse, body: bytes | None) -> bool:  # noqa: ARG002
        if not body:
            return False
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return False
        return bool(self._predicate(payload))

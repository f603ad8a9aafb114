from __future__ import annotations

import asyncio
import json

import httpx

from destkit.adapters.http_resilience import (
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    ResilientClient,
    _cache_policy,  # pyright: ignore[reportPrivateUsage]
    _JsonPredicateFilter,  # pyright: ignore[reportPrivateUsage]
)


def test_cache_policy_absent_without_predicate() -> None:
    assert _cache_policy(CacheConfig(ttl_seconds=60)) is None


def test_json_predicate_filter_only_stores_matching_bodies() -> None:
    cache_filter = _JsonPredicateFilter(lambda payload: payload == {"results": [1]})

    assert cache_filter.needs_body()
    assert cache_filter.apply(None, json.dumps({"results": [1]}).encode())  # type: ignore[arg-type]
    assert not cache_filter.apply(None, json.dumps({"results": []}).encode())  # type: ignore[arg-type]
    assert not cache_filter.apply(None, b"not json")  # type: ignore[arg-type]
    assert not cache_filter.apply(None, None)  # type: ignore[arg-type]


def test_resilient_client_sends_through_rate_limiter() -> None:
    seen: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    async def run() -> list[int]:
        config = ResilienceConfig(
            name="test",
            base_url="https://api.example.test",
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
            default_headers={"Authorization": "Bearer token"},
        )
        async with ResilientClient(config) as client:
            client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
                base_url="https://api.example.test",
                headers={"Authorization": "Bearer token"},
                transport=httpx.MockTransport(handler),
            )
            responses = [
                await client.get("/things"),
                await client.post("/things", json={"name": "a"}),
                await client.patch("/things/1", json={"name": "b"}),
            ]
        return [response.status_code for response in responses]

    assert asyncio.run(run()) == [200, 200, 200]
    assert [request.method for request in seen] == ["GET", "POST", "PATCH"]
    assert seen[0].headers["Authorization"] == "Bearer token"

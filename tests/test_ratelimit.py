"""Tests for token-bucket rate limiting and backend selection."""

from __future__ import annotations

import json
from typing import Any

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from voicepay.config.settings import RateLimitRule
from voicepay.errors import RateLimitedError
from voicepay.ratelimit.backends import MemoryBackend, RedisBackend
from voicepay.ratelimit.bucket import BucketState, take
from voicepay.ratelimit.limiter import (
    BackendKind,
    RouteRateLimiter,
    TokenBucketLimiter,
    select_backend_kind,
)

RULE = RateLimitRule(tokens_per_interval=1, interval_ms=1_000, burst=5)


class _Clock:
    def __init__(self) -> None:
        self.now_ms = 1_700_000_000_000

    def __call__(self) -> int:
        return self.now_ms


class _FakeRedis:
    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str, px: int | None = None) -> None:
        self.data[key] = value
        self.ttls[key] = px or 0

    async def aclose(self) -> None:
        return None


class _DownRedis:
    async def get(self, key: str) -> Any:
        raise RedisConnectionError("connection refused")

    async def set(self, *args: Any, **kwargs: Any) -> None:
        raise RedisConnectionError("connection refused")


def test_refill_is_continuous_and_capped_at_burst() -> None:
    state, allowed = take(BucketState(tokens=0, last_refill_ms=0), RULE, 500)
    assert not allowed
    assert state.tokens == pytest.approx(0.5)

    state, allowed = take(BucketState(tokens=0, last_refill_ms=0), RULE, 60_000)
    assert allowed
    assert state.tokens == pytest.approx(4)


@pytest.mark.asyncio
async def test_burst_then_one_per_interval() -> None:
    clock = _Clock()
    limiter = TokenBucketLimiter(MemoryBackend(), RULE, clock=clock)

    assert [await limiter.allow("client") for _ in range(6)] == [True] * 5 + [False]

    clock.now_ms += 1_000
    assert await limiter.allow("client")
    assert not await limiter.allow("client")


@pytest.mark.asyncio
async def test_keys_are_independent() -> None:
    limiter = TokenBucketLimiter(MemoryBackend(), RULE, clock=_Clock())
    for _ in range(5):
        await limiter.allow("a")

    assert not await limiter.allow("a")
    assert await limiter.allow("b")


@pytest.mark.asyncio
async def test_redis_backend_shares_state_through_the_store() -> None:
    redis = _FakeRedis()
    clock = _Clock()
    first = TokenBucketLimiter(RedisBackend(redis), RULE, clock=clock)  # type: ignore[arg-type]
    second = TokenBucketLimiter(RedisBackend(redis), RULE, clock=clock)  # type: ignore[arg-type]

    for _ in range(3):
        assert await first.allow("client")
    for _ in range(2):
        assert await second.allow("client")
    assert not await first.allow("client")

    stored = json.loads(redis.data["ratelimit:client"])
    assert stored["tokens"] == pytest.approx(0)
    assert redis.ttls["ratelimit:client"] > 0


@pytest.mark.asyncio
async def test_corrupt_redis_entry_starts_a_full_bucket() -> None:
    redis = _FakeRedis()
    redis.data["ratelimit:client"] = "not json"
    limiter = TokenBucketLimiter(RedisBackend(redis), RULE, clock=_Clock())  # type: ignore[arg-type]

    assert await limiter.allow("client")
    assert json.loads(redis.data["ratelimit:client"])["tokens"] == pytest.approx(4)


@pytest.mark.asyncio
async def test_backend_failure_falls_back_to_memory() -> None:
    fallback = MemoryBackend()
    limiter = TokenBucketLimiter(
        RedisBackend(_DownRedis()),  # type: ignore[arg-type]
        RULE,
        fallback=fallback,
        clock=_Clock(),
    )

    assert [await limiter.allow("client") for _ in range(6)] == [True] * 5 + [False]
    assert fallback.snapshot("client") is not None


def test_backend_selection_order() -> None:
    assert select_backend_kind(durable_configured=True, kv_configured=True) == BackendKind.durable
    assert select_backend_kind(durable_configured=False, kv_configured=True) == BackendKind.kv
    assert select_backend_kind(durable_configured=False, kv_configured=False) == BackendKind.memory


@pytest.mark.asyncio
async def test_route_limiter_raises_rate_limited_per_route() -> None:
    limiter = RouteRateLimiter(
        MemoryBackend(),
        {"transactions_execute": RateLimitRule(tokens_per_interval=1, interval_ms=1_000, burst=1)},
        clock=_Clock(),
    )

    await limiter.check("10.0.0.1", "transactions_execute")
    with pytest.raises(RateLimitedError):
        await limiter.check("10.0.0.1", "transactions_execute")

    await limiter.check("10.0.0.2", "transactions_execute")
    assert await limiter.allow("10.0.0.1", "unlisted_route")
    assert limiter.backend_name == "memory"

"""Rate-limit storage backends.

    - `PostgresBackend`: the bucket row is locked (`SELECT ... FOR UPDATE`) for the read-modify-write,
      so concurrent hits from any number of service instances are serialized exactly.
    - `RedisBackend`: plain `GET` / `SET` against a shared Redis. Concurrent hits from different
      instances can interleave and over-admit slightly; fine for abuse resistance.
    - `MemoryBackend`: exact within one process, not shared across instances.

Backends wrap their own driver errors in `BackendUnavailable` so the limiter can fall back.
"""

from __future__ import annotations

import json
from typing import Protocol

import psycopg
from psycopg_pool import AsyncConnectionPool
from redis.asyncio import Redis
from redis.exceptions import RedisError

from voicepay.config.settings import RateLimitRule
from voicepay.db.pool import get_conn
from voicepay.ratelimit.bucket import BucketState, full_bucket, take, ttl_ms


class BackendUnavailable(RuntimeError):
    """The backend's store could not be reached."""


class RateLimitBackend(Protocol):
    """Consumes one permit from the bucket at `key` if available."""

    name: str

    async def take(self, key: str, rule: RateLimitRule, now_ms: int) -> bool: ...


class MemoryBackend:
    """In-process buckets."""

    name = "memory"

    def __init__(self) -> None:
        self._buckets: dict[str, BucketState] = {}

    async def take(self, key: str, rule: RateLimitRule, now_ms: int) -> bool:
        # No await between read and write: atomic with respect to other coroutines.
        state, allowed = take(self._buckets.get(key), rule, now_ms)
        self._buckets[key] = state
        return allowed

    def snapshot(self, key: str) -> BucketState | None:
        return self._buckets.get(key)


def _decode_state(raw: bytes | str | None) -> BucketState | None:
    if raw is None:
        return None
    try:
        data = json.loads(raw)
        return BucketState(tokens=float(data["tokens"]), last_refill_ms=int(data["last_refill_ms"]))
    except (ValueError, KeyError, TypeError):
        # Corrupt entry: start over with a full bucket.
        return None


class RedisBackend:
    """Buckets shared through Redis (approximate under cross-instance contention)."""

    name = "redis"

    def __init__(self, client: Redis, prefix: str = "ratelimit:") -> None:
        self._client = client
        self._prefix = prefix

    async def take(self, key: str, rule: RateLimitRule, now_ms: int) -> bool:
        redis_key = self._prefix + key
        try:
            state = _decode_state(await self._client.get(redis_key))
            new_state, allowed = take(state, rule, now_ms)
            await self._client.set(
                redis_key,
                json.dumps({"tokens": new_state.tokens, "last_refill_ms": new_state.last_refill_ms}),
                px=ttl_ms(rule),
            )
        except (RedisError, OSError) as exc:
            raise BackendUnavailable(f"redis: {exc}") from exc
        return allowed

    async def close(self) -> None:
        await self._client.aclose()


class PostgresBackend:
    """Buckets in `rate_limit_buckets`, serialized per key by a row lock."""

    name = "postgres"

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def take(self, key: str, rule: RateLimitRule, now_ms: int) -> bool:
        initial = full_bucket(rule, now_ms)
        try:
            async with get_conn(self._pool) as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        await cur.execute(
                            """
                            INSERT INTO rate_limit_buckets (bucket_key, tokens, last_refill_ms)
                            VALUES (%s, %s, %s)
                            ON CONFLICT (bucket_key) DO NOTHING
                            """,
                            (key, initial.tokens, initial.last_refill_ms),
                        )
                        await cur.execute(
                            "SELECT tokens, last_refill_ms FROM rate_limit_buckets "
                            "WHERE bucket_key = %s FOR UPDATE",
                            (key,),
                        )
                        row = await cur.fetchone()
                        state = BucketState(
                            tokens=float(row["tokens"]), last_refill_ms=int(row["last_refill_ms"])
                        )
                        new_state, allowed = take(state, rule, now_ms)
                        await cur.execute(
                            "UPDATE rate_limit_buckets SET tokens = %s, last_refill_ms = %s "
                            "WHERE bucket_key = %s",
                            (new_state.tokens, new_state.last_refill_ms, key),
                        )
        except (psycopg.Error, OSError) as exc:
            raise BackendUnavailable(f"postgres: {exc}") from exc
        return allowed

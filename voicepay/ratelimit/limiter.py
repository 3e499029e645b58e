"""Rate limiter front-end.

`TokenBucketLimiter.allow(key)` is the only contract callers see. The backend behind it is chosen
once at startup by `select_backend_kind`, in priority order: the serialized Postgres bucket, then
the shared Redis store, then process memory. If the chosen backend fails at request time the limiter
answers from memory for that request rather than failing the request.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from enum import StrEnum

from voicepay.config.settings import RateLimitRule
from voicepay.errors import RateLimitedError
from voicepay.ratelimit.backends import BackendUnavailable, MemoryBackend, RateLimitBackend

logger = logging.getLogger(__name__)


class BackendKind(StrEnum):
    """Available bucket stores, strongest guarantee first."""

    durable = "durable"
    kv = "kv"
    memory = "memory"


def select_backend_kind(*, durable_configured: bool, kv_configured: bool) -> BackendKind:
    """Pick the strongest configured backend."""

    if durable_configured:
        return BackendKind.durable
    if kv_configured:
        return BackendKind.kv
    return BackendKind.memory


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


class TokenBucketLimiter:
    """One rule applied to many keys."""

    def __init__(
            self,
            backend: RateLimitBackend,
            rule: RateLimitRule,
            *,
            fallback: MemoryBackend | None = None,
            clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        self._backend = backend
        self._rule = rule
        self._fallback = fallback or (backend if isinstance(backend, MemoryBackend) else MemoryBackend())
        self._clock = clock

    @property
    def rule(self) -> RateLimitRule:
        return self._rule

    async def allow(self, key: str) -> bool:
        now_ms = self._clock()
        try:
            return await self._backend.take(key, self._rule, now_ms)
        except BackendUnavailable as exc:
            logger.warning("rate limit backend=%s unavailable, using memory: %s", self._backend.name, exc)
            return await self._fallback.take(key, self._rule, now_ms)


def client_key(client: str, route: str) -> str:
    return f"{client or 'unknown'}:{route}"


class RouteRateLimiter:
    """Per-route limiters sharing one backend."""

    def __init__(
            self,
            backend: RateLimitBackend,
            rules: Mapping[str, RateLimitRule],
            *,
            clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        fallback = backend if isinstance(backend, MemoryBackend) else MemoryBackend()
        self.backend_name = backend.name
        self._limiters = {
            route: TokenBucketLimiter(backend, rule, fallback=fallback, clock=clock)
            for route, rule in rules.items()
        }

    async def allow(self, client: str, route: str) -> bool:
        limiter = self._limiters.get(route)
        if limiter is None:
            return True
        return await limiter.allow(client_key(client, route))

    async def check(self, client: str, route: str) -> None:
        """Raise `RateLimitedError` when the client exhausted the route's budget."""

        if not await self.allow(client, route):
            logger.info("rate limited route=%s", route)
            raise RateLimitedError("too many requests, slow down")

"""Application composition root.

This module wires together configuration, the DB pool, chain clients, the rate limiter and the
payment service. HTTP and Telegram front-ends share the same container.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from psycopg_pool import AsyncConnectionPool
from redis.asyncio import Redis

from voicepay.chain.builder import TransferBuilder
from voicepay.chain.client import SubstrateChainClient
from voicepay.chain.registry import ChainRegistry
from voicepay.config.settings import Settings
from voicepay.db.pool import create_pool
from voicepay.execution.router import ExecutionRouter
from voicepay.ledger.confirmation import ConfirmationGate
from voicepay.ledger.ledger import TransactionLedger
from voicepay.ledger.store import LedgerStore, PostgresLedgerStore
from voicepay.ratelimit.backends import MemoryBackend, PostgresBackend, RateLimitBackend, RedisBackend
from voicepay.ratelimit.limiter import BackendKind, RouteRateLimiter, select_backend_kind
from voicepay.service import PaymentService
from voicepay.speech import ElevenLabsSpeechClient, SpeechClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class App:
    """Shared application dependencies for request handlers."""

    settings: Settings
    pool: AsyncConnectionPool | None
    registry: ChainRegistry
    ledger: TransactionLedger
    limiter: RouteRateLimiter
    service: PaymentService
    speech: SpeechClient | None = None
    rate_limit_backend: RateLimitBackend | None = None


def create_rate_limit_backend(settings: Settings, pool: AsyncConnectionPool | None) -> RateLimitBackend:
    """Instantiate the strongest configured bucket store."""

    kind = select_backend_kind(
        durable_configured=settings.rate_limit_durable and pool is not None,
        kv_configured=bool(settings.redis_url),
    )
    logger.info("rate limit backend=%s", kind)
    if kind == BackendKind.durable:
        return PostgresBackend(pool)
    if kind == BackendKind.kv:
        return RedisBackend(Redis.from_url(settings.redis_url))
    return MemoryBackend()


def build_app(
        settings: Settings,
        *,
        store: LedgerStore,
        registry: ChainRegistry,
        pool: AsyncConnectionPool | None = None,
        speech: SpeechClient | None = None,
        rate_limit_backend: RateLimitBackend | None = None,
) -> App:
    """Assemble the container from already-constructed collaborators."""

    backend = rate_limit_backend or create_rate_limit_backend(settings, pool)
    ledger = TransactionLedger(store)
    service = PaymentService(
        settings,
        ledger=ledger,
        gate=ConfirmationGate(ledger),
        builder=TransferBuilder(registry),
        router=ExecutionRouter(ledger, registry),
        registry=registry,
        speech=speech,
    )
    return App(
        settings=settings,
        pool=pool,
        registry=registry,
        ledger=ledger,
        limiter=RouteRateLimiter(backend, settings.rate_limits),
        service=service,
        speech=speech,
        rate_limit_backend=backend,
    )


def create_app(settings: Settings) -> App:
    """Create the production application container.

    Note:
        The returned DB pool is not opened. Call `await startup(app)` before serving.
    """

    pool = create_pool(settings.database_url, max_size=10)
    speech = None
    if settings.elevenlabs_api_key:
        speech = ElevenLabsSpeechClient(
            settings.elevenlabs_api_key, voice_id=settings.elevenlabs_voice_id
        )
    return build_app(
        settings,
        store=PostgresLedgerStore(pool),
        registry=ChainRegistry(SubstrateChainClient, settings.endpoint_overrides()),
        pool=pool,
        speech=speech,
    )


async def startup(app: App) -> None:
    if app.pool is not None:
        await app.pool.open(wait=True)


async def shutdown(app: App) -> None:
    """Release network resources in reverse order of acquisition."""

    await app.registry.close()
    if isinstance(app.rate_limit_backend, RedisBackend):
        await app.rate_limit_backend.close()
    close_speech = getattr(app.speech, "close", None)
    if close_speech is not None:
        await close_speech()
    if app.pool is not None:
        await app.pool.close()

"""Postgres connectivity: sync connections for tooling, an async pool for the service.

Every session is pinned to UTC so `created_at` / `confirmed_at` round-trip without offsets.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

import psycopg
from dotenv import load_dotenv
from psycopg import AsyncConnection
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool


def require_database_url() -> str:
    """Read `DATABASE_URL` from the environment or raise a clear error."""

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is required (set it in .env or environment)")
    return database_url


def connect_utc(database_url: str) -> psycopg.Connection:
    """Open a blocking connection (migrations, scripts) locked to UTC."""

    conn = psycopg.connect(database_url)
    conn.execute("SET TIME ZONE 'UTC'", prepare=False)
    return conn


async def ensure_utc(conn: AsyncConnection) -> None:
    """Pin the session timezone to UTC and switch rows to dicts."""

    conn.row_factory = dict_row  # type: ignore[assignment]
    async with conn.cursor() as cur:
        await cur.execute("SET TIME ZONE 'UTC'", prepare=False)
    # `SET` starts a transaction when autocommit is disabled; commit so the pool doesn't see INTRANS.
    await conn.commit()


def create_pool(
        database_url: str | None = None,
        *,
        min_size: int = 1,
        max_size: int | None = None,
        timeout: float = 30.0,
) -> AsyncConnectionPool:
    """Create the service's async pool.

    Notes:
        - The pool is created closed. Call `await pool.open()` at startup.
        - If `database_url` is omitted, `.env` is loaded and `DATABASE_URL` is read.
    """

    if database_url is None:
        load_dotenv(".env")
        database_url = require_database_url()

    return AsyncConnectionPool(
        conninfo=database_url,
        min_size=min_size,
        max_size=max_size,
        timeout=timeout,
        open=False,
        configure=ensure_utc,
    )


@asynccontextmanager
async def get_conn(pool: AsyncConnectionPool) -> AsyncIterator[AsyncConnection]:
    """Borrow a pooled connection; the pool commits on clean exit and rolls back on error."""

    async with pool.connection() as conn:
        yield conn

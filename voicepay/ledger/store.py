"""Ledger persistence.

`LedgerStore` is the storage contract the ledger relies on. Status updates are conditional on the
expected current status and all-or-nothing across the ids passed: if any row has moved on, nothing
is written and `ConflictError` is raised. `PostgresLedgerStore` implements the contract on the
service's psycopg pool.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol

from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from voicepay.db.pool import get_conn
from voicepay.errors import ConflictError
from voicepay.ledger.models import ParsedIntent, TransactionRecord, TransactionStatus, VoiceSession

_COLUMNS = (
    "id, user_id, voice_command, parsed_intent, recipient_address, amount, token_symbol, "
    "transaction_hash, status, created_at, confirmed_at"
)


class LedgerStore(Protocol):
    """Storage operations used by `TransactionLedger`."""

    async def insert_many(self, records: Sequence[TransactionRecord]) -> None: ...

    async def get_many(self, ids: Sequence[str]) -> list[TransactionRecord]: ...

    async def list_by_user(
            self,
            user_id: str,
            status: TransactionStatus | None,
            limit: int,
            offset: int,
    ) -> list[TransactionRecord]: ...

    async def update_status(
            self,
            ids: Sequence[str],
            *,
            expected: TransactionStatus,
            new: TransactionStatus,
            transaction_hash: str | None = None,
            confirmed_at: datetime | None = None,
    ) -> None: ...

    async def update_parsed_intent(self, record_id: str, parsed_intent: ParsedIntent) -> None: ...

    async def touch_user(self, user_id: str) -> None: ...

    async def insert_voice_session(self, session: VoiceSession) -> None: ...


def _record_from_row(row: dict[str, Any]) -> TransactionRecord:
    return TransactionRecord.model_validate(row)


class PostgresLedgerStore:
    """`LedgerStore` on Postgres (tables from `001_create_tables.sql`)."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def insert_many(self, records: Sequence[TransactionRecord]) -> None:
        rows = [
            (
                r.id,
                r.user_id,
                r.voice_command,
                Jsonb(r.parsed_intent.model_dump(mode="json")),
                r.recipient_address,
                r.amount,
                r.token_symbol,
                r.transaction_hash,
                r.status.value,
                r.created_at,
                r.confirmed_at,
            )
            for r in records
        ]
        async with get_conn(self._pool) as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.executemany(
                        "INSERT INTO users (id) VALUES (%s) ON CONFLICT (id) DO NOTHING",
                        [(user_id,) for user_id in sorted({r.user_id for r in records})],
                    )
                    await cur.executemany(
                        f"INSERT INTO transactions ({_COLUMNS}) "
                        "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
                        rows,
                    )

    async def get_many(self, ids: Sequence[str]) -> list[TransactionRecord]:
        async with get_conn(self._pool) as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    f"SELECT {_COLUMNS} FROM transactions WHERE id = ANY(%s)",
                    (list(ids),),
                )
                rows = await cur.fetchall()
        by_id = {row["id"]: _record_from_row(row) for row in rows}
        return [by_id[i] for i in ids if i in by_id]

    async def list_by_user(
            self,
            user_id: str,
            status: TransactionStatus | None,
            limit: int,
            offset: int,
    ) -> list[TransactionRecord]:
        clauses = ["user_id = %s"]
        params: list[Any] = [user_id]
        if status is not None:
            clauses.append("status = %s")
            params.append(status.value)
        params.extend([limit, offset])

        async with get_conn(self._pool) as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    f"SELECT {_COLUMNS} FROM transactions WHERE {' AND '.join(clauses)} "
                    "ORDER BY created_at DESC, id LIMIT %s OFFSET %s",
                    tuple(params),
                )
                rows = await cur.fetchall()
        return [_record_from_row(row) for row in rows]

    async def update_status(
            self,
            ids: Sequence[str],
            *,
            expected: TransactionStatus,
            new: TransactionStatus,
            transaction_hash: str | None = None,
            confirmed_at: datetime | None = None,
    ) -> None:
        async with get_conn(self._pool) as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        UPDATE transactions
                        SET status           = %s,
                            transaction_hash = COALESCE(%s, transaction_hash),
                            confirmed_at     = COALESCE(%s, confirmed_at)
                        WHERE id = ANY(%s)
                          AND status = %s
                        """,
                        (new.value, transaction_hash, confirmed_at, list(ids), expected.value),
                    )
                    if cur.rowcount != len(ids):
                        # Leaving the transaction block with an exception rolls the update back.
                        raise ConflictError("transaction state changed concurrently")

    async def update_parsed_intent(self, record_id: str, parsed_intent: ParsedIntent) -> None:
        async with get_conn(self._pool) as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "UPDATE transactions SET parsed_intent = %s WHERE id = %s",
                    (Jsonb(parsed_intent.model_dump(mode="json")), record_id),
                )

    async def touch_user(self, user_id: str) -> None:
        async with get_conn(self._pool) as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO users (id) VALUES (%s)
                    ON CONFLICT (id) DO UPDATE SET last_active = NOW()
                    """,
                    (user_id,),
                )

    async def insert_voice_session(self, session: VoiceSession) -> None:
        async with get_conn(self._pool) as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "INSERT INTO users (id) VALUES (%s) ON CONFLICT (id) DO NOTHING",
                    (session.user_id,),
                )
                await cur.execute(
                    """
                    INSERT INTO voice_sessions (id, user_id, transcription, response_text, created_at)
                    VALUES (%s, %s, %s, %s, %s)
                    """,
                    (
                        session.id,
                        session.user_id,
                        session.transcription,
                        session.response_text,
                        session.created_at,
                    ),
                )

"""Transaction ledger: the only component allowed to change a record's status.

State machine::

    pending   -> confirmed | failed
    confirmed -> submitted | failed
    submitted, failed: terminal

Every transition is checked here against the records as read, then written conditionally by the
store. A wrong-state transition is always a `ConflictError` and never mutates any record, so the
state machine also serves as the guard against concurrent confirm/execute attempts.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from voicepay.errors import ConflictError, NotFoundError, ValidationError
from voicepay.intent.schema import IntentItem
from voicepay.ledger.models import (
    Constraints,
    ParsedIntent,
    TransactionRecord,
    TransactionStatus,
    VoiceSession,
    can_transition,
)
from voicepay.ledger.store import LedgerStore

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _unique(ids: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(ids))


class TransactionLedger:
    """Creates transaction records and mediates their state transitions."""

    def __init__(self, store: LedgerStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock

    def _new_record(
            self,
            user_id: str,
            voice_command: str,
            item: IntentItem,
            created_at: datetime,
    ) -> TransactionRecord:
        return TransactionRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            voice_command=voice_command,
            parsed_intent=ParsedIntent.model_validate(item.model_dump()),
            recipient_address=item.recipient,
            amount=item.amount,
            token_symbol=item.token,
            status=TransactionStatus.pending,
            created_at=created_at,
        )

    async def create(self, user_id: str, voice_command: str, item: IntentItem) -> TransactionRecord:
        """Persist one pending record for an intent item."""

        (record,) = await self.create_many(user_id, voice_command, [item])
        return record

    async def create_many(
            self,
            user_id: str,
            voice_command: str,
            items: Sequence[IntentItem],
    ) -> list[TransactionRecord]:
        """Persist one pending record per item in a single write (all or nothing)."""

        if not items:
            raise ValidationError("at least one intent item is required")
        # Records of one command share a timestamp, which identifies the batch later on.
        created_at = self._clock()
        records = [self._new_record(user_id, voice_command, item, created_at) for item in items]
        await self._store.insert_many(records)
        logger.info("transactions created user=%s count=%d", user_id, len(records))
        return records

    async def get(self, record_id: str) -> TransactionRecord:
        records = await self._store.get_many([record_id])
        if not records:
            raise NotFoundError("transaction not found")
        return records[0]

    async def get_many(self, ids: Sequence[str]) -> list[TransactionRecord]:
        """Fetch every id or raise `NotFoundError` naming the first missing one."""

        wanted = _unique(ids)
        records = await self._store.get_many(wanted)
        found = {r.id for r in records}
        for record_id in wanted:
            if record_id not in found:
                raise NotFoundError(f"transaction not found: {record_id}")
        return records

    async def list_by_user(
            self,
            user_id: str,
            status: TransactionStatus | None = None,
            limit: int = DEFAULT_PAGE_SIZE,
            offset: int = 0,
    ) -> list[TransactionRecord]:
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)
        return await self._store.list_by_user(user_id, status, limit, offset)

    async def latest_batch(self, user_id: str) -> list[TransactionRecord]:
        """Records created by the user's most recent command, whatever their status."""

        records = await self._store.list_by_user(user_id, None, MAX_PAGE_SIZE, 0)
        if not records:
            return []
        newest = records[0].created_at
        return [r for r in records if r.created_at == newest]

    async def _transition(
            self,
            ids: Sequence[str],
            *,
            expected: TransactionStatus,
            new: TransactionStatus,
            transaction_hash: str | None = None,
    ) -> list[TransactionRecord]:
        if not can_transition(expected, new):
            raise ValueError(f"illegal transition {expected} -> {new}")

        wanted = _unique(ids)
        if not wanted:
            raise ValidationError("transaction_ids must not be empty")

        records = await self.get_many(wanted)
        for record in records:
            if record.status != expected:
                raise ConflictError(f"transaction {record.id} is {record.status}, expected {expected}")

        now = self._clock()
        await self._store.update_status(
            wanted,
            expected=expected,
            new=new,
            transaction_hash=transaction_hash,
            confirmed_at=now if new == TransactionStatus.confirmed else None,
        )
        logger.info("transactions moved %s->%s count=%d", expected, new, len(wanted))

        return [
            record.model_copy(
                update={
                    "status": new,
                    "transaction_hash": transaction_hash or record.transaction_hash,
                    "confirmed_at": now if new == TransactionStatus.confirmed else record.confirmed_at,
                }
            )
            for record in records
        ]

    async def transition_to_confirmed(self, ids: Sequence[str]) -> list[TransactionRecord]:
        """pending -> confirmed for every id, or nothing."""

        return await self._transition(
            ids, expected=TransactionStatus.pending, new=TransactionStatus.confirmed
        )

    async def transition_to_failed(
            self,
            ids: Sequence[str],
            *,
            expected: TransactionStatus = TransactionStatus.pending,
    ) -> list[TransactionRecord]:
        """pending (or, explicitly, confirmed) -> failed for every id, or nothing."""

        return await self._transition(ids, expected=expected, new=TransactionStatus.failed)

    async def transition_to_submitted(self, record_id: str, transaction_hash: str) -> TransactionRecord:
        """confirmed -> submitted, recording the chain's extrinsic hash."""

        if not transaction_hash:
            raise ValidationError("transaction hash is required")
        (record,) = await self._transition(
            [record_id],
            expected=TransactionStatus.confirmed,
            new=TransactionStatus.submitted,
            transaction_hash=transaction_hash,
        )
        return record

    async def merge_constraints(self, record_id: str, constraints: Constraints) -> TransactionRecord:
        """Store merged execution constraints on a confirmed record."""

        record = await self.get(record_id)
        if record.status != TransactionStatus.confirmed:
            raise ConflictError("transaction not confirmed")
        parsed = record.parsed_intent.model_copy(update={"constraints": constraints})
        await self._store.update_parsed_intent(record_id, parsed)
        return record.model_copy(update={"parsed_intent": parsed})

    async def register_user(self, user_id: str) -> None:
        """Create the user row, or mark an existing user active."""

        await self._store.touch_user(user_id)

    async def record_session(self, session: VoiceSession) -> None:
        """Append a transcript/response pair to the user's voice session log."""

        await self._store.touch_user(session.user_id)
        await self._store.insert_voice_session(session)

"""Transaction record models and the status state machine."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from voicepay.intent.schema import IntentItem


class TransactionStatus(StrEnum):
    """Lifecycle states of a transaction record."""

    pending = "pending"
    confirmed = "confirmed"
    submitted = "submitted"
    failed = "failed"


ALLOWED_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.pending: frozenset({TransactionStatus.confirmed, TransactionStatus.failed}),
    TransactionStatus.confirmed: frozenset({TransactionStatus.submitted, TransactionStatus.failed}),
    TransactionStatus.submitted: frozenset(),
    TransactionStatus.failed: frozenset(),
}


def can_transition(current: TransactionStatus, target: TransactionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class Constraints(BaseModel):
    """Cross-chain execution constraints recorded for audit."""

    model_config = ConfigDict(extra="forbid")

    min_receive: str | None = None
    slippage_bps: int | None = None
    token: str
    chain: str


class ParsedIntent(IntentItem):
    """The persisted intent item, plus constraints once an execution has been attempted."""

    constraints: Constraints | None = None

    def as_item(self) -> IntentItem:
        return IntentItem.model_validate(self.model_dump(exclude={"constraints"}))


class TransactionRecord(BaseModel):
    """One transfer, from voice command to submitted extrinsic."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    voice_command: str
    parsed_intent: ParsedIntent
    recipient_address: str
    amount: str
    token_symbol: str
    transaction_hash: str | None = None
    status: TransactionStatus = TransactionStatus.pending
    created_at: datetime
    confirmed_at: datetime | None = None


class VoiceSession(BaseModel):
    """Audit row for one voice exchange (command or confirmation)."""

    id: str
    user_id: str
    transcription: str
    response_text: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

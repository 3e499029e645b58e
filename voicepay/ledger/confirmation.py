"""Confirm-before-execute gate.

A follow-up utterance is classified lexically:

    - negative words ("no", "cancel", "stop", ...)  -> cancelled
    - affirmative words ("yes", "confirm", ...)     -> confirmed
    - a bare "1" / "0"                              -> weak confirmed / cancelled
    - anything else                                 -> clarification (no state change)

Negative words win over affirmative ones so "no, don't confirm" cancels. Batches are
all-or-nothing: every referenced transaction must be pending before anything is written.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from voicepay.errors import ConflictError, NotFoundError, ValidationError
from voicepay.intent.dictionaries import (
    WEAK_AFFIRMATIVE,
    WEAK_NEGATIVE,
    has_affirmative,
    has_negative,
)
from voicepay.intent.normalize import normalize_text
from voicepay.ledger.ledger import TransactionLedger
from voicepay.ledger.models import TransactionStatus

logger = logging.getLogger(__name__)

Decision = Literal["confirmed", "cancelled", "clarification"]

_MESSAGES: dict[Decision, str] = {
    "confirmed": "Transaction confirmed, ready for execution.",
    "cancelled": "Transaction cancelled.",
    "clarification": "Sorry, I did not catch that. Say confirm to proceed or cancel to abort.",
}


@dataclass(frozen=True)
class ConfirmationResult:
    """Outcome of one confirmation attempt."""

    status: Decision
    transaction_ids: list[str]
    message: str


def classify_reply(text: str) -> Decision:
    """Classify a follow-up utterance without touching any state."""

    value = normalize_text(text)
    if not value:
        return "clarification"
    if value == WEAK_AFFIRMATIVE:
        return "confirmed"
    if value == WEAK_NEGATIVE:
        return "cancelled"
    if has_negative(value):
        return "cancelled"
    if has_affirmative(value):
        return "confirmed"
    return "clarification"


class ConfirmationGate:
    """Drives pending transactions to confirmed or failed from a spoken reply."""

    def __init__(self, ledger: TransactionLedger) -> None:
        self._ledger = ledger

    async def confirm(
            self,
            utterance: str,
            transaction_ids: Sequence[str],
            *,
            user_id: str | None = None,
    ) -> ConfirmationResult:
        """Apply the reply to every referenced transaction, or to none of them.

        Raises:
            ValidationError: If no transaction ids are given.
            NotFoundError: If an id is unknown or belongs to another user.
            ConflictError: If any referenced transaction is not pending.
        """

        ids = list(dict.fromkeys(transaction_ids))
        if not ids:
            raise ValidationError("transaction_ids must not be empty")

        records = await self._ledger.get_many(ids)
        for record in records:
            if user_id is not None and record.user_id != user_id:
                raise NotFoundError(f"transaction not found: {record.id}")
            if record.status != TransactionStatus.pending:
                raise ConflictError(f"transaction {record.id} is not pending")

        decision = classify_reply(utterance)
        if decision == "confirmed":
            await self._ledger.transition_to_confirmed(ids)
        elif decision == "cancelled":
            await self._ledger.transition_to_failed(ids)

        logger.info("confirmation decision=%s count=%d", decision, len(ids))
        return ConfirmationResult(status=decision, transaction_ids=ids, message=_MESSAGES[decision])

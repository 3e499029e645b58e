"""Execution router: the last step between a confirmed record and the chain.

The client signs the call it got from the builder and hands the signed extrinsic back here. The
router re-checks the record state and the cross-chain constraints, submits through the origin
chain's client and records the resulting hash. A failed submission leaves the record `confirmed`
so the client can retry.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from voicepay.chain.builder import is_cross_chain
from voicepay.chain.registry import ChainRegistry, is_known_chain
from voicepay.errors import ConflictError, UpstreamError, ValidationError
from voicepay.execution.safety import ExecutionConstraints, check_token_matches, validate_cross_chain
from voicepay.ledger.ledger import TransactionLedger
from voicepay.ledger.models import TransactionRecord, TransactionStatus

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^(?:0x)?[0-9a-fA-F]+$")


@dataclass(frozen=True)
class ExecuteRequest:
    """A signed extrinsic for a confirmed transaction."""

    transaction_id: str
    signed_extrinsic: str
    chain: str | None = None
    constraints: ExecutionConstraints = field(default_factory=ExecutionConstraints)


class ExecutionRouter:
    """Validates and submits pre-signed extrinsics."""

    def __init__(self, ledger: TransactionLedger, registry: ChainRegistry) -> None:
        self._ledger = ledger
        self._registry = registry

    async def execute(self, request: ExecuteRequest) -> TransactionRecord:
        """Submit the extrinsic and mark the record `submitted`.

        Raises:
            ValidationError: Malformed extrinsic, unknown chain or failed safety check.
            NotFoundError: Unknown transaction id.
            ConflictError: Record not `confirmed` or constraints weakened.
            UpstreamError: The node rejected or did not answer the submission.
        """

        if not _HEX_RE.fullmatch(request.signed_extrinsic.strip()):
            raise ValidationError("signed_extrinsic must be hex encoded")

        record = await self._ledger.get(request.transaction_id)
        if record.status != TransactionStatus.confirmed:
            raise ConflictError("transaction not confirmed")

        item = record.parsed_intent.as_item()
        chain = request.chain or item.origin_chain
        if not is_known_chain(chain):
            raise ValidationError(f"unknown chain: {chain}")

        if is_cross_chain(item):
            constraints = validate_cross_chain(record, request.constraints, chain=chain)
            record = await self._ledger.merge_constraints(record.id, constraints)
        else:
            check_token_matches(request.constraints.token, record.token_symbol)

        client = await self._registry.client_for(chain)
        try:
            tx_hash = await client.submit_extrinsic(request.signed_extrinsic.strip())
        except UpstreamError:
            logger.warning("submission failed id=%s chain=%s; record stays confirmed", record.id, chain)
            raise

        submitted = await self._ledger.transition_to_submitted(record.id, tx_hash)
        logger.info("transaction submitted id=%s chain=%s hash=%s", record.id, chain, tx_hash)
        return submitted

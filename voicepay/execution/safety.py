"""Cross-chain safety validator.

Runs at execute time for transfers whose origin and destination chains differ, before anything is
sent to a node. Checks run in a fixed order and the first failure aborts execution:

    1. a previously recorded `min_receive` may only be repeated or raised, never dropped/lowered;
    2. `min_receive` may not exceed the transfer amount;
    3. `slippage_bps` must lie in [0, 10000];
    4. the request token, if given, must match the recorded token.

All amount comparisons happen in smallest units of the recorded token.
"""

from __future__ import annotations

from dataclasses import dataclass

from voicepay.chain.tokens import TokenInfo, require_token
from voicepay.chain.units import decimal_to_units, units_to_decimal
from voicepay.errors import ConflictError, ValidationError
from voicepay.ledger.models import Constraints, TransactionRecord

MAX_SLIPPAGE_BPS = 10_000


@dataclass(frozen=True)
class ExecutionConstraints:
    """Constraints supplied with an execute (or build) request."""

    token: str | None = None
    min_receive: str | None = None
    slippage_bps: int | None = None


def min_receive_units(value: str, token: TokenInfo) -> int:
    try:
        return decimal_to_units(value, token.decimals)
    except ValueError as exc:
        raise ValidationError(f"invalid min_receive: {value}") from exc


def check_min_receive_within_amount(min_units: int, amount_units: int) -> None:
    if min_units > amount_units:
        raise ValidationError("min_receive exceeds transfer amount")


def check_slippage_bps(slippage_bps: int | None) -> None:
    if slippage_bps is not None and not 0 <= slippage_bps <= MAX_SLIPPAGE_BPS:
        raise ValidationError("invalid slippage_bps")


def check_token_matches(requested: str | None, recorded: str) -> None:
    if requested is not None and requested.strip().upper() != recorded.upper():
        raise ConflictError("token does not match prepared transaction")


def validate_cross_chain(
        record: TransactionRecord,
        requested: ExecutionConstraints,
        *,
        chain: str,
) -> Constraints:
    """Run the checks and return the constraints merged over what is already recorded.

    Raises:
        ConflictError: When `min_receive` would be weakened or the token does not match.
        ValidationError: When `min_receive` exceeds the amount or `slippage_bps` is out of range.
    """

    token = require_token(record.token_symbol)
    prior = record.parsed_intent.constraints
    new_min = (
        min_receive_units(requested.min_receive, token) if requested.min_receive is not None else None
    )

    if prior is not None and prior.min_receive is not None:
        prior_min = min_receive_units(prior.min_receive, token)
        if new_min is None or new_min < prior_min:
            raise ConflictError("min_receive weaker than previously set")

    if new_min is not None:
        check_min_receive_within_amount(new_min, decimal_to_units(record.amount, token.decimals))

    check_slippage_bps(requested.slippage_bps)
    check_token_matches(requested.token, record.token_symbol)

    merged = prior.model_dump() if prior is not None else {}
    if new_min is not None:
        merged["min_receive"] = units_to_decimal(new_min, token.decimals)
    if requested.slippage_bps is not None:
        merged["slippage_bps"] = requested.slippage_bps
    merged["token"] = token.symbol
    merged["chain"] = chain
    return Constraints.model_validate(merged)

"""Tests for the cross-chain safety validator."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from voicepay.errors import ConflictError, ValidationError
from voicepay.execution.safety import ExecutionConstraints, validate_cross_chain
from voicepay.ledger.models import Constraints, ParsedIntent, TransactionRecord, TransactionStatus

ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"


def _record(constraints: Constraints | None = None, amount: str = "10") -> TransactionRecord:
    parsed = ParsedIntent(
        amount=amount,
        token="DOT",
        recipient=ALICE,
        origin_chain="polkadot",
        destination_chain="asset-hub-polkadot",
        constraints=constraints,
    )
    return TransactionRecord(
        id="tx-1",
        user_id="user-1",
        voice_command="cmd",
        parsed_intent=parsed,
        recipient_address=ALICE,
        amount=amount,
        token_symbol="DOT",
        status=TransactionStatus.confirmed,
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


def test_first_constraints_are_recorded_canonically() -> None:
    merged = validate_cross_chain(
        _record(),
        ExecutionConstraints(token="dot", min_receive="9.50", slippage_bps=50),
        chain="polkadot",
    )

    assert merged == Constraints(min_receive="9.5", slippage_bps=50, token="DOT", chain="polkadot")


def test_min_receive_may_be_repeated_or_raised() -> None:
    prior = Constraints(min_receive="9.5", token="DOT", chain="polkadot")

    same = validate_cross_chain(_record(prior), ExecutionConstraints(min_receive="9.5"), chain="polkadot")
    higher = validate_cross_chain(_record(prior), ExecutionConstraints(min_receive="9.8"), chain="polkadot")

    assert same.min_receive == "9.5"
    assert higher.min_receive == "9.8"


@pytest.mark.parametrize("requested", [ExecutionConstraints(min_receive="9.0"), ExecutionConstraints()])
def test_min_receive_may_not_be_weakened_or_dropped(requested: ExecutionConstraints) -> None:
    prior = Constraints(min_receive="9.5", token="DOT", chain="polkadot")

    with pytest.raises(ConflictError, match="weaker"):
        validate_cross_chain(_record(prior), requested, chain="polkadot")


def test_min_receive_above_amount_is_rejected() -> None:
    with pytest.raises(ValidationError, match="exceeds"):
        validate_cross_chain(_record(), ExecutionConstraints(min_receive="10.1"), chain="polkadot")


@pytest.mark.parametrize("slippage", [-1, 15_000])
def test_slippage_out_of_range_is_rejected(slippage: int) -> None:
    with pytest.raises(ValidationError, match="slippage"):
        validate_cross_chain(_record(), ExecutionConstraints(slippage_bps=slippage), chain="polkadot")


def test_slippage_bounds_are_inclusive() -> None:
    for slippage in (0, 500, 10_000):
        merged = validate_cross_chain(_record(), ExecutionConstraints(slippage_bps=slippage), chain="polkadot")
        assert merged.slippage_bps == slippage


def test_token_mismatch_is_a_conflict() -> None:
    with pytest.raises(ConflictError, match="token"):
        validate_cross_chain(_record(), ExecutionConstraints(token="USDT"), chain="polkadot")


def test_checks_run_in_order() -> None:
    prior = Constraints(min_receive="9.5", token="DOT", chain="polkadot")

    # Weakened min_receive is reported before the out-of-range slippage and the token mismatch.
    with pytest.raises(ConflictError, match="weaker"):
        validate_cross_chain(
            _record(prior),
            ExecutionConstraints(token="USDT", min_receive="1", slippage_bps=15_000),
            chain="polkadot",
        )
    with pytest.raises(ValidationError, match="slippage"):
        validate_cross_chain(
            _record(), ExecutionConstraints(token="USDT", slippage_bps=15_000), chain="polkadot"
        )

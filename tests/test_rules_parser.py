"""Tests for the deterministic rules-based payment command parser."""

from __future__ import annotations

import pytest

from voicepay.intent.rules_parser import RulesParserError, parse_intent

ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
BOB = "5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty"
EVM_ACCOUNT = "0x6be02d1d3665660d22ff9624b7be0551ee1ac91b"


def test_simple_transfer() -> None:
    intent = parse_intent(f"Pay 10 DOT to {ALICE}")

    assert intent.type == "single"
    (item,) = intent.items
    assert item.amount == "10"
    assert item.token == "DOT"
    assert item.recipient == ALICE


def test_trailing_punctuation_is_not_part_of_the_recipient() -> None:
    intent = parse_intent(f"Send 1.5 DOT to {ALICE}.")
    assert intent.items[0].recipient == ALICE


def test_missing_token_uses_service_defaults() -> None:
    intent = parse_intent(f"send 3 to {ALICE}", default_token="DOT", default_chain="polkadot")

    (item,) = intent.items
    assert item.token == "DOT"
    assert item.origin_chain == "polkadot"
    assert item.destination_chain == "polkadot"


def test_spoken_token_without_chain_leaves_chains_open() -> None:
    (item,) = parse_intent(f"pay 5 usdt to {BOB}").items

    assert item.token == "USDT"
    assert item.origin_chain == ""
    assert item.destination_chain == ""


def test_from_and_to_chains_are_read_after_the_recipient() -> None:
    text = f"transfer 2 DOT to {EVM_ACCOUNT} from polkadot to moonbeam"
    (item,) = parse_intent(text).items

    assert item.origin_chain == "polkadot"
    assert item.destination_chain == "moonbeam"


def test_on_chain_sets_both_sides() -> None:
    (item,) = parse_intent(f"send 5 USDT to {BOB} on polkadot asset hub").items

    assert item.origin_chain == "asset-hub-polkadot"
    assert item.destination_chain == "asset-hub-polkadot"


def test_several_clauses_make_a_batch() -> None:
    intent = parse_intent(f"pay 10 DOT to {ALICE} and send 5 USDT to {BOB}")

    assert intent.type == "batch"
    assert [(i.amount, i.token, i.recipient) for i in intent.items] == [
        ("10", "DOT", ALICE),
        ("5", "USDT", BOB),
    ]


def test_spanish_command() -> None:
    intent = parse_intent(f"envía 2,5 DOT a {ALICE}", language="es")

    assert intent.language == "es"
    assert intent.items[0].amount == "2.5"


def test_unrecognized_command_raises() -> None:
    with pytest.raises(RulesParserError):
        parse_intent("what is my balance?")


@pytest.mark.parametrize(
    ("spoken", "amount"),
    [("1,000", "1000"), ("12,345.5", "12345.5"), ("1,5", "1.5"), ("0,125", "0.125")],
)
def test_grouped_thousands_and_decimal_commas(spoken: str, amount: str) -> None:
    (item,) = parse_intent(f"send {spoken} DOT to {ALICE}").items
    assert item.amount == amount


def test_batch_continues_without_repeating_the_verb() -> None:
    intent = parse_intent(f"send 1 DOT to {ALICE} and 2 DOT to {BOB}")

    assert intent.type == "batch"
    assert [(i.amount, i.recipient) for i in intent.items] == [("1", ALICE), ("2", BOB)]


def test_batch_clauses_separated_by_punctuation_keep_their_chains() -> None:
    text = f"transfer 1 DOT to {ALICE} on polkadot; 3 USDT to {BOB} on asset hub, 4 DOT to {ALICE}"
    items = parse_intent(text).items

    assert [(i.amount, i.token, i.recipient) for i in items] == [
        ("1", "DOT", ALICE),
        ("3", "USDT", BOB),
        ("4", "DOT", ALICE),
    ]
    assert items[0].origin_chain == "polkadot"
    assert items[1].origin_chain == "asset-hub-polkadot"


def test_transfer_shaped_text_before_any_verb_is_not_a_command() -> None:
    with pytest.raises(RulesParserError):
        parse_intent(f"hello, 2 DOT to {ALICE}")

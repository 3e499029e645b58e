"""Tests for the LLM transfer drafter with the HTTP call replaced by a canned response."""

from __future__ import annotations

import io
import json
from typing import Any

import pytest

from voicepay.intent.llm_parser import (
    LLMConfig,
    LLMParserError,
    check_transfer_draft,
    parse_intent_json_via_llm,
)

ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
CONFIG = LLMConfig(api_key="test")


def _transfer(amount: str = "1") -> dict[str, Any]:
    return {"amount": amount, "token": "DOT", "recipient": ALICE}


def _reply_with(monkeypatch: pytest.MonkeyPatch, content: Any) -> list[dict[str, Any]]:
    sent: list[dict[str, Any]] = []

    def _fake_urlopen(req, timeout):
        sent.append(json.loads(req.data))
        body = {"choices": [{"message": {"content": content}}]}
        return io.BytesIO(json.dumps(body).encode())

    monkeypatch.setattr("voicepay.intent.llm_parser.urlopen", _fake_urlopen)
    return sent


def test_command_is_sent_with_catalog_and_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    sent = _reply_with(monkeypatch, json.dumps({"type": "single", "items": [_transfer()]}))

    parse_intent_json_via_llm(
        f"paga 1 a {ALICE}",
        config=CONFIG,
        language="es",
        default_token="USDT",
        default_chain="asset-hub-polkadot",
    )

    (request,) = sent
    assert request["response_format"] == {"type": "json_object"}
    user_turn = request["messages"][1]["content"]
    assert "[language: es]" in user_turn
    assert "GLMR on moonbeam" in user_turn
    assert "[when no token is said: USDT on asset-hub-polkadot]" in user_turn
    assert user_turn.endswith(f"paga 1 a {ALICE}")


def test_fenced_json_is_accepted(monkeypatch: pytest.MonkeyPatch) -> None:
    draft = {"type": "batch", "items": [_transfer("1"), _transfer("2")]}
    _reply_with(monkeypatch, "```json\n" + json.dumps(draft) + "\n```")

    assert parse_intent_json_via_llm("pay twice", config=CONFIG) == draft


def test_non_payment_reply_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    _reply_with(monkeypatch, json.dumps({"type": "single", "items": []}))

    with pytest.raises(LLMParserError, match="no transfers"):
        parse_intent_json_via_llm("what is the weather", config=CONFIG)


def test_single_payment_with_several_transfers_is_rejected() -> None:
    with pytest.raises(LLMParserError, match="2 transfers for a single payment"):
        check_transfer_draft({"type": "single", "items": [_transfer(), _transfer()]})


def test_non_object_transfer_is_named_by_position() -> None:
    with pytest.raises(LLMParserError, match="transfer 2 of 2"):
        check_transfer_draft({"type": "batch", "items": [_transfer(), "send 2 DOT"]})


def test_one_item_batch_reads_back_as_single() -> None:
    draft = check_transfer_draft({"type": "batch", "items": [_transfer()]})
    assert draft["type"] == "single"

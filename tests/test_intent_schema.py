"""Tests for the strict Intent Pydantic schema and its invariants."""

from __future__ import annotations

import pytest

from voicepay.intent.schema import Intent, IntentItem, intent_from_obj

ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"


def _item(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {"amount": "10", "token": "DOT", "recipient": ALICE}
    data.update(overrides)
    return data


def test_numeric_amounts_are_kept_as_decimal_strings() -> None:
    assert IntentItem.model_validate(_item(amount=10)).amount == "10"
    assert IntentItem.model_validate(_item(amount=0.1)).amount == "0.1"
    assert IntentItem.model_validate(_item(amount="2,5")).amount == "2.5"


@pytest.mark.parametrize("amount", ["-1", "ten", "1e5", True])
def test_invalid_amounts_are_rejected(amount: object) -> None:
    with pytest.raises(ValueError):
        IntentItem.model_validate(_item(amount=amount))


def test_unknown_fields_are_forbidden() -> None:
    with pytest.raises(ValueError):
        IntentItem.model_validate(_item(memo="rent"))


def test_single_intent_requires_exactly_one_item() -> None:
    with pytest.raises(ValueError):
        Intent(type="single", items=[IntentItem(**_item()), IntentItem(**_item(amount="5"))])


def test_intent_requires_items() -> None:
    with pytest.raises(ValueError):
        intent_from_obj({"type": "batch", "items": []})


def test_batch_intent_from_json_object() -> None:
    intent = intent_from_obj(
        {
            "type": "batch",
            "language": "es",
            "items": [_item(), _item(token="USDT", amount="5.25")],
        }
    )

    assert intent.type == "batch"
    assert [i.token for i in intent.items] == ["DOT", "USDT"]
    assert intent.items[0].action == "transfer"

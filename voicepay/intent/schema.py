"""Intent JSON schema (Pydantic models).

This schema is the contract between the NL parsers (rules/LLM) and the rest of the pipeline. Output
of the NLP collaborator is untrusted: it must validate against these models before any field is
used, otherwise the parser falls back to the deterministic rules.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from voicepay.chain.units import canonical_amount

_AMOUNT_RE = re.compile(r"^\d+(?:\.\d+)?$")


class IntentItem(BaseModel):
    """One requested transfer."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    action: Literal["transfer"] = "transfer"
    amount: str
    token: str = Field(min_length=1)
    recipient: str = Field(min_length=1)
    origin_chain: str = ""
    destination_chain: str = ""

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, value: Any) -> Any:
        """Accept numeric JSON amounts and `,` separators, keep everything as a string."""

        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            return format(Decimal(str(value)), "f")
        if isinstance(value, str):
            return canonical_amount(value)
        return value

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, value: str) -> str:
        """Validate that the amount is a non-negative decimal string."""

        if not _AMOUNT_RE.fullmatch(value):
            raise ValueError("amount must be a non-negative decimal string")
        return value


class Intent(BaseModel):
    """A fully validated payment intent (one or more transfers)."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    type: Literal["single", "batch"] = "single"
    language: str = "en"
    items: list[IntentItem] = Field(min_length=1)
    schedule: str | None = None
    condition: str | None = None

    @model_validator(mode="after")
    def validate_item_count(self) -> Intent:
        """A `single` intent carries exactly one item."""

        if self.type == "single" and len(self.items) != 1:
            raise ValueError("type=single requires exactly one item")
        return self


def intent_from_obj(obj: Any) -> Intent:
    """Validate and parse an Intent from an arbitrary decoded JSON object."""

    return Intent.model_validate(obj)

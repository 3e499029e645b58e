"""Text and intent normalization.

`normalize_text` prepares free text for word-list matching. `normalize_intent` turns a structurally
valid `Intent` into one the rest of the pipeline can rely on: canonical token symbols and chain
names, amounts within token precision, and recipients in the destination chain's address format.
"""

from __future__ import annotations

import re

from voicepay.chain.address import is_valid_address
from voicepay.chain.registry import get_chain_info, is_known_chain
from voicepay.chain.tokens import TokenInfo, require_token
from voicepay.chain.units import is_valid_amount
from voicepay.errors import ValidationError
from voicepay.intent.dictionaries import find_chain
from voicepay.intent.schema import Intent, IntentItem

_NON_WORD_RE = re.compile(r"[^\w'\-\s]+")
_MULTISPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Normalize user text for word-list matching.

    Normalization is intentionally conservative:
        - Lowercase.
        - Normalize typographic apostrophes and dashes.
        - Replace punctuation with spaces.
        - Collapse whitespace.
    """

    value = (text or "").strip().lower()
    value = value.replace("’", "'").replace("—", "-").replace("–", "-")
    value = _NON_WORD_RE.sub(" ", value)
    value = _MULTISPACE_RE.sub(" ", value).strip()
    return value


def normalize_chain(raw: str, token: TokenInfo) -> str:
    """Canonicalize a chain name, falling back to the token's home chain when ambiguous."""

    value = normalize_text(raw)
    if is_known_chain(value):
        return value
    return find_chain(value) or token.chain


def normalize_item(item: IntentItem) -> IntentItem:
    """Normalize and validate a single transfer item."""

    token = require_token(item.token)
    origin = normalize_chain(item.origin_chain, token)
    destination = normalize_chain(item.destination_chain or item.origin_chain, token)

    if not is_valid_amount(item.amount, token.decimals):
        raise ValidationError(f"invalid amount: {item.amount}")

    if not is_valid_address(item.recipient, get_chain_info(destination).address_format):
        raise ValidationError(f"invalid recipient address: {item.recipient}")

    return item.model_copy(
        update={
            "token": token.symbol,
            "origin_chain": origin,
            "destination_chain": destination,
        }
    )


def normalize_intent(intent: Intent) -> Intent:
    """Normalize every item; a single invalid item fails the whole intent."""

    items = [normalize_item(item) for item in intent.items]
    return intent.model_copy(update={"items": items})

"""Rules-based payment command parser (fallback).

This parser is intentionally strict and deterministic:
    - it only recognizes "<verb> AMOUNT [TOKEN] to RECIPIENT [from CHAIN] [to|on CHAIN]" clauses,
    - several clauses in one utterance become a batch intent,
    - it produces an Intent validated by the Pydantic schema (normalization happens later).
"""

from __future__ import annotations

import re

from voicepay.chain.registry import ChainName
from voicepay.intent.dictionaries import (
    BATCH_CONJUNCTIONS,
    CHAIN_ALIASES,
    PAYMENT_VERBS,
    RECIPIENT_PREPOSITIONS,
)
from voicepay.intent.normalize import normalize_text
from voicepay.intent.schema import Intent, IntentItem


class RulesParserError(ValueError):
    """Raised when the rules parser cannot produce a valid intent."""


def _alternation(words: tuple[str, ...]) -> str:
    return "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))


_VERBS = _alternation(PAYMENT_VERBS)
_PREPS = _alternation(RECIPIENT_PREPOSITIONS)
_JOINERS = _alternation(BATCH_CONJUNCTIONS)

_AMOUNT = r"[1-9]\d{0,2}(?:,\d{3})+(?:\.\d+)?|\d+(?:[.,]\d+)?"

# A clause opens with a payment verb, or continues a batch after a conjunction, ";" or ","
# where the verb may be left out ("send 1 DOT to A and 2 DOT to B").
_CLAUSE_RE = re.compile(
    rf"(?:\b(?P<verb>{_VERBS})\s+|(?:\b(?:{_JOINERS})\s+|[;,]\s*)(?:(?P<again>{_VERBS})\s+)?)"
    rf"(?P<amount>{_AMOUNT})\s*"
    rf"(?:(?P<token>(?!(?:{_PREPS})\b)[a-z]{{2,6}})\s+)?"
    rf"(?:{_PREPS})\s+"
    r"(?P<recipient>[^\s;,]+)",
    flags=re.IGNORECASE,
)

_TRAILING_PUNCT = ".,;:!?)\"'"


def _chain_after(text: str, keywords: tuple[str, ...]) -> ChainName | None:
    padded = f" {text} "
    for alias in CHAIN_ALIASES:
        for keyword in keywords:
            if f" {keyword} {alias.phrase} " in padded or f" {keyword} the {alias.phrase} " in padded:
                return alias.chain
    return None


def _leading_clauses(text: str) -> list[re.Match[str]]:
    matches = list(_CLAUSE_RE.finditer(text))
    first = next((i for i, m in enumerate(matches) if m.group("verb") or m.group("again")), None)
    return [] if first is None else matches[first:]


def has_transfer_clause(text: str) -> bool:
    """Whether the text contains at least one "<verb> AMOUNT ... to RECIPIENT" clause."""

    return bool(_leading_clauses((text or "").strip()))


def _item_from_clause(
        match: re.Match[str],
        tail: str,
        *,
        default_token: str,
        default_chain: str,
) -> IntentItem:
    token = match.group("token")
    recipient = match.group("recipient").rstrip(_TRAILING_PUNCT)

    tail_text = normalize_text(tail)
    on_chain = _chain_after(tail_text, ("on", "via", "over"))
    origin = _chain_after(tail_text, ("from",)) or on_chain
    destination = _chain_after(tail_text, ("to", "into")) or on_chain

    if token is None:
        # Nothing said about the asset: the service defaults decide token and chains.
        token = default_token
        origin = origin or default_chain
        destination = destination or origin

    return IntentItem(
        action="transfer",
        amount=match.group("amount"),
        token=token.upper(),
        recipient=recipient,
        origin_chain=origin or "",
        destination_chain=destination or "",
    )


def parse_intent(
        text: str,
        *,
        default_token: str = "DOT",
        default_chain: str = "polkadot",
        language: str = "en",
) -> Intent:
    """Parse a payment command into an Intent object.

    Raises:
        RulesParserError: If no transfer clause is recognized.
    """

    value = (text or "").strip()
    matches = _leading_clauses(value)
    if not matches:
        raise RulesParserError("unsupported command")

    items: list[IntentItem] = []
    for idx, match in enumerate(matches):
        tail_end = matches[idx + 1].start() if idx + 1 < len(matches) else len(value)
        tail = value[match.end():tail_end]
        items.append(
            _item_from_clause(
                match,
                tail,
                default_token=default_token,
                default_chain=default_chain,
            )
        )

    return Intent(
        type="batch" if len(items) > 1 else "single",
        language=language,
        items=items,
    )

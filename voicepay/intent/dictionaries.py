"""Word lists for chains, payment verbs and confirmation replies.

These mappings are used by the rules-based parser and the confirmation gate and should remain small
and deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass

from voicepay.chain.registry import ChainName

CHAIN_SYNONYMS: dict[ChainName, tuple[str, ...]] = {
    "polkadot": ("polkadot", "relay chain", "relay", "dot chain", "polkadot relay"),
    "asset-hub-polkadot": (
        "asset-hub-polkadot",
        "polkadot asset hub",
        "asset hub",
        "assethub",
        "asset-hub",
        "statemint",
    ),
    "moonbeam": ("moonbeam", "glmr chain"),
}


@dataclass(frozen=True)
class ChainAlias:
    """A concrete phrase matched to a canonical chain name."""

    chain: ChainName
    phrase: str


# Longest phrases first so "polkadot asset hub" beats "polkadot".
CHAIN_ALIASES: list[ChainAlias] = sorted(
    (ChainAlias(chain=chain, phrase=phrase) for chain, phrases in CHAIN_SYNONYMS.items() for phrase in phrases),
    key=lambda a: (-len(a.phrase), a.phrase),
)

PAYMENT_VERBS: tuple[str, ...] = (
    "pay", "send", "transfer", "give",
    "paga", "pagar", "envia", "envía", "enviar", "transfiere",
    "paie", "payer", "envoie", "envoyer", "transfère",
    "zahle", "sende", "überweise",
)

RECIPIENT_PREPOSITIONS: tuple[str, ...] = ("to", "for", "a", "à", "para", "an", "pour")

BATCH_CONJUNCTIONS: tuple[str, ...] = ("and then", "and", "then", "y", "et", "und")

AFFIRMATIVE_TERMS: tuple[str, ...] = (
    "yes", "yeah", "yep", "yup", "sure", "ok", "okay", "correct", "right",
    "confirm", "confirmed", "proceed", "approve", "go ahead", "do it",
    "sí", "si", "oui", "ja", "confirmar", "confirmer", "bestätigen",
)

NEGATIVE_TERMS: tuple[str, ...] = (
    "no", "nope", "nah", "cancel", "cancelled", "stop", "abort", "wrong", "incorrect",
    "don't", "dont", "do not", "reject",
    "non", "nein", "cancelar", "annuler", "abbrechen",
)

WEAK_AFFIRMATIVE = "1"
WEAK_NEGATIVE = "0"


def _contains_phrase(text: str, phrase: str) -> bool:
    return f" {phrase} " in f" {text} "


def find_chain(text: str) -> ChainName | None:
    """Return the first chain whose alias appears in normalized text."""

    for alias in CHAIN_ALIASES:
        if _contains_phrase(text, alias.phrase):
            return alias.chain
    return None


def has_affirmative(text: str) -> bool:
    return any(_contains_phrase(text, term) for term in AFFIRMATIVE_TERMS)


def has_negative(text: str) -> bool:
    return any(_contains_phrase(text, term) for term in NEGATIVE_TERMS)

"""Intent extraction orchestration (LLM optional; rules-based fallback)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from voicepay.errors import ValidationError
from voicepay.intent.llm_parser import LLMParserError, llm_config_from_env, parse_intent_json_via_llm
from voicepay.intent.normalize import normalize_intent
from voicepay.intent.rules_parser import RulesParserError
from voicepay.intent.rules_parser import parse_intent as parse_rules_intent
from voicepay.intent.schema import Intent, intent_from_obj

logger = logging.getLogger(__name__)


class IntentParserError(ValidationError):
    """Raised when no parser can produce a valid intent."""


ParseSource = Literal["llm", "rules"]


@dataclass(frozen=True)
class ParseResult:
    """Validated, normalized intent plus information about which parser produced it."""

    intent: Intent
    source: ParseSource


def parse_intent_with_source(
        text: str,
        *,
        llm_enabled: bool,
        llm_api_key: str | None = None,
        default_token: str = "DOT",
        default_chain: str = "polkadot",
        language: str = "en",
) -> ParseResult:
    """Parse a transcript into a normalized Intent object.

    Strategy:
        1) If LLM mode is enabled, ask the LLM to produce strict Intent JSON and validate it.
        2) On any LLM failure or schema mismatch, fall back to the deterministic rules parser.
        3) If rules parsing fails too, raise `IntentParserError`.
        4) Normalize the winning intent. Normalization errors (unsupported token, invalid
           recipient, amount precision) fail the whole extraction.
    """

    if not (text or "").strip():
        raise IntentParserError("empty command")

    if llm_enabled:
        try:
            cfg = llm_config_from_env(api_key=llm_api_key)
            obj: dict[str, Any] = parse_intent_json_via_llm(
                text,
                config=cfg,
                language=language,
                default_token=default_token,
                default_chain=default_chain,
            )
            intent = intent_from_obj(obj)
            return ParseResult(intent=normalize_intent(intent), source="llm")
        except (LLMParserError, ValueError) as exc:
            # Invalid LLM output must never crash the pipeline; fall back to rules.
            logger.info("llm intent rejected, using rules reason=%s", exc.__class__.__name__)

    try:
        intent = parse_rules_intent(
            text,
            default_token=default_token,
            default_chain=default_chain,
            language=language,
        )
    except RulesParserError as exc:
        raise IntentParserError(str(exc)) from exc

    return ParseResult(intent=normalize_intent(intent), source="rules")


def parse_intent(text: str, *, llm_enabled: bool, llm_api_key: str | None = None) -> Intent:
    """Parse text into a validated Intent object (convenience wrapper)."""

    return parse_intent_with_source(text, llm_enabled=llm_enabled, llm_api_key=llm_api_key).intent

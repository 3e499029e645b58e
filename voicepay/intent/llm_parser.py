"""Optional LLM-based payment intent drafter (feature-flagged).

The LLM is only allowed to draft **Intent JSON** for transfers between the supported tokens and
chains. Its output is untrusted: this module only checks that a list of transfer objects came
back; the schema and normalization decide whether any of it is usable.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from voicepay.chain.tokens import TOKENS


class LLMParserError(RuntimeError):
    """Raised when the LLM does not return a usable transfer draft."""


@dataclass(frozen=True)
class LLMConfig:
    """Configuration for the OpenAI-style Chat Completions API call."""

    api_key: str
    model: str = "gpt-4o-mini"
    api_base: str = "https://api.openai.com/v1"
    timeout_s: float = 30.0


def _load_prompt() -> str:
    prompt_path = Path(__file__).resolve().parent / "prompt_intent_v1.md"
    return prompt_path.read_text(encoding="utf-8")


def _strip_code_fences(text: str) -> str:
    value = (text or "").strip()
    if value.startswith("```"):
        value = value.strip("`")
        value = value.removeprefix("json").strip()
    return value


def _chat_completions_url(api_base: str) -> str:
    return api_base.rstrip("/") + "/chat/completions"


def command_message(text: str, *, language: str, default_token: str, default_chain: str) -> str:
    """User turn sent to the LLM: catalog and service defaults, then the spoken command."""

    catalog = ", ".join(f"{t.symbol} on {t.chain}" for t in TOKENS.values())
    return (
        f"[language: {language}]\n"
        f"[supported tokens: {catalog}]\n"
        f"[when no token is said: {default_token} on {default_chain}]\n"
        f"{text}"
    )


def check_transfer_draft(obj: Any) -> dict[str, Any]:
    """Reject drafts that are not a list of transfer objects matching their declared type."""

    if not isinstance(obj, dict):
        raise LLMParserError("LLM JSON is not an object")

    items = obj.get("items")
    if not isinstance(items, list) or not items:
        raise LLMParserError("LLM draft has no transfers")
    for idx, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise LLMParserError(f"LLM transfer {idx} of {len(items)} is not an object")

    kind = obj.get("type", "single")
    if kind == "single" and len(items) > 1:
        raise LLMParserError(f"LLM returned {len(items)} transfers for a single payment")
    if kind == "batch" and len(items) == 1:
        # A one-item batch is a single payment; read it back as one.
        obj = {**obj, "type": "single"}
    return obj


def parse_intent_json_via_llm(
        user_text: str,
        *,
        config: LLMConfig,
        language: str = "en",
        default_token: str = "DOT",
        default_chain: str = "polkadot",
) -> dict[str, Any]:
    """Call an LLM and return the drafted transfer JSON.

    The call is compatible with OpenAI-style `/v1/chat/completions` APIs.
    """

    payload = {
        "model": config.model,
        "temperature": 0,
        "response_format": {"type": "json_object"},
        "messages": [
            {"role": "system", "content": _load_prompt()},
            {
                "role": "user",
                "content": command_message(
                    user_text,
                    language=language,
                    default_token=default_token,
                    default_chain=default_chain,
                ),
            },
        ],
    }

    req = Request(
        _chat_completions_url(config.api_base),
        method="POST",
        headers={
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        },
        data=json.dumps(payload).encode(),
    )

    try:
        with urlopen(req, timeout=config.timeout_s) as resp:  # noqa: S310 (explicit, feature-flagged network call)
            body = resp.read()
    except HTTPError as exc:
        raise LLMParserError(f"LLM HTTP error: {exc.code}") from exc
    except (URLError, TimeoutError) as exc:
        raise LLMParserError("LLM connection error") from exc

    try:
        content = json.loads(body)["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise LLMParserError("Unexpected LLM response format") from exc

    if isinstance(content, dict):
        return check_transfer_draft(content)

    try:
        obj = json.loads(_strip_code_fences(content))
    except (json.JSONDecodeError, TypeError) as exc:
        raise LLMParserError("LLM did not return valid JSON") from exc
    return check_transfer_draft(obj)


def llm_config_from_env(*, api_key: str | None = None) -> LLMConfig:
    """Build LLM config from environment variables.

    Environment variables (optional):
        - LLM_MODEL
        - LLM_API_BASE
        - LLM_TIMEOUT_S
    """

    key = api_key or os.getenv("LLM_API_KEY") or ""
    if not key:
        raise LLMParserError("LLM_API_KEY is required")

    return LLMConfig(
        api_key=key,
        model=os.getenv("LLM_MODEL") or "gpt-4o-mini",
        api_base=os.getenv("LLM_API_BASE") or "https://api.openai.com/v1",
        timeout_s=float(os.getenv("LLM_TIMEOUT_S") or "30"),
    )

"""Pure token-bucket arithmetic shared by every backend."""

from __future__ import annotations

from dataclasses import dataclass

from voicepay.config.settings import RateLimitRule


@dataclass(frozen=True)
class BucketState:
    """Remaining permits and the time (ms) they were last refilled."""

    tokens: float
    last_refill_ms: int


def full_bucket(rule: RateLimitRule, now_ms: int) -> BucketState:
    return BucketState(tokens=float(rule.burst), last_refill_ms=now_ms)


def take(state: BucketState | None, rule: RateLimitRule, now_ms: int) -> tuple[BucketState, bool]:
    """Refill continuously up to `burst`, then try to consume one permit.

    Returns:
        The new state and whether the request is allowed.
    """

    if state is None:
        state = full_bucket(rule, now_ms)

    tokens = min(float(rule.burst), state.tokens)
    last_refill_ms = state.last_refill_ms
    elapsed = now_ms - last_refill_ms
    if elapsed > 0:
        tokens = min(float(rule.burst), tokens + elapsed / rule.interval_ms * rule.tokens_per_interval)
        last_refill_ms = now_ms

    if tokens >= 1:
        return BucketState(tokens=tokens - 1, last_refill_ms=last_refill_ms), True
    return BucketState(tokens=tokens, last_refill_ms=last_refill_ms), False


def ttl_ms(rule: RateLimitRule) -> int:
    """How long an untouched bucket takes to become full again (after which it can be dropped)."""

    return int(rule.burst / rule.tokens_per_interval * rule.interval_ms) + rule.interval_ms

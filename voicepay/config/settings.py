"""Environment configuration and validation.

This module defines strongly-typed application settings loaded from environment variables
(optionally via a local `.env` file).

Chain and token defaults are checked against the static registries at startup so a typo in the
environment fails fast instead of producing unroutable transfers later.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from voicepay.chain.registry import DEFAULT_ENDPOINTS, ChainName
from voicepay.chain.tokens import TOKENS


class RateLimitRule(BaseModel):
    """Token bucket parameters for one route."""

    tokens_per_interval: float = Field(gt=0)
    interval_ms: int = Field(gt=0)
    burst: int = Field(ge=1)


DEFAULT_RATE_LIMITS: dict[str, RateLimitRule] = {
    "voice_process": RateLimitRule(tokens_per_interval=1, interval_ms=1_000, burst=5),
    "voice_confirm": RateLimitRule(tokens_per_interval=1, interval_ms=1_000, burst=5),
    "transactions_list": RateLimitRule(tokens_per_interval=5, interval_ms=1_000, burst=20),
    "transactions_get": RateLimitRule(tokens_per_interval=5, interval_ms=1_000, burst=20),
    "transactions_build": RateLimitRule(tokens_per_interval=2, interval_ms=1_000, burst=10),
    "transactions_execute": RateLimitRule(tokens_per_interval=1, interval_ms=1_000, burst=3),
    "xcm_estimate": RateLimitRule(tokens_per_interval=2, interval_ms=1_000, burst=10),
    "wallet_connect": RateLimitRule(tokens_per_interval=1, interval_ms=1_000, burst=5),
    "wallet_balance": RateLimitRule(tokens_per_interval=2, interval_ms=1_000, burst=10),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(alias="DATABASE_URL")

    llm_enabled: bool = Field(default=False, alias="LLM_ENABLED")
    llm_api_key: str | None = Field(default=None, alias="LLM_API_KEY")

    default_chain: str = Field(default="polkadot", alias="DEFAULT_CHAIN")
    default_token: str = Field(default="DOT", alias="DEFAULT_TOKEN")

    polkadot_rpc_endpoint: str | None = Field(default=None, alias="POLKADOT_RPC_ENDPOINT")
    asset_hub_rpc_endpoint: str | None = Field(default=None, alias="ASSET_HUB_RPC_ENDPOINT")
    moonbeam_rpc_endpoint: str | None = Field(default=None, alias="MOONBEAM_RPC_ENDPOINT")

    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    rate_limit_durable: bool = Field(default=True, alias="RATE_LIMIT_DURABLE")
    rate_limits: dict[str, RateLimitRule] = Field(
        default_factory=lambda: dict(DEFAULT_RATE_LIMITS), alias="RATE_LIMITS"
    )

    elevenlabs_api_key: str | None = Field(default=None, alias="ELEVENLABS_API_KEY")
    elevenlabs_voice_id: str = Field(default="21m00Tcm4TlvDq8ikWAM", alias="ELEVENLABS_VOICE_ID")
    max_audio_bytes: int = Field(default=5 * 1024 * 1024, alias="MAX_AUDIO_BYTES", gt=0)

    telegram_bot_token: str | None = Field(default=None, alias="TELEGRAM_BOT_TOKEN")

    @field_validator("default_chain")
    @classmethod
    def validate_default_chain(cls, value: str) -> str:
        """Validate that the default chain is a registry member."""

        value = value.strip().lower()
        if value not in DEFAULT_ENDPOINTS:
            raise ValueError(f"DEFAULT_CHAIN must be one of {sorted(DEFAULT_ENDPOINTS)}")
        return value

    @field_validator("default_token")
    @classmethod
    def validate_default_token(cls, value: str) -> str:
        """Validate that the default token is in the token catalog."""

        value = value.strip().upper()
        if value not in TOKENS:
            raise ValueError(f"DEFAULT_TOKEN must be one of {sorted(TOKENS)}")
        return value

    @field_validator("rate_limits")
    @classmethod
    def fill_rate_limit_defaults(cls, value: dict[str, RateLimitRule]) -> dict[str, RateLimitRule]:
        """Keep defaults for every route the environment does not override."""

        return {**DEFAULT_RATE_LIMITS, **value}

    @model_validator(mode="after")
    def validate_llm_config(self) -> Settings:
        """Validate the optional LLM parser configuration.

        If LLM intent parsing is enabled, an API key must be provided.
        """

        if self.llm_enabled and not self.llm_api_key:
            raise ValueError("LLM_API_KEY is required when LLM_ENABLED=true")
        return self

    def endpoint_overrides(self) -> dict[ChainName, str]:
        """Per-chain RPC endpoint overrides present in the environment."""

        overrides: dict[ChainName, str | None] = {
            "polkadot": self.polkadot_rpc_endpoint,
            "asset-hub-polkadot": self.asset_hub_rpc_endpoint,
            "moonbeam": self.moonbeam_rpc_endpoint,
        }
        return {chain: url for chain, url in overrides.items() if url}


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Raises:
        RuntimeError: If the environment configuration is missing or invalid.
    """

    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc

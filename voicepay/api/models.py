"""Request and response bodies of the HTTP API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from voicepay.ledger.models import TransactionRecord


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class ProcessVoiceRequest(_Request):
    """A spoken (base64 audio) or typed payment command."""

    user_id: str = Field(min_length=1, max_length=128)
    audio_data: str | None = None
    text: str | None = Field(default=None, max_length=2000)
    format: str = "webm"
    language: str = Field(default="en", max_length=16)


class ProcessVoiceResponse(BaseModel):
    transaction_ids: list[str]
    intent: dict[str, Any]
    source: str
    transcript: str
    confirmation_prompt_text: str
    confirmation_audio: str | None = None


class ConfirmRequest(_Request):
    user_id: str = Field(min_length=1, max_length=128)
    transaction_ids: list[str] = Field(min_length=1, max_length=100)
    audio_data: str | None = None
    text: str | None = Field(default=None, max_length=2000)
    format: str = "webm"


class ConfirmResponse(BaseModel):
    status: str
    transaction_ids: list[str]
    message: str


class TransactionList(BaseModel):
    items: list[TransactionRecord]


class BuildRequest(_Request):
    token: str
    amount: str
    recipient: str
    origin_chain: str
    destination_chain: str
    sender: str | None = None
    min_receive: str | None = None
    slippage_bps: int | None = None


class BuildResponse(BaseModel):
    call_hex: str
    kind: str
    fee: str | None = None


class ExecuteBody(_Request):
    transaction_id: str = Field(min_length=1)
    signed_extrinsic: str = Field(min_length=1)
    chain: str | None = None
    token: str | None = None
    min_receive: str | None = None
    slippage_bps: int | None = None


class ExecuteResponse(BaseModel):
    transaction_id: str
    transaction_hash: str
    status: str


class FeeResponse(BaseModel):
    fee: str | None = None


class BalanceResponse(BaseModel):
    address: str
    token: str
    balance: str


class WalletConnectRequest(_Request):
    """Register a wallet; its address becomes the user id."""

    wallet_address: str = Field(min_length=1, max_length=128)
    chain: str | None = None


class WalletConnectResponse(BaseModel):
    user_id: str

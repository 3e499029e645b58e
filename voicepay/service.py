"""Payment service: the pipeline every transport (HTTP, Telegram) goes through.

    transcript -> intent -> pending records -> confirmation -> build/sign (client) -> execute
"""

from __future__ import annotations

import asyncio
import base64
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from voicepay.chain.builder import TransferBuilder, build_transfer, is_cross_chain, to_units
from voicepay.chain.address import is_valid_address
from voicepay.chain.registry import ChainRegistry, get_chain_info
from voicepay.chain.tokens import require_token
from voicepay.chain.units import units_to_decimal
from voicepay.config.logging import short_address
from voicepay.config.settings import Settings
from voicepay.errors import UpstreamError, ValidationError
from voicepay.execution.router import ExecuteRequest, ExecutionRouter
from voicepay.execution.safety import (
    check_min_receive_within_amount,
    check_slippage_bps,
    min_receive_units,
)
from voicepay.intent.normalize import normalize_item
from voicepay.intent.parser import parse_intent_with_source
from voicepay.intent.schema import Intent, IntentItem
from voicepay.ledger.confirmation import ConfirmationGate, ConfirmationResult
from voicepay.ledger.ledger import TransactionLedger
from voicepay.ledger.models import TransactionRecord, TransactionStatus, VoiceSession
from voicepay.speech import SpeechClient, decode_audio

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """Pending transactions created from one command, plus the read-back prompt."""

    transaction_ids: list[str]
    intent: Intent
    source: str
    transcript: str
    confirmation_prompt_text: str
    confirmation_audio: str | None = None


@dataclass(frozen=True)
class TransferParams:
    """Build/estimate request for a single transfer."""

    token: str
    amount: str
    recipient: str
    origin_chain: str
    destination_chain: str
    sender: str | None = None
    min_receive: str | None = None
    slippage_bps: int | None = None


@dataclass(frozen=True)
class BuildResult:
    """An unsigned, encoded call and its advisory fee in smallest units."""

    call_hex: str
    kind: str
    fee: int | None


def _describe(item: IntentItem) -> str:
    text = f"{item.amount} {item.token} to {short_address(item.recipient)}"
    if item.origin_chain != item.destination_chain:
        return f"{text} from {item.origin_chain} to {item.destination_chain}"
    return f"{text} on {item.origin_chain}"


def confirmation_prompt(intent: Intent) -> str:
    """Text read back to the user before anything is confirmed."""

    if len(intent.items) == 1:
        body = f"You asked to send {_describe(intent.items[0])}."
    else:
        parts = "; ".join(_describe(item) for item in intent.items)
        body = f"You asked for {len(intent.items)} transfers: {parts}."
    return f"{body} Say confirm to proceed or cancel to abort."


class PaymentService:
    """Composes extraction, ledger, confirmation, building and execution."""

    def __init__(
            self,
            settings: Settings,
            *,
            ledger: TransactionLedger,
            gate: ConfirmationGate,
            builder: TransferBuilder,
            router: ExecutionRouter,
            registry: ChainRegistry,
            speech: SpeechClient | None = None,
    ) -> None:
        self._settings = settings
        self._ledger = ledger
        self._gate = gate
        self._builder = builder
        self._router = router
        self._registry = registry
        self._speech = speech

    async def _transcript(
            self,
            *,
            text: str | None,
            audio_data: str | None,
            audio_format: str,
            language: str | None,
    ) -> str:
        if text is not None and text.strip():
            return text.strip()
        if not audio_data:
            raise ValidationError("either text or audio_data is required")

        audio = decode_audio(audio_data, audio_format, max_bytes=self._settings.max_audio_bytes)
        if self._speech is None:
            raise UpstreamError("speech-to-text is not configured")
        transcript = await self._speech.transcribe(audio, audio_format, language)
        if not transcript:
            raise ValidationError("no speech recognized")
        return transcript

    async def transcribe(self, audio_data: str, audio_format: str, language: str | None = None) -> str:
        """Transcribe a base64 audio payload through the speech collaborator."""

        return await self._transcript(
            text=None, audio_data=audio_data, audio_format=audio_format, language=language
        )

    async def _speak(self, text: str) -> str | None:
        if self._speech is None:
            return None
        try:
            audio = await self._speech.synthesize(text)
        except UpstreamError as exc:
            logger.warning("tts unavailable, replying with text only: %s", exc)
            return None
        return base64.b64encode(audio).decode("ascii")

    async def _audit(self, user_id: str, transcription: str, response_text: str) -> None:
        await self._ledger.record_session(
            VoiceSession(
                id=str(uuid.uuid4()),
                user_id=user_id,
                transcription=transcription,
                response_text=response_text,
            )
        )

    async def process(
            self,
            user_id: str,
            *,
            text: str | None = None,
            audio_data: str | None = None,
            audio_format: str = "webm",
            language: str = "en",
            speak: bool = True,
    ) -> ProcessResult:
        """Turn a command into pending transactions awaiting confirmation."""

        transcript = await self._transcript(
            text=text, audio_data=audio_data, audio_format=audio_format, language=language
        )
        parsed = await asyncio.to_thread(
            parse_intent_with_source,
            transcript,
            llm_enabled=self._settings.llm_enabled,
            llm_api_key=self._settings.llm_api_key,
            default_token=self._settings.default_token,
            default_chain=self._settings.default_chain,
            language=language,
        )

        records = await self._ledger.create_many(user_id, transcript, parsed.intent.items)
        prompt = confirmation_prompt(parsed.intent)
        await self._audit(user_id, transcript, prompt)

        logger.info(
            "command processed source=%s type=%s items=%d",
            parsed.source,
            parsed.intent.type,
            len(records),
        )
        return ProcessResult(
            transaction_ids=[r.id for r in records],
            intent=parsed.intent,
            source=parsed.source,
            transcript=transcript,
            confirmation_prompt_text=prompt,
            confirmation_audio=await self._speak(prompt) if speak else None,
        )

    async def confirm(
            self,
            user_id: str,
            transaction_ids: Sequence[str],
            *,
            text: str | None = None,
            audio_data: str | None = None,
            audio_format: str = "webm",
    ) -> ConfirmationResult:
        """Apply a spoken/typed yes-or-no to pending transactions."""

        transcript = await self._transcript(
            text=text, audio_data=audio_data, audio_format=audio_format, language=None
        )
        result = await self._gate.confirm(transcript, transaction_ids, user_id=user_id)
        await self._audit(user_id, transcript, result.message)
        return result

    async def list_transactions(
            self,
            user_id: str,
            status: TransactionStatus | None = None,
            limit: int = 20,
            offset: int = 0,
    ) -> list[TransactionRecord]:
        return await self._ledger.list_by_user(user_id, status, limit, offset)

    async def awaiting_reply(self, user_id: str) -> list[str]:
        """Ids of the user's most recent command while it still waits for a yes or no.

        Older pending records are never answered implicitly; they can only be confirmed by id.
        """

        batch = await self._ledger.latest_batch(user_id)
        if not batch or any(r.status != TransactionStatus.pending for r in batch):
            return []
        return [r.id for r in batch]

    async def get_transaction(self, transaction_id: str) -> TransactionRecord:
        return await self._ledger.get(transaction_id)

    @staticmethod
    def _transfer_item(params: TransferParams) -> IntentItem:
        try:
            item = IntentItem(
                token=params.token,
                amount=params.amount,
                recipient=params.recipient,
                origin_chain=params.origin_chain,
                destination_chain=params.destination_chain,
            )
        except ValueError as exc:
            raise ValidationError(f"invalid transfer: {exc}") from exc
        return normalize_item(item)

    async def build(self, params: TransferParams) -> BuildResult:
        """Build the unsigned call the client should sign."""

        item = self._transfer_item(params)
        if is_cross_chain(item):
            token = require_token(item.token)
            if params.min_receive is not None:
                check_min_receive_within_amount(
                    min_receive_units(params.min_receive, token), to_units(item.amount, token)
                )
            check_slippage_bps(params.slippage_bps)

        built = build_transfer(
            item, min_receive=params.min_receive if is_cross_chain(item) else None
        )
        call_hex = await self._builder.encode(built)
        fee = await self._builder.estimate_fee(built, params.sender)
        return BuildResult(call_hex=call_hex, kind=built.kind, fee=fee)

    async def estimate_xcm_fee(self, params: TransferParams) -> int | None:
        """Advisory fee for a cross-chain transfer; `None` when it cannot be estimated."""

        item = self._transfer_item(params)
        if not is_cross_chain(item):
            raise ValidationError("origin_chain and destination_chain must differ")
        return await self._builder.estimate_fee(build_transfer(item), params.sender)

    async def execute(self, request: ExecuteRequest) -> TransactionRecord:
        return await self._router.execute(request)

    async def connect_wallet(self, address: str, chain: str | None = None) -> str:
        """Register a wallet as a user; the address is the user id.

        The address must be valid on `chain` (the default chain when omitted).
        """

        chain = chain or self._settings.default_chain
        try:
            address_format = get_chain_info(chain).address_format
        except KeyError:
            raise ValidationError(f"unsupported chain: {chain}") from None
        if not is_valid_address(address, address_format):
            raise ValidationError(f"invalid address: {address}")

        await self._ledger.register_user(address)
        logger.info("wallet connected address=%s chain=%s", short_address(address), chain)
        return address

    async def balance(self, address: str, token_symbol: str) -> str:
        """Free balance of an account in the token's home chain, as a decimal string."""

        token = require_token(token_symbol)
        if not is_valid_address(address, get_chain_info(token.chain).address_format):
            raise ValidationError(f"invalid address: {address}")
        client = await self._registry.client_for(token.chain)
        units = await client.free_balance(address, None if token.is_native else token.asset_id)
        return units_to_decimal(units, token.decimals)

"""aiogram message handlers.

Every incoming message produces exactly one text reply. A text or voice message is either a new
payment command or a yes/no reply to the user's most recent command while it is still pending.
Signing and execution stay in the user's wallet; the bot only extracts, reads back and confirms.
"""

from __future__ import annotations

import base64
import io
import logging
from time import monotonic

from aiogram.types import Message

from voicepay.app import App
from voicepay.errors import PaymentError
from voicepay.intent.rules_parser import has_transfer_clause
from voicepay.ledger.confirmation import classify_reply

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Send a payment command, for example: pay 10 DOT to <address>. "
    "I will read it back and wait for your confirm or cancel."
)
FAILURE_TEXT = "Something went wrong, please try again later."


def _is_command_text(text: str) -> bool:
    return text.lstrip().startswith("/")


def telegram_user_id(message: Message) -> str:
    user = message.from_user
    return f"tg:{user.id if user else message.chat.id}"


async def _voice_payload(message: Message) -> str | None:
    """Download a voice note and return it base64 encoded (Telegram voice notes are OGG/Opus)."""

    if message.voice is None:
        return None
    buffer = io.BytesIO()
    await message.bot.download(message.voice, destination=buffer)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


async def _reply_text(message: Message, app: App) -> str:
    user_id = telegram_user_id(message)
    text = (message.text or message.caption or "").strip()
    audio = await _voice_payload(message)

    if audio is None and (not text or _is_command_text(text)):
        return HELP_TEXT

    if audio is not None:
        # Transcribe once, then route on the transcript like a typed message.
        text = await app.service.transcribe(audio, "ogg")

    # A message carrying a transfer is always a new command, even if it also says "ok".
    if not has_transfer_clause(text):
        awaiting = await app.service.awaiting_reply(user_id)
        if awaiting and classify_reply(text) != "clarification":
            result = await app.service.confirm(user_id, awaiting, text=text)
            return result.message

    result = await app.service.process(user_id, text=text, speak=False)
    return result.confirmation_prompt_text


async def handle_message(message: Message, app: App) -> None:
    """Handle any incoming Telegram message and reply with exactly one text message."""

    started = monotonic()
    reply = FAILURE_TEXT

    # noinspection PyBroadException
    try:
        reply = await _reply_text(message, app)
        logger.info("handled latency_ms=%d", int((monotonic() - started) * 1000))
    except PaymentError as exc:
        # User-facing failure (unsupported command, invalid address, ...).
        reply = f"Sorry, {exc.message}."
        logger.info("rejected code=%s latency_ms=%d", exc.code, int((monotonic() - started) * 1000))
    except Exception:
        # Handler boundary: never leak internal details to the chat.
        logger.exception("handler failed")

    await message.answer(reply)

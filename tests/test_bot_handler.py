"""Tests for the aiogram message handler reply contract.

Every incoming message produces exactly one text reply: a read-back prompt for a new command, the
confirmation outcome for a yes/no reply, a help text for commands, or a short error.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from voicepay.app import App, build_app
from voicepay.bot.handlers import FAILURE_TEXT, HELP_TEXT, handle_message
from voicepay.config.settings import Settings
from voicepay.ledger.models import TransactionStatus
from voicepay.ratelimit.backends import MemoryBackend

ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"


class _FakeMessage:
    def __init__(self, text: str | None, user_id: int = 42) -> None:
        self.text = text
        self.caption = None
        self.voice = None
        self.from_user = SimpleNamespace(id=user_id)
        self.chat = SimpleNamespace(id=user_id)
        self.answers: list[str] = []

    async def answer(self, text: str) -> None:
        """Record the outgoing bot reply (aiogram's `Message.answer` substitute)."""
        self.answers.append(text)


@pytest.fixture()
def app(settings: Settings, store, registry) -> App:
    return build_app(settings, store=store, registry=registry, rate_limit_backend=MemoryBackend())


@pytest.mark.asyncio
async def test_handler_replies_help_for_empty_text_and_commands(app: App) -> None:
    for text in (None, "/start"):
        message = _FakeMessage(text=text)
        await handle_message(message, app)  # type: ignore[arg-type]
        assert message.answers == [HELP_TEXT]


@pytest.mark.asyncio
async def test_command_then_confirmation(app: App, store) -> None:
    command = _FakeMessage(text=f"Pay 10 DOT to {ALICE}")
    await handle_message(command, app)  # type: ignore[arg-type]

    assert len(command.answers) == 1
    assert command.answers[0].startswith("You asked to send 10 DOT")
    (record,) = store.records.values()
    assert record.user_id == "tg:42"

    reply = _FakeMessage(text="yes")
    await handle_message(reply, app)  # type: ignore[arg-type]

    assert reply.answers == ["Transaction confirmed, ready for execution."]
    assert store.records[record.id].status == TransactionStatus.confirmed


@pytest.mark.asyncio
async def test_unsupported_command_gets_a_short_error(app: App, store) -> None:
    message = _FakeMessage(text="what's the weather?")

    await handle_message(message, app)  # type: ignore[arg-type]

    assert message.answers == ["Sorry, unsupported command."]
    assert store.records == {}


@pytest.mark.asyncio
async def test_internal_error_does_not_leak(app: App, monkeypatch: pytest.MonkeyPatch) -> None:
    async def _boom(*_args: Any, **_kwargs: Any) -> None:
        raise RuntimeError("database password is hunter2")

    monkeypatch.setattr(app.service, "process", _boom)
    message = _FakeMessage(text=f"Pay 10 DOT to {ALICE}")

    await handle_message(message, app)  # type: ignore[arg-type]

    assert message.answers == [FAILURE_TEXT]


@pytest.mark.asyncio
async def test_new_command_with_an_affirmative_word_is_not_a_reply(app: App, store) -> None:
    await handle_message(_FakeMessage(text=f"Pay 10 DOT to {ALICE}"), app)  # type: ignore[arg-type]
    (stale,) = store.records.values()

    message = _FakeMessage(text=f"ok send 5 DOT to {ALICE} right now")
    await handle_message(message, app)  # type: ignore[arg-type]

    assert message.answers[0].startswith("You asked to send 5 DOT")
    assert len(store.records) == 2
    assert store.records[stale.id].status == TransactionStatus.pending


@pytest.mark.asyncio
async def test_reply_only_answers_the_most_recent_command(app: App, store) -> None:
    await handle_message(_FakeMessage(text=f"Pay 10 DOT to {ALICE}"), app)  # type: ignore[arg-type]
    (older,) = store.records.values()
    batch = _FakeMessage(text=f"send 1 DOT to {ALICE} and 2 DOT to {ALICE}")
    await handle_message(batch, app)  # type: ignore[arg-type]
    latest = [r.id for r in store.records.values() if r.id != older.id]

    reply = _FakeMessage(text="yes")
    await handle_message(reply, app)  # type: ignore[arg-type]

    assert [store.records[i].status for i in latest] == [TransactionStatus.confirmed] * 2
    assert store.records[older.id].status == TransactionStatus.pending

    again = _FakeMessage(text="yes")
    await handle_message(again, app)  # type: ignore[arg-type]

    assert again.answers == ["Sorry, unsupported command."]
    assert store.records[older.id].status == TransactionStatus.pending

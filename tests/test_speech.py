"""Tests for audio payload checks and the ElevenLabs speech adapter."""

from __future__ import annotations

import base64

import httpx
import pytest

from voicepay.errors import PayloadTooLargeError, UnsupportedMediaError, UpstreamError, ValidationError
from voicepay.speech import ElevenLabsSpeechClient, decode_audio


def test_decode_audio_accepts_supported_formats() -> None:
    payload = base64.b64encode(b"RIFF....WAVE").decode()

    assert decode_audio(payload, "WAV", max_bytes=1024) == b"RIFF....WAVE"


def test_decode_audio_rejections() -> None:
    with pytest.raises(UnsupportedMediaError):
        decode_audio("AAAA", "aac", max_bytes=1024)
    with pytest.raises(ValidationError):
        decode_audio("not base64!", "mp3", max_bytes=1024)
    with pytest.raises(ValidationError):
        decode_audio("", "mp3", max_bytes=1024)
    with pytest.raises(PayloadTooLargeError):
        decode_audio(base64.b64encode(b"x" * 11).decode(), "mp3", max_bytes=10)


def _client(handler) -> ElevenLabsSpeechClient:
    http = httpx.AsyncClient(
        base_url="https://api.elevenlabs.io/v1",
        transport=httpx.MockTransport(handler),
    )
    return ElevenLabsSpeechClient("key", voice_id="voice-1", client=http)


@pytest.mark.asyncio
async def test_transcribe_posts_multipart_audio() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"text": "  pay 10 dot to alice  "})

    client = _client(handler)
    text = await client.transcribe(b"OggS", "ogg", "en")
    await client.close()

    assert text == "pay 10 dot to alice"
    assert seen[0].url.path == "/v1/speech-to-text"
    assert b"scribe_v1" in seen[0].content
    assert b"audio.ogg" in seen[0].content


@pytest.mark.asyncio
async def test_synthesize_returns_audio_bytes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/text-to-speech/voice-1"
        return httpx.Response(200, content=b"ID3")

    client = _client(handler)

    assert await client.synthesize("You asked to send 10 DOT") == b"ID3"


@pytest.mark.asyncio
async def test_upstream_failures_become_upstream_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"detail": "overloaded"})

    client = _client(handler)

    with pytest.raises(UpstreamError, match="503"):
        await client.transcribe(b"OggS", "ogg")
    with pytest.raises(UpstreamError, match="503"):
        await client.synthesize("hello")

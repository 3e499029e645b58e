"""Speech collaborators: speech-to-text for commands, text-to-speech for prompts.

Only the contract matters to the pipeline. `ElevenLabsSpeechClient` is the production adapter;
failures surface as `UpstreamError` and the service decides how to degrade (TTS failures fall back
to a text-only response).
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Protocol

import httpx

from voicepay.errors import PayloadTooLargeError, UnsupportedMediaError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

SUPPORTED_AUDIO_FORMATS: frozenset[str] = frozenset({"mp3", "wav", "webm", "ogg"})

_ELEVENLABS_API = "https://api.elevenlabs.io/v1"
_MODEL_ID = "eleven_multilingual_v2"


class SpeechClient(Protocol):
    """Speech transcoding contract."""

    async def transcribe(self, audio: bytes, audio_format: str, language: str | None = None) -> str: ...

    async def synthesize(self, text: str) -> bytes: ...


def decode_audio(audio_b64: str, audio_format: str, *, max_bytes: int) -> bytes:
    """Decode and check an uploaded audio payload.

    Raises:
        UnsupportedMediaError: Unknown audio format.
        ValidationError: Payload is not valid base64 or is empty.
        PayloadTooLargeError: Decoded audio exceeds `max_bytes`.
    """

    fmt = (audio_format or "").lower()
    if fmt not in SUPPORTED_AUDIO_FORMATS:
        raise UnsupportedMediaError(f"unsupported audio format: {audio_format}")

    # Cheap pre-check before decoding: base64 inflates by 4/3.
    if len(audio_b64) > (max_bytes * 4) // 3 + 4:
        raise PayloadTooLargeError("audio payload too large")

    try:
        audio = base64.b64decode(audio_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("audio_data is not valid base64") from exc

    if not audio:
        raise ValidationError("audio_data is empty")
    if len(audio) > max_bytes:
        raise PayloadTooLargeError("audio payload too large")
    return audio


class ElevenLabsSpeechClient:
    """`SpeechClient` backed by the ElevenLabs HTTP API."""

    def __init__(
            self,
            api_key: str,
            *,
            voice_id: str,
            timeout_s: float = 30.0,
            client: httpx.AsyncClient | None = None,
    ) -> None:
        self._voice_id = voice_id
        self._client = client or httpx.AsyncClient(
            base_url=_ELEVENLABS_API,
            headers={"xi-api-key": api_key},
            timeout=timeout_s,
        )

    async def transcribe(self, audio: bytes, audio_format: str, language: str | None = None) -> str:
        data = {"model_id": "scribe_v1"}
        if language:
            data["language_code"] = language
        try:
            resp = await self._client.post(
                "/speech-to-text",
                data=data,
                files={"file": (f"audio.{audio_format}", audio, "application/octet-stream")},
            )
            resp.raise_for_status()
            text = resp.json().get("text") or ""
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(f"speech-to-text failed: {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamError("speech-to-text unavailable") from exc

        logger.info("transcribed bytes=%d chars=%d", len(audio), len(text))
        return text.strip()

    async def synthesize(self, text: str) -> bytes:
        try:
            resp = await self._client.post(
                f"/text-to-speech/{self._voice_id}",
                json={"text": text, "model_id": _MODEL_ID},
                headers={"Accept": "audio/mpeg"},
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(f"text-to-speech failed: {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError("text-to-speech unavailable") from exc
        return resp.content

    async def close(self) -> None:
        await self._client.aclose()

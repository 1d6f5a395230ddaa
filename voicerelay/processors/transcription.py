# voicerelay/processors/transcription.py
"""
Speech-to-text via a Whisper-compatible API (OpenAI, or Groq through WHISPER_BASE_URL).

Input is base64 text (JSON mode) or raw bytes (binary upload mode). The device
records short 16kHz WAV clips, so audio is always sent as audio.wav.
"""

import base64
import binascii
from typing import Union

import openai

from voicerelay import monitoring
from voicerelay.clients import ClientRegistry
from voicerelay.config import MAX_AUDIO_BASE64_BYTES
from voicerelay.errors import TranscriptionError

MSG_INVALID_FORMAT = "Invalid audio format. Please use WAV format."
MSG_TOO_SHORT = "Audio too short. Please speak longer."
MSG_TIMEOUT = "Transcription service timed out. Please try again."
MSG_RATE_LIMIT = "Rate limit reached. Please wait a moment."
NO_SPEECH = "No speech detected in audio"
FAILED_PREFIX = "Transcription failed"

MOCK_TRANSCRIPTION = "What is the weather like today?"


def _translate_error(error: Exception) -> TranscriptionError:
    detail = str(error)
    if "Invalid file format" in detail:
        return TranscriptionError(detail, MSG_INVALID_FORMAT)
    if "too short" in detail:
        return TranscriptionError(detail, MSG_TOO_SHORT)
    if isinstance(error, (openai.APITimeoutError, openai.APIConnectionError, ConnectionResetError)) \
            or "timeout" in detail.lower():
        return TranscriptionError(detail, MSG_TIMEOUT)
    if isinstance(error, openai.RateLimitError) or "rate_limit" in detail:
        return TranscriptionError(detail, MSG_RATE_LIMIT)
    return TranscriptionError(detail, f"{FAILED_PREFIX}: {detail}")


def _decode_audio(audio: Union[str, bytes]) -> bytes:
    if isinstance(audio, bytes):
        return audio
    if not audio or not isinstance(audio, str):
        raise TranscriptionError("Audio data is required")
    if len(audio) > MAX_AUDIO_BASE64_BYTES:
        raise TranscriptionError(f"Audio too large. Max size: {MAX_AUDIO_BASE64_BYTES // 1024}KB")
    try:
        return base64.b64decode(audio, validate=True)
    except (binascii.Error, ValueError) as e:
        raise TranscriptionError(f"Invalid base64 audio: {e}", f"{FAILED_PREFIX}: Invalid base64 audio: {e}")


async def _request_transcription(audio_bytes: bytes, clients: ClientRegistry) -> str:
    """Isolated provider call (tests monkeypatch this)."""
    settings = clients.settings
    if settings.mock_ai:
        return MOCK_TRANSCRIPTION
    result = await clients.whisper.audio.transcriptions.create(
        file=("audio.wav", audio_bytes, "audio/wav"),
        model=settings.whisper_model,
        language=settings.whisper_language,
        response_format="text",
    )
    # response_format="text" gives a str; some SDK versions wrap it
    return result if isinstance(result, str) else getattr(result, "text", "")


async def transcribe_audio(audio: Union[str, bytes], clients: ClientRegistry) -> str:
    """Return trimmed transcription text or raise TranscriptionError."""
    try:
        audio_bytes = _decode_audio(audio)
    except TranscriptionError as e:
        monitoring.inc_transcription("fail")
        monitoring.logger.error("Audio decode failed", extra={"error": e.message})
        raise
    monitoring.logger.info("Starting transcription", extra={"audio_bytes": len(audio_bytes)})

    try:
        text = (await _request_transcription(audio_bytes, clients) or "").strip()
    except Exception as e:
        monitoring.inc_transcription("fail")
        monitoring.logger.error("Transcription failed", extra={"error": str(e)})
        raise _translate_error(e) from e

    if not text:
        monitoring.inc_transcription("no_speech")
        raise TranscriptionError(NO_SPEECH, f"{FAILED_PREFIX}: {NO_SPEECH}")

    monitoring.inc_transcription("success")
    monitoring.logger.info("Transcription successful", extra={"preview": text[:50]})
    return text

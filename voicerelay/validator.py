# voicerelay/validator.py
"""
Input validation for the relay endpoints.

Every function returns a dict:
  { "valid": bool, "error": str | None, ... }

Malformed input is an expected outcome, so nothing here raises.
"""

import re
from typing import Any, Dict

from voicerelay.config import (
    MAX_AUDIO_BASE64_BYTES,
    MAX_AUDIO_BINARY_BYTES,
    MAX_QUERY_LENGTH,
    MAX_REQUEST_ID_LENGTH,
)

REQUEST_ID_REGEX = re.compile(r"^[A-Za-z0-9_-]+$")
BASE64_REGEX = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")

E_INVALID_REQUEST = "Request body is required"
E_REQUEST_ID_REQUIRED = "request_id is required"
E_REQUEST_ID_INVALID = "request_id contains invalid characters"
E_REQUEST_ID_TOO_LONG = f"request_id must be {MAX_REQUEST_ID_LENGTH} characters or less"
E_TEXT_REQUIRED = "text cannot be empty"
E_TEXT_TOO_LONG = f"text must be {MAX_QUERY_LENGTH} characters or less"
E_INPUT_REQUIRED = "Either text or audio is required"
E_AUDIO_REQUIRED = "Audio data required"
E_AUDIO_NOT_STRING = "Audio must be a base64 string"
E_AUDIO_BASE64_TOO_LARGE = f"Audio too large. Max {MAX_AUDIO_BASE64_BYTES // 1024}KB allowed"
E_AUDIO_BINARY_TOO_LARGE = f"Audio too large (max {MAX_AUDIO_BINARY_BYTES // (1024 * 1024)}MB)"
E_AUDIO_BAD_BASE64 = "Invalid base64 encoding"


def _ok(**extra) -> Dict[str, Any]:
    return {"valid": True, "error": None, **extra}


def _fail(error: str) -> Dict[str, Any]:
    return {"valid": False, "error": error}


def validate_request_id(request_id: Any) -> Dict[str, Any]:
    if not request_id or not isinstance(request_id, str):
        return _fail(E_REQUEST_ID_REQUIRED)
    if len(request_id) > MAX_REQUEST_ID_LENGTH:
        return _fail(E_REQUEST_ID_TOO_LONG)
    if not REQUEST_ID_REGEX.match(request_id):
        return _fail(E_REQUEST_ID_INVALID)
    return _ok()


def validate_query_text(text: Any) -> Dict[str, Any]:
    if not isinstance(text, str) or not text.strip():
        return _fail(E_TEXT_REQUIRED)
    if len(text) > MAX_QUERY_LENGTH:
        return _fail(E_TEXT_TOO_LONG)
    return _ok()


def validate_audio_base64(audio: Any) -> Dict[str, Any]:
    """Checks size and alphabet only; decoding happens in the transcription adapter."""
    if not audio:
        return _fail(E_AUDIO_REQUIRED)
    if not isinstance(audio, str):
        return _fail(E_AUDIO_NOT_STRING)
    if len(audio) > MAX_AUDIO_BASE64_BYTES:
        return _fail(E_AUDIO_BASE64_TOO_LARGE)
    # fullmatch: "$" would also accept a trailing newline
    if not BASE64_REGEX.fullmatch(audio):
        return _fail(E_AUDIO_BAD_BASE64)
    return _ok()


def validate_audio_bytes(data: Any) -> Dict[str, Any]:
    if not data:
        return _fail(E_AUDIO_REQUIRED)
    if len(data) > MAX_AUDIO_BINARY_BYTES:
        return _fail(E_AUDIO_BINARY_TOO_LARGE)
    return _ok()


def validate_query_body(body: Any) -> Dict[str, Any]:
    """
    Validate a POST /api/query body.
    A truthy "audio" field takes priority over "text".
    On success the result carries input_type = "audio" | "text".
    """
    if not isinstance(body, dict):
        return _fail(E_INVALID_REQUEST)

    rid = validate_request_id(body.get("request_id"))
    if not rid["valid"]:
        return rid

    if body.get("audio"):
        audio = validate_audio_base64(body["audio"])
        if not audio["valid"]:
            return audio
        return _ok(input_type="audio")

    text = body.get("text")
    if not text or not isinstance(text, str):
        return _fail(E_INPUT_REQUIRED)
    checked = validate_query_text(text)
    if not checked["valid"]:
        return checked
    return _ok(input_type="text")


def sanitize_input(text: str) -> str:
    """Trim, drop NUL bytes, collapse whitespace and cap to the query limit."""
    if not isinstance(text, str):
        return ""
    cleaned = text.strip().replace("\0", "")
    cleaned = re.sub(r"\s+", " ", cleaned)
    return cleaned[:MAX_QUERY_LENGTH]

# voicerelay/relay.py
"""
Request handlers. Each submission drives one record through

    absent -> pending -> completed | error   (-> deleted)

Handlers return (http_status, body). Validation failures are 400s; provider
failures are persisted as the record's error state and reported with 200,
because the submission itself succeeded. Store errors propagate to the caller.
No step is retried: a failed request_id stays failed.
"""

import asyncio
from typing import Any, Dict, Optional, Tuple

# Import modules (not bare functions) so monkeypatching in tests works correctly
import voicerelay.processors.generation as _generation
import voicerelay.processors.transcription as _transcription
from voicerelay import monitoring
from voicerelay.clients import ClientRegistry
from voicerelay.errors import GenerationError, TranscriptionError
from voicerelay.schemas import ResponseStatus
from voicerelay.store import ResponseStore
from voicerelay.validator import (
    sanitize_input,
    validate_audio_bytes,
    validate_query_body,
    validate_request_id,
)

HandlerResult = Tuple[int, Dict[str, Any]]


def _transcription_failure_text(error: TranscriptionError) -> str:
    """Stored text for a failed transcription, always prefixed exactly once."""
    message = error.user_message
    if message.startswith(_transcription.FAILED_PREFIX):
        return message
    return f"{_transcription.FAILED_PREFIX}: {message}"


class VoiceRelay:
    def __init__(self, clients: ClientRegistry, store: ResponseStore):
        self.clients = clients
        self.store = store

    async def _store(self, method: str, *args):
        # store backends are blocking SDK / DB calls
        return await asyncio.to_thread(getattr(self.store, method), *args)

    # ------------------------------------------------------------------
    # POST /api/query
    # ------------------------------------------------------------------
    async def handle_query(self, body: Any) -> HandlerResult:
        validation = validate_query_body(body)
        if not validation["valid"]:
            monitoring.inc_validation_failure("query")
            monitoring.logger.info("Validation failed", extra={"error": validation["error"]})
            return 400, {"success": False, "error": validation["error"]}

        request_id = body["request_id"]
        input_type = validation["input_type"]
        monitoring.inc_submission(input_type)
        monitoring.logger.info("Processing query", extra={"request_id": request_id, "input_type": input_type})

        # pending first, so the device can start polling
        await self._store("save_pending", request_id)

        transcription: Optional[str] = None
        if input_type == "audio":
            try:
                transcription = await _transcription.transcribe_audio(body["audio"], self.clients)
            except TranscriptionError as e:
                await self._store("save_error", request_id, _transcription_failure_text(e))
                return 200, {
                    "success": False,
                    "request_id": request_id,
                    "message": "Audio transcription failed",
                    "error": e.user_message,
                }
            query_text = transcription
        else:
            query_text = sanitize_input(body["text"])

        try:
            answer = await _generation.generate_response(query_text, self.clients)
        except GenerationError as e:
            await self._store("save_error", request_id, e.user_message)
            return 200, {
                "success": True,
                "request_id": request_id,
                "transcription": transcription,
                "message": "Query received but AI processing failed",
                "error": e.user_message,
            }

        await self._store("save_completed", request_id, answer)
        monitoring.logger.info("Query processed", extra={"request_id": request_id})

        resp = {
            "success": True,
            "request_id": request_id,
            "message": "Query processed successfully",
        }
        if transcription:
            resp["transcription"] = transcription
        return 200, resp

    # ------------------------------------------------------------------
    # POST /api/audio (raw WAV body, X-Request-ID header)
    # ------------------------------------------------------------------
    async def handle_audio_upload(self, request_id: Optional[str], audio: bytes) -> HandlerResult:
        rid = validate_request_id(request_id)
        if not rid["valid"]:
            monitoring.inc_validation_failure("audio")
            return 400, {"success": False, "error": "Valid X-Request-ID header required"}
        checked = validate_audio_bytes(audio)
        if not checked["valid"]:
            monitoring.inc_validation_failure("audio")
            return 400, {"success": False, "error": checked["error"]}

        monitoring.inc_submission("audio_binary")
        monitoring.logger.info("Processing audio upload", extra={"request_id": request_id, "audio_bytes": len(audio)})

        await self._store("save_pending", request_id)

        try:
            transcription = await _transcription.transcribe_audio(audio, self.clients)
        except TranscriptionError as e:
            await self._store("save_error", request_id, e.user_message)
            return 200, {"success": False, "request_id": request_id, "error": e.user_message}

        try:
            answer = await _generation.generate_response(transcription, self.clients)
        except GenerationError as e:
            await self._store("save_error", request_id, e.user_message)
            return 200, {
                "success": False,
                "request_id": request_id,
                "transcription": transcription,
                "error": e.user_message,
            }

        await self._store("save_completed", request_id, answer)
        return 200, {
            "success": True,
            "request_id": request_id,
            "transcription": transcription,
            "message": "Audio processed successfully",
        }

    # ------------------------------------------------------------------
    # GET / DELETE / PATCH /api/response
    # ------------------------------------------------------------------
    async def handle_poll(self, request_id: str) -> HandlerResult:
        record = await self._store("get", request_id)
        if record is None:
            return 404, {
                "success": False,
                "request_id": request_id,
                "status": "not_found",
                "message": "No response found for this request_id",
            }

        status = record.status
        if status is ResponseStatus.PENDING:
            return 202, {
                "success": True,
                "request_id": request_id,
                "status": status.value,
                "message": "Response is still being processed",
            }
        if status is ResponseStatus.ERROR:
            return 200, {
                "success": True,
                "request_id": request_id,
                "status": status.value,
                "text": record.text,
                "message": "AI processing encountered an error",
            }
        if status is ResponseStatus.COMPLETED:
            return 200, {
                "success": True,
                "request_id": request_id,
                "status": status.value,
                "text": record.text,
                "timestamp": record.timestamp,
            }
        raise ValueError(f"Unhandled response status: {status!r}")

    async def handle_delete(self, request_id: str) -> HandlerResult:
        deleted = await self._store("delete", request_id)
        if not deleted:
            return 404, {
                "success": False,
                "request_id": request_id,
                "message": "No response found to delete",
            }
        return 200, {
            "success": True,
            "request_id": request_id,
            "message": "Response deleted successfully",
        }

    async def handle_acknowledge(self, request_id: str) -> HandlerResult:
        marked = await self._store("mark_consumed", request_id)
        if not marked:
            return 404, {
                "success": False,
                "request_id": request_id,
                "message": "No response found to acknowledge",
            }
        return 200, {
            "success": True,
            "request_id": request_id,
            "consumed": True,
            "message": "Response marked as consumed",
        }

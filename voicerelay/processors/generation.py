# voicerelay/processors/generation.py
import asyncio
import time
from typing import Optional

# Import modules (not bare functions) so monkeypatching in tests works correctly
import voicerelay.llm_wrapper as _llm
from voicerelay import monitoring
from voicerelay.clients import ClientRegistry
from voicerelay.errors import GenerationError
from voicerelay.processors.text_cleaner import format_for_device

MSG_TIMEOUT = "AI service is taking too long. Please try again."
MSG_SAFETY = "Request was blocked for safety reasons."
MSG_RATE_LIMIT = "AI service rate limit reached. Please wait a moment."


def _translate_error(error: BaseException) -> GenerationError:
    """Map a provider failure onto the message the device will read out."""
    detail = str(error)
    if isinstance(error, asyncio.TimeoutError) or "timed out" in detail:
        return GenerationError(detail or "Generation timed out", MSG_TIMEOUT)
    if "SAFETY" in detail:
        return GenerationError(detail, MSG_SAFETY)
    if "quota" in detail or "429" in detail:
        return GenerationError(detail, MSG_RATE_LIMIT)
    return GenerationError(detail, f"AI processing failed: {detail}")


async def generate_response(text: str, clients: ClientRegistry, timeout: Optional[float] = None) -> str:
    """
    Send query text to the configured provider and return a plain-text answer.

    The provider call races a wall-clock deadline; asyncio.wait_for cancels the
    call when the deadline wins so nothing keeps running after we give up.
    Raises GenerationError carrying a user-facing message.
    """
    if not text or not isinstance(text, str) or not text.strip():
        raise GenerationError("Invalid input: text is required", "AI processing failed: Invalid input: text is required")

    timeout = clients.settings.generation_timeout_seconds if timeout is None else timeout
    monitoring.logger.info("Generating response", extra={"query_preview": text[:50]})
    start = time.time()
    try:
        resp = await asyncio.wait_for(_llm.call_llm(text.strip(), clients), timeout=timeout)
        answer = resp.get("text") or ""
        if not answer.strip():
            raise RuntimeError("Model returned empty response")
    except Exception as e:
        monitoring.observe_generation(start, "timeout" if isinstance(e, asyncio.TimeoutError) else "fail")
        monitoring.logger.error("Generation failed", extra={"error": str(e) or type(e).__name__})
        raise _translate_error(e) from e

    monitoring.observe_generation(start, "success")
    monitoring.logger.info("Generated response", extra={"model": resp.get("model"), "response_id": resp.get("response_id")})
    return format_for_device(answer)

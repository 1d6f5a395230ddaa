# voicerelay/llm_wrapper.py
"""
Centralized LLM wrapper. Supports Gemini, OpenAI and Anthropic backends.
Returns a standardized dict:
{
  "text": "<assistant text>",
  "model": "<model used>",
  "response_id": "<model response id if available>",
  "raw": <raw response object>
}

Provider, model and keys come from Settings (GENERATION_PROVIDER, GEMINI_*,
OPENAI_*, ANTHROPIC_*). MOCK_AI=true swaps in a deterministic offline backend.

Usage:
  from voicerelay.llm_wrapper import call_llm
  resp = await call_llm("What's the weather like on Mars?", clients)
  text = resp["text"]
"""

import time
from typing import Any, Dict

from voicerelay.clients import ClientRegistry

# Answers are read aloud by a small device speaker
SYSTEM_INSTRUCTION = """You are a helpful voice assistant running on an ESP32 microcontroller.
Your responses will be read aloud, so:
- Keep responses brief and conversational (2-3 sentences max)
- Use simple, clear language
- Avoid markdown, special characters, or formatting
- Avoid lists unless specifically asked
- Be friendly but concise
- If you don't know something, say so briefly"""

TEMPERATURE = 0.7
TOP_P = 0.9
TOP_K = 40
MAX_OUTPUT_TOKENS = 512  # ESP32 RAM is tight


# ---------------------------------------------------------------------------
# Gemini backend
# ---------------------------------------------------------------------------
def _blocked_reason(resp) -> str:
    """Return the provider's block reason (e.g. "SAFETY") or "" if the answer was not blocked."""
    feedback = getattr(resp, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None) if feedback else None
    if reason:
        return str(getattr(reason, "name", reason))
    for cand in getattr(resp, "candidates", None) or []:
        finish = getattr(cand, "finish_reason", None)
        name = str(getattr(finish, "name", finish or ""))
        if name in ("SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"):
            return "SAFETY" if name == "SAFETY" else f"SAFETY ({name})"
    return ""


async def _real_gemini_generate(prompt: str, clients: ClientRegistry, system: str) -> Dict[str, Any]:
    from google.genai import types

    model = clients.settings.gemini_model
    config = types.GenerateContentConfig(
        system_instruction=system,
        temperature=TEMPERATURE,
        top_p=TOP_P,
        top_k=TOP_K,
        max_output_tokens=MAX_OUTPUT_TOKENS,
    )
    resp = await clients.gemini.aio.models.generate_content(
        model=model,
        contents=prompt,
        config=config,
    )

    reason = _blocked_reason(resp)
    if reason:
        raise RuntimeError(f"Response blocked by Gemini: {reason}")

    text = resp.text or ""
    rid = getattr(resp, "response_id", None)
    return {"text": text, "model": model, "response_id": rid, "raw": resp}


# ---------------------------------------------------------------------------
# OpenAI backend
# ---------------------------------------------------------------------------
async def _real_openai_chat_completion(prompt: str, clients: ClientRegistry, system: str) -> Dict[str, Any]:
    model = clients.settings.openai_chat_model
    resp = await clients.openai_chat.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        max_tokens=MAX_OUTPUT_TOKENS,
        temperature=TEMPERATURE,
        top_p=TOP_P,
    )
    choices = getattr(resp, "choices", [])
    text = choices[0].message.content if choices else ""
    rid = getattr(resp, "id", None)
    return {"text": text or "", "model": model, "response_id": rid, "raw": resp}


# ---------------------------------------------------------------------------
# Anthropic backend
# ---------------------------------------------------------------------------
async def _real_anthropic_chat(prompt: str, clients: ClientRegistry, system: str) -> Dict[str, Any]:
    model = clients.settings.anthropic_model
    resp = await clients.anthropic.messages.create(
        model=model,
        max_tokens=MAX_OUTPUT_TOKENS,
        temperature=TEMPERATURE,
        system=system,
        messages=[{"role": "user", "content": prompt}],
    )

    text = ""
    for block in resp.content:
        if hasattr(block, "text"):
            text += block.text

    rid = getattr(resp, "id", None)
    return {"text": text, "model": model, "response_id": rid, "raw": resp}


# ---------------------------------------------------------------------------
# Mock backend
# ---------------------------------------------------------------------------
async def _mock_llm(prompt: str, clients: ClientRegistry, system: str) -> Dict[str, Any]:
    """
    Deterministic mock used in dev/tests. Echoes the prompt back as a sentence
    and builds a response_id from the current time.
    """
    model = f"mock-{clients.settings.generation_provider}"
    text = f"You asked: {prompt.strip()[:900]}."
    rid = f"mock-{int(time.time() * 1000)}"
    return {"text": text, "model": model, "response_id": rid, "raw": {"mock": True}}


_BACKENDS = {
    "gemini": _real_gemini_generate,
    "openai": _real_openai_chat_completion,
    "anthropic": _real_anthropic_chat,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
async def call_llm(prompt: str, clients: ClientRegistry, system: str = SYSTEM_INSTRUCTION) -> Dict[str, Any]:
    """
    prompt: user text
    clients: registry carrying settings and the provider clients
    Returns: dict with keys 'text','model','response_id','raw'
    """
    settings = clients.settings
    if settings.mock_ai:
        return await _mock_llm(prompt, clients, system)

    provider = settings.generation_provider
    backend = _BACKENDS.get(provider)
    if backend is None:
        raise RuntimeError(f"Unknown generation provider: {provider}")
    try:
        return await backend(prompt, clients, system)
    except Exception as e:
        raise RuntimeError(f"LLM call failed ({provider}): {e}") from e

# tests/test_api_query.py
import asyncio
import base64

import pytest

import voicerelay.llm_wrapper as llm
import voicerelay.processors.generation as gen
import voicerelay.processors.transcription as trans
from voicerelay import app as app_module
from voicerelay.config import MAX_AUDIO_BASE64_BYTES
from voicerelay.schemas import ResponseStatus

WAV_B64 = base64.b64encode(b"RIFF\x24\x00\x00\x00WAVEfmt \x10\x00\x00\x00").decode()


def _forbid(name):
    def boom(*args, **kwargs):
        raise AssertionError(f"{name} should not be called")
    return boom


def test_text_query_completes_and_is_pollable(client):
    r = client.post("/api/query", json={"request_id": "esp-001", "text": "What is two plus two?"})
    assert r.status_code == 200
    j = r.json()
    assert j == {"success": True, "request_id": "esp-001", "message": "Query processed successfully"}

    r2 = client.get("/api/response", params={"request_id": "esp-001"})
    assert r2.status_code == 200
    j2 = r2.json()
    assert j2["status"] == "completed"
    assert j2["text"] == "You asked: What is two plus two?."
    assert isinstance(j2["timestamp"], int)


def test_audio_query_includes_transcription(client):
    r = client.post("/api/query", json={"request_id": "esp-002", "audio": WAV_B64, "text": "ignored"})
    assert r.status_code == 200
    j = r.json()
    assert j["success"] is True
    assert j["transcription"] == trans.MOCK_TRANSCRIPTION

    poll = client.get("/api/response", params={"request_id": "esp-002"}).json()
    assert poll["text"] == f"You asked: {trans.MOCK_TRANSCRIPTION}."


def test_record_is_pending_while_generating(client, monkeypatch):
    seen = {}

    async def fake_generate(text, clients, timeout=None):
        seen["record"] = app_module.relay.store.get("esp-003")
        return "Done."

    monkeypatch.setattr(gen, "generate_response", fake_generate)
    r = client.post("/api/query", json={"request_id": "esp-003", "text": "hi"})
    assert r.status_code == 200
    assert seen["record"].status is ResponseStatus.PENDING
    assert app_module.relay.store.get("esp-003").status is ResponseStatus.COMPLETED


def test_path_like_request_id_rejected_before_downstream(client, monkeypatch):
    monkeypatch.setattr(gen, "generate_response", _forbid("generate_response"))
    monkeypatch.setattr(trans, "transcribe_audio", _forbid("transcribe_audio"))
    monkeypatch.setattr(app_module.relay.store, "save_pending", _forbid("save_pending"))
    r = client.post("/api/query", json={"request_id": "../etc", "text": "hi"})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "request_id contains invalid characters"}


@pytest.mark.parametrize("body,error", [
    ({"request_id": "esp-004"}, "Either text or audio is required"),
    ({"request_id": "esp-004", "text": "a" * 1001}, "text must be 1000 characters or less"),
    ({"request_id": "x" * 65, "text": "hi"}, "request_id must be 64 characters or less"),
    ({"text": "hi"}, "request_id is required"),
])
def test_validation_failures(client, body, error):
    r = client.post("/api/query", json=body)
    assert r.status_code == 400
    assert r.json()["error"] == error


def test_max_length_text_accepted(client):
    r = client.post("/api/query", json={"request_id": "esp-005", "text": "a" * 1000})
    assert r.status_code == 200
    assert r.json()["success"] is True


def test_oversized_audio_never_reaches_transcription(client, monkeypatch):
    monkeypatch.setattr(trans, "transcribe_audio", _forbid("transcribe_audio"))
    big = "A" * (MAX_AUDIO_BASE64_BYTES + 4)
    r = client.post("/api/query", json={"request_id": "esp-006", "audio": big})
    assert r.status_code == 400
    assert r.json()["error"].startswith("Audio too large")
    assert client.get("/api/response", params={"request_id": "esp-006"}).status_code == 404


def test_generation_timeout_stored_as_error(client, monkeypatch):
    async def slow_llm(prompt, clients, system=None):
        await asyncio.sleep(5)

    monkeypatch.setattr(llm, "call_llm", slow_llm)
    monkeypatch.setattr(app_module.settings, "generation_timeout_seconds", 0.05)

    r = client.post("/api/query", json={"request_id": "esp-007", "text": "hello"})
    assert r.status_code == 200
    j = r.json()
    assert j["success"] is True
    assert j["error"] == gen.MSG_TIMEOUT
    assert j["message"] == "Query received but AI processing failed"

    poll = client.get("/api/response", params={"request_id": "esp-007"})
    assert poll.status_code == 200
    assert poll.json()["status"] == "error"
    assert poll.json()["text"] == gen.MSG_TIMEOUT


def test_transcription_failure_stored_as_error(client, monkeypatch):
    async def fake_request(audio_bytes, clients):
        return ""

    monkeypatch.setattr(trans, "_request_transcription", fake_request)
    r = client.post("/api/query", json={"request_id": "esp-008", "audio": WAV_B64})
    assert r.status_code == 200
    j = r.json()
    assert j["success"] is False
    assert j["message"] == "Audio transcription failed"
    assert trans.NO_SPEECH in j["error"]

    poll = client.get("/api/response", params={"request_id": "esp-008"}).json()
    assert poll["status"] == "error"
    assert trans.NO_SPEECH in poll["text"]


def test_store_failure_is_500(client, monkeypatch):
    def broken(request_id):
        raise RuntimeError("database unreachable")

    monkeypatch.setattr(app_module.relay.store, "save_pending", broken)
    r = client.post("/api/query", json={"request_id": "esp-009", "text": "hi"})
    assert r.status_code == 500
    assert r.json()["success"] is False
    assert r.json()["error"] == "Internal server error"


def test_invalid_json_is_400(client):
    r = client.post("/api/query", content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_wrong_method_is_405(client):
    r = client.get("/api/query")
    assert r.status_code == 405
    assert r.json() == {"success": False, "error": "Method not allowed"}


def test_cors_headers_and_preflight(client):
    r = client.options("/api/query")
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "*"

    r2 = client.post("/api/query", json={"request_id": "esp-010", "text": "hi"})
    assert r2.headers["access-control-allow-origin"] == "*"
    assert "X-Request-ID" in r2.headers["access-control-allow-headers"]


def test_mapped_transcription_error_is_stored_with_prefix(client, monkeypatch):
    async def rate_limited(audio_bytes, clients):
        raise RuntimeError("rate_limit exceeded")

    monkeypatch.setattr(trans, "_request_transcription", rate_limited)
    r = client.post("/api/query", json={"request_id": "esp-011", "audio": WAV_B64})
    assert r.status_code == 200
    assert r.json()["error"] == trans.MSG_RATE_LIMIT

    poll = client.get("/api/response", params={"request_id": "esp-011"}).json()
    assert poll["status"] == "error"
    assert poll["text"] == f"Transcription failed: {trans.MSG_RATE_LIMIT}"


def test_prefixed_transcription_error_is_not_doubled(client, monkeypatch):
    async def silent(audio_bytes, clients):
        return "  "

    monkeypatch.setattr(trans, "_request_transcription", silent)
    client.post("/api/query", json={"request_id": "esp-012", "audio": WAV_B64})
    poll = client.get("/api/response", params={"request_id": "esp-012"}).json()
    assert poll["text"] == f"Transcription failed: {trans.NO_SPEECH}"

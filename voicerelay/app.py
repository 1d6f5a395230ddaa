# voicerelay/app.py
import datetime
import json
import time

# Load .env BEFORE building settings (they read env vars at import time)
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from voicerelay import monitoring
from voicerelay.clients import ClientRegistry
from voicerelay.config import load_settings, POLL_RETRY_DELAY_MS
from voicerelay.relay import VoiceRelay
from voicerelay.store import build_store
from voicerelay.validator import validate_request_id

SERVICE_NAME = "ESP32 Voice Assistant API"
SERVICE_VERSION = "1.0.0"

# Missing credentials abort startup here, before any route is registered
settings = load_settings()
clients = ClientRegistry(settings)
relay = VoiceRelay(clients, build_store(clients))

app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, PATCH, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Request-ID",
}


# ---------------------------------------------------------------------------
# CORS middleware (the device does not always send an Origin header, so
# headers are set unconditionally and bare OPTIONS gets a 200)
# ---------------------------------------------------------------------------
@app.middleware("http")
async def cors_middleware(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


# ---------------------------------------------------------------------------
# Metrics middleware
# ---------------------------------------------------------------------------
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start = time.time()
    endpoint = request.url.path
    method = request.method
    status = "500"
    try:
        response = await call_next(request)
        status = str(response.status_code)
        return response
    except Exception:
        monitoring.logger.exception("Unhandled exception in request", extra={"path": endpoint})
        raise
    finally:
        monitoring.observe_request(start, endpoint, method, status)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        return JSONResponse(status_code=405, content={"success": False, "error": "Method not allowed"})
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc.detail)})


def _internal_error(error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": error, "message": str(exc)},
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@app.get("/")
@app.get("/health")
async def health():
    return {
        "name": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "endpoints": {
            "query": "POST /api/query",
            "audio": "POST /api/audio",
            "response": "GET /api/response?request_id=xxx",
            "delete": "DELETE /api/response?request_id=xxx",
            "acknowledge": "PATCH /api/response?request_id=xxx",
        },
        "poll_interval_ms": POLL_RETRY_DELAY_MS,
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }


@app.post("/api/query")
async def submit_query(request: Request):
    """
    POST /api/query
    Body: { "request_id": "...", "text": "..." }  or  { "request_id": "...", "audio": "<base64 wav>" }
    """
    monitoring.logger.info("Received /api/query request")
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(status_code=400, content={"success": False, "error": "Request body must be valid JSON"})

    try:
        status, resp = await relay.handle_query(body)
        return JSONResponse(status_code=status, content=resp)
    except Exception as e:
        monitoring.logger.exception("Unexpected error in /api/query handler")
        return _internal_error("Internal server error", e)


@app.post("/api/audio")
async def submit_audio(request: Request):
    """
    POST /api/audio
    Headers: X-Request-ID: <id>, Content-Type: audio/wav
    Body: raw WAV bytes
    """
    request_id = request.headers.get("x-request-id")
    monitoring.logger.info("Received /api/audio request", extra={"request_id": request_id})
    try:
        audio = await request.body()
        status, resp = await relay.handle_audio_upload(request_id, audio)
        return JSONResponse(status_code=status, content=resp)
    except Exception as e:
        monitoring.logger.exception("Unexpected error in /api/audio handler")
        return _internal_error("Server error", e)


def _request_id_or_error(request: Request):
    request_id = request.query_params.get("request_id")
    validation = validate_request_id(request_id)
    if not validation["valid"]:
        error = validation["error"]
        if not request_id:
            error = "request_id query parameter is required"
        return None, JSONResponse(status_code=400, content={"success": False, "error": error})
    return request_id, None


@app.get("/api/response")
async def poll_response(request: Request):
    """GET /api/response?request_id=xxx  -> 404 not_found | 202 pending | 200 completed/error"""
    request_id, error = _request_id_or_error(request)
    if error is not None:
        return error
    try:
        status, resp = await relay.handle_poll(request_id)
        return JSONResponse(status_code=status, content=resp)
    except Exception as e:
        monitoring.logger.exception("Unexpected error in GET /api/response handler")
        return _internal_error("Failed to retrieve response", e)


@app.delete("/api/response")
async def delete_response(request: Request):
    request_id, error = _request_id_or_error(request)
    if error is not None:
        return error
    try:
        status, resp = await relay.handle_delete(request_id)
        return JSONResponse(status_code=status, content=resp)
    except Exception as e:
        monitoring.logger.exception("Unexpected error in DELETE /api/response handler")
        return _internal_error("Failed to delete response", e)


@app.patch("/api/response")
async def acknowledge_response(request: Request):
    """Mark a response as consumed without deleting it."""
    request_id, error = _request_id_or_error(request)
    if error is not None:
        return error
    try:
        status, resp = await relay.handle_acknowledge(request_id)
        return JSONResponse(status_code=status, content=resp)
    except Exception as e:
        monitoring.logger.exception("Unexpected error in PATCH /api/response handler")
        return _internal_error("Failed to acknowledge response", e)


@app.get("/metrics")
async def metrics():
    if not monitoring.PROMETHEUS_ENABLED:
        return PlainTextResponse("Prometheus disabled", status_code=404)
    payload, content_type = monitoring.prometheus_metrics_response()
    return Response(content=payload, media_type=content_type)

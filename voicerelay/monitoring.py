# voicerelay/monitoring.py
"""
Centralized monitoring: Prometheus metrics, structured JSON logging, optional Sentry.

Env vars:
- PROMETHEUS_ENABLED (default: true)
- SENTRY_DSN (optional)
- LOG_AS_JSON (default: true)
- LOG_LEVEL (default: INFO)
- ENVIRONMENT (default: development)
"""

import os
import logging
import time
from typing import Tuple

import sentry_sdk
from prometheus_client import (
    Counter, Histogram,
    generate_latest, CONTENT_TYPE_LATEST, REGISTRY,
)
from pythonjsonlogger import jsonlogger

# --- ENV flags
PROMETHEUS_ENABLED = os.getenv("PROMETHEUS_ENABLED", "true").lower() in ("1", "true", "yes")
SENTRY_DSN = os.getenv("SENTRY_DSN", None)
LOG_AS_JSON = os.getenv("LOG_AS_JSON", "true").lower() in ("1", "true", "yes")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")


# --- Logger setup
def setup_logger(name: str = "voice-relay", level: int = None) -> logging.Logger:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO")) if level is None else level
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        if LOG_AS_JSON:
            fmt = jsonlogger.JsonFormatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s"
            )
            handler.setFormatter(fmt)
        logger.addHandler(handler)
    return logger


logger = setup_logger()

# --- Sentry (optional)
if SENTRY_DSN:
    sentry_sdk.init(dsn=SENTRY_DSN, environment=ENVIRONMENT)
    logger.info("Sentry initialized")


# --- Prometheus metrics
REQUEST_COUNT = Counter(
    "relay_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "relay_http_request_latency_seconds",
    "Request latency in seconds",
    ["endpoint"],
)

SUBMISSIONS = Counter(
    "relay_submissions_total",
    "Accepted submissions by input type",
    ["input_type"],
)

VALIDATION_FAILURES = Counter(
    "relay_validation_failures_total",
    "Rejected submissions",
    ["endpoint"],
)

TRANSCRIPTION_COUNTER = Counter(
    "relay_transcription_total",
    "Transcription attempts",
    ["outcome"],
)

GENERATION_COUNTER = Counter(
    "relay_generation_total",
    "Generation attempts",
    ["outcome"],
)

GENERATION_LATENCY = Histogram(
    "relay_generation_latency_seconds",
    "Generation latency",
)


# --- Helper wrappers (never crash the app)
def observe_request(start_ts: float, endpoint: str, method: str, status: str):
    try:
        REQUEST_LATENCY.labels(endpoint=endpoint).observe(time.time() - start_ts)
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status).inc()
    except Exception:
        pass


def inc_submission(input_type: str):
    try:
        SUBMISSIONS.labels(input_type=input_type).inc()
    except Exception:
        pass


def inc_validation_failure(endpoint: str):
    try:
        VALIDATION_FAILURES.labels(endpoint=endpoint).inc()
    except Exception:
        pass


def inc_transcription(outcome: str):
    try:
        TRANSCRIPTION_COUNTER.labels(outcome=outcome).inc()
    except Exception:
        pass


def observe_generation(start_ts: float, outcome: str):
    try:
        GENERATION_LATENCY.observe(time.time() - start_ts)
        GENERATION_COUNTER.labels(outcome=outcome).inc()
    except Exception:
        pass


def prometheus_metrics_response() -> Tuple[bytes, str]:
    """Return (body_bytes, content_type) for Prometheus scrape."""
    try:
        return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
    except Exception:
        return b"", CONTENT_TYPE_LATEST

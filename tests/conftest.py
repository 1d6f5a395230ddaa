# tests/conftest.py
"""
Shared test setup: offline AI providers and a throwaway SQLite store.
Env vars must be set before voicerelay.app is imported (settings load at import).
"""
import os
import sys
from pathlib import Path

ROOT = str(Path(__file__).resolve().parent.parent)
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

os.environ["MOCK_AI"] = "true"
os.environ["STORE_BACKEND"] = "sql"
os.environ["GENERATION_PROVIDER"] = "gemini"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_AS_JSON", "false")

import pytest
from fastapi.testclient import TestClient

from voicerelay import db as dbmod
from voicerelay.app import app
from voicerelay.clients import ClientRegistry
from voicerelay.config import Settings


@pytest.fixture(autouse=True)
def fresh_db(tmp_path):
    dbmod.reconfigure(f"sqlite:///{tmp_path / 'relay.db'}")
    dbmod.init_db()
    yield
    dbmod.engine.dispose()


@pytest.fixture
def mock_clients():
    return ClientRegistry(Settings(mock_ai=True, store_backend="sql"))


@pytest.fixture
def client():
    return TestClient(app)

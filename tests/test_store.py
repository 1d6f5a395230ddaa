# tests/test_store.py
"""
Record lifecycle against both store backends. The Firebase backend runs
against an in-memory stand-in for firebase_admin.db references.
"""
from types import SimpleNamespace

import pytest
from firebase_admin import db as rtdb

from voicerelay.schemas import ResponseStatus
from voicerelay.store import FirebaseResponseStore, SqlResponseStore


class FakeReference:
    def __init__(self, tree, path):
        self.tree = tree
        self.path = path

    def get(self):
        return self.tree.get(self.path)

    def set(self, value):
        # Realtime Database never stores null children
        self.tree[self.path] = {k: v for k, v in value.items() if v is not None}

    def update(self, value):
        self.tree.setdefault(self.path, {}).update(value)

    def delete(self):
        self.tree.pop(self.path, None)


@pytest.fixture
def firebase_store(monkeypatch):
    tree = {}
    monkeypatch.setattr(rtdb, "reference", lambda path, app=None: FakeReference(tree, path))
    store = FirebaseResponseStore(SimpleNamespace(firebase_app=object()))
    store.tree = tree
    return store


@pytest.fixture(params=["sql", "firebase"])
def store(request, firebase_store):
    if request.param == "sql":
        return SqlResponseStore()
    return firebase_store


def test_missing_record(store):
    assert store.get("nope") is None
    assert store.delete("nope") is False
    assert store.mark_consumed("nope") is False


def test_pending_then_completed(store):
    store.save_pending("req-1")
    rec = store.get("req-1")
    assert rec.status is ResponseStatus.PENDING
    assert rec.text is None
    assert rec.consumed is False
    created = rec.timestamp
    assert created > 0

    store.save_completed("req-1", "Forty two.")
    rec = store.get("req-1")
    assert rec.status is ResponseStatus.COMPLETED
    assert rec.text == "Forty two."
    assert rec.timestamp == created


def test_pending_then_error(store):
    store.save_pending("req-2")
    store.save_error("req-2", "AI service is taking too long. Please try again.")
    rec = store.get("req-2")
    assert rec.status is ResponseStatus.ERROR
    assert rec.text.startswith("AI service")


def test_save_pending_overwrites(store):
    store.save_pending("req-3")
    store.save_completed("req-3", "old answer")
    store.save_pending("req-3")
    rec = store.get("req-3")
    assert rec.status is ResponseStatus.PENDING
    assert rec.text is None


def test_mark_consumed_is_advisory(store):
    store.save_pending("req-4")
    store.save_completed("req-4", "hi")
    assert store.mark_consumed("req-4") is True
    rec = store.get("req-4")
    assert rec.consumed is True
    assert rec.consumed_at is not None
    # still readable and deletable
    assert rec.text == "hi"
    assert store.delete("req-4") is True


def test_delete_twice(store):
    store.save_pending("req-5")
    assert store.delete("req-5") is True
    assert store.delete("req-5") is False
    assert store.get("req-5") is None


def test_firebase_paths(firebase_store):
    firebase_store.save_pending("abc")
    assert "responses/abc" in firebase_store.tree
    assert firebase_store.tree["responses/abc"]["status"] == "pending"


def test_store_interface_is_abstract():
    from voicerelay.store import ResponseStore

    with pytest.raises(TypeError):
        ResponseStore()

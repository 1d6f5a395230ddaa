# voicerelay/store.py
"""
Response state store.

One record per request_id at responses/{request_id}:
  text       str | None   (AI answer or error message; None while pending)
  status     pending | completed | error
  timestamp  epoch millis, set once when the record is created
  consumed   bool (advisory acknowledgment flag)

Backends:
- FirebaseResponseStore: Firebase Realtime Database (production)
- SqlResponseStore: SQLAlchemy, SQLite by default (local dev / tests)

Each operation is a single key-value call. There are no transactions: a
request_id is written only by the handler invocation that created it.
Storage errors are not caught here.
"""

import time
from abc import ABC, abstractmethod
from typing import Optional

from voicerelay import monitoring
from voicerelay import db as dbmod
from voicerelay.clients import ClientRegistry
from voicerelay.config import RESPONSES_PATH
from voicerelay.schemas import ResponseRecord, ResponseStatus


def _now_ms() -> int:
    return int(time.time() * 1000)


class ResponseStore(ABC):
    @abstractmethod
    def save_pending(self, request_id: str) -> None:
        ...

    @abstractmethod
    def save_completed(self, request_id: str, text: str) -> None:
        ...

    @abstractmethod
    def save_error(self, request_id: str, message: str) -> None:
        ...

    @abstractmethod
    def get(self, request_id: str) -> Optional[ResponseRecord]:
        ...

    @abstractmethod
    def mark_consumed(self, request_id: str) -> bool:
        ...

    @abstractmethod
    def delete(self, request_id: str) -> bool:
        ...


class FirebaseResponseStore(ResponseStore):
    def __init__(self, clients: ClientRegistry):
        self.clients = clients

    def _ref(self, request_id: str):
        from firebase_admin import db as rtdb

        return rtdb.reference(f"{RESPONSES_PATH}/{request_id}", app=self.clients.firebase_app)

    def save_pending(self, request_id: str) -> None:
        monitoring.logger.info("Saving pending response", extra={"request_id": request_id})
        self._ref(request_id).set({
            "text": None,
            "status": ResponseStatus.PENDING.value,
            "timestamp": _now_ms(),
            "consumed": False,
        })

    def save_completed(self, request_id: str, text: str) -> None:
        monitoring.logger.info("Saving completed response", extra={"request_id": request_id})
        self._ref(request_id).update({"text": text, "status": ResponseStatus.COMPLETED.value})

    def save_error(self, request_id: str, message: str) -> None:
        monitoring.logger.info("Saving error response", extra={"request_id": request_id})
        self._ref(request_id).update({"text": message, "status": ResponseStatus.ERROR.value})

    def get(self, request_id: str) -> Optional[ResponseRecord]:
        data = self._ref(request_id).get()
        if not data:
            return None
        return ResponseRecord.from_mapping(request_id, data)

    def mark_consumed(self, request_id: str) -> bool:
        ref = self._ref(request_id)
        if ref.get() is None:
            return False
        ref.update({"consumed": True, "consumed_at": _now_ms()})
        return True

    def delete(self, request_id: str) -> bool:
        ref = self._ref(request_id)
        if ref.get() is None:
            monitoring.logger.info("Response not found, nothing to delete", extra={"request_id": request_id})
            return False
        ref.delete()
        return True


class SqlResponseStore(ResponseStore):
    """Same record shape in a relational table; sessions come from voicerelay.db."""

    def _row_to_record(self, row) -> ResponseRecord:
        return ResponseRecord(
            request_id=row.request_id,
            text=row.text,
            status=row.status,
            timestamp=row.timestamp,
            consumed=row.consumed,
            consumed_at=row.consumed_at,
        )

    def save_pending(self, request_id: str) -> None:
        from voicerelay.models import ResponseRow

        monitoring.logger.info("Saving pending response", extra={"request_id": request_id})
        with dbmod.SessionLocal() as session:
            session.merge(ResponseRow(
                request_id=request_id,
                text=None,
                status=ResponseStatus.PENDING.value,
                timestamp=_now_ms(),
                consumed=False,
                consumed_at=None,
            ))
            session.commit()

    def _set_outcome(self, request_id: str, text: str, status: ResponseStatus) -> None:
        from voicerelay.models import ResponseRow

        with dbmod.SessionLocal() as session:
            row = session.get(ResponseRow, request_id)
            if row is None:
                # mirrors a Realtime Database update() on a missing path
                row = ResponseRow(request_id=request_id, timestamp=_now_ms(), consumed=False)
                session.add(row)
            row.text = text
            row.status = status.value
            session.commit()

    def save_completed(self, request_id: str, text: str) -> None:
        monitoring.logger.info("Saving completed response", extra={"request_id": request_id})
        self._set_outcome(request_id, text, ResponseStatus.COMPLETED)

    def save_error(self, request_id: str, message: str) -> None:
        monitoring.logger.info("Saving error response", extra={"request_id": request_id})
        self._set_outcome(request_id, message, ResponseStatus.ERROR)

    def get(self, request_id: str) -> Optional[ResponseRecord]:
        from voicerelay.models import ResponseRow

        with dbmod.SessionLocal() as session:
            row = session.get(ResponseRow, request_id)
            if row is None:
                return None
            return self._row_to_record(row)

    def mark_consumed(self, request_id: str) -> bool:
        from voicerelay.models import ResponseRow

        with dbmod.SessionLocal() as session:
            row = session.get(ResponseRow, request_id)
            if row is None:
                return False
            row.consumed = True
            row.consumed_at = _now_ms()
            session.commit()
            return True

    def delete(self, request_id: str) -> bool:
        from voicerelay.models import ResponseRow

        with dbmod.SessionLocal() as session:
            row = session.get(ResponseRow, request_id)
            if row is None:
                monitoring.logger.info("Response not found, nothing to delete", extra={"request_id": request_id})
                return False
            session.delete(row)
            session.commit()
            return True


def build_store(clients: ClientRegistry) -> ResponseStore:
    settings = clients.settings
    if settings.store_backend == "sql":
        if settings.database_url != dbmod.DATABASE_URL:
            dbmod.reconfigure(settings.database_url)
        dbmod.init_db()
        return SqlResponseStore()
    return FirebaseResponseStore(clients)

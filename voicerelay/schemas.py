# voicerelay/schemas.py
from enum import Enum
from typing import Optional, Any, Dict
from pydantic import BaseModel, field_validator


class ResponseStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"


class ResponseRecord(BaseModel):
    """Stored state for one request_id."""

    request_id: str
    text: Optional[str] = None
    status: ResponseStatus
    timestamp: int  # epoch millis, set when the record is created
    consumed: bool = False
    consumed_at: Optional[int] = None

    @field_validator("consumed", mode="before")
    @classmethod
    def consumed_defaults_false(cls, v):
        # Realtime Database omits children whose value is null
        return bool(v) if v is not None else False

    @classmethod
    def from_mapping(cls, request_id: str, data: Dict[str, Any]) -> "ResponseRecord":
        return cls(
            request_id=request_id,
            text=data.get("text"),
            status=data.get("status"),
            timestamp=data.get("timestamp") or 0,
            consumed=data.get("consumed"),
            consumed_at=data.get("consumed_at"),
        )

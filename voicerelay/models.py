# voicerelay/models.py
from sqlalchemy import Column, String, Text, BigInteger, Boolean

from voicerelay.db import Base


class ResponseRow(Base):
    __tablename__ = "responses"

    request_id = Column(String(64), primary_key=True)
    text = Column(Text, nullable=True)
    status = Column(String(16), nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    consumed = Column(Boolean, nullable=False, default=False)
    consumed_at = Column(BigInteger, nullable=True)

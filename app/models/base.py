import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.utcnow()


class BaseModel(Base):
    __abstract__ = True

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

"""
Declarative base and common columns for all ORM models.
"""
import uuid
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base
from tracker.core.utils import utcnow

Base = declarative_base()


def generate_id() -> str:
    """Opaque unique identifier for new records."""
    return str(uuid.uuid4())


class BaseModel(Base):
    """Abstract base with id and timestamp columns."""
    __abstract__ = True
    
    id = Column(String(36), primary_key=True, default=generate_id)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

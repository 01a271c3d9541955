"""
Normalized location model referenced by consumption sessions.
"""
from sqlalchemy import Column, String, Float, Boolean, Integer, DateTime
from sqlalchemy.orm import relationship
from tracker.db.base import BaseModel


class Location(BaseModel):
    """A place sessions happen at, created lazily on first reference."""
    __tablename__ = "locations"
    
    name = Column(String(255), nullable=False, index=True)
    full_address = Column(String(500), nullable=False, index=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_favorite = Column(Boolean, default=False, nullable=False)
    is_private = Column(Boolean, default=False, nullable=False)
    nickname = Column(String(100), nullable=True)
    usage_count = Column(Integer, default=0, nullable=False)
    last_used_at = Column(DateTime, nullable=True)
    
    # Relationships
    sessions = relationship("ConsumptionSession", back_populates="location_ref")

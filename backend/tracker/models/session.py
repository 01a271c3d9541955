"""
Consumption session model.
"""
from sqlalchemy import Column, String, Float, Boolean, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from tracker.db.base import BaseModel


class ConsumptionSession(BaseModel):
    """A single logged consumption session."""
    __tablename__ = "consumption_sessions"
    
    # Date and time are kept apart; display logic formats them independently
    date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    time = Column(String(8), nullable=False)  # HH:MM local time
    
    # Legacy free-text location, kept alongside the normalized reference
    location = Column(String(500), nullable=False, default="")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    location_id = Column(String(36), ForeignKey("locations.id"), nullable=True, index=True)
    
    who_with = Column(Text, nullable=False, default="")  # Semicolon-delimited names
    vessel_category = Column(String(50), nullable=False, default="Other", index=True)
    vessel = Column(String(100), nullable=False, index=True)
    accessory_used = Column(String(100), nullable=False, default="N/A")
    my_vessel = Column(Boolean, nullable=False, default=True)
    my_substance = Column(Boolean, nullable=False, default=True)
    
    strain_name = Column(String(200), nullable=False, index=True)
    strain_type = Column(String(50), nullable=True)
    thc_percentage = Column(Float, nullable=True)
    purchased_legally = Column(Boolean, nullable=False, default=True)
    state_purchased = Column(String(50), nullable=True)
    
    # Additives
    tobacco = Column(Boolean, nullable=False, default=False)
    tobacco_product = Column(String(100), nullable=True)
    kief = Column(Boolean, nullable=False, default=False)
    concentrate = Column(Boolean, nullable=False, default=False)
    lavender = Column(Boolean, nullable=False, default=False)
    
    comments = Column(Text, nullable=True)
    quantity = Column(JSON, nullable=False)  # {"amount", "unit", "type"}
    quantity_legacy = Column(Float, nullable=True)
    
    # Relationships
    location_ref = relationship("Location", back_populates="sessions")

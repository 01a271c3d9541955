"""
Feedback note model.
"""
from sqlalchemy import Column, Text, JSON
from tracker.db.base import BaseModel


class FeedbackEntry(BaseModel):
    """Free-text feedback note, unrelated to sessions."""
    __tablename__ = "feedback_entries"
    
    content = Column(Text, nullable=False)
    images = Column(JSON, nullable=True)

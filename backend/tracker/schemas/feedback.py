"""
Pydantic schemas for FeedbackEntry entity.
"""
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


class FeedbackWrite(BaseModel):
    """Schema for feedback creation and update."""
    content: Optional[str] = None
    images: Optional[List[dict]] = None


class FeedbackResponse(BaseModel):
    """Schema for feedback response."""
    id: str
    content: str
    images: Optional[List[dict]] = None
    created_at: datetime
    updated_at: datetime
    
    class Config:
        from_attributes = True

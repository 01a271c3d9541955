"""
Pydantic schemas for SessionImage entity.
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class SessionImageResponse(BaseModel):
    """Schema for session image response."""
    id: str
    session_id: str
    blob_url: str
    filename: str
    file_size: int
    mime_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    alt_text: Optional[str] = None
    created_at: datetime
    
    class Config:
        from_attributes = True


class ImageLinkResponse(BaseModel):
    """Result of re-pointing temporary uploads at a saved session."""
    updated_count: int

"""
Session image model.
"""
from sqlalchemy import Column, String, Integer
from tracker.db.base import BaseModel


class SessionImage(BaseModel):
    """Uploaded image metadata; the file itself lives in the object store."""
    __tablename__ = "session_images"
    
    # Not a foreign key: uploads may carry a temporary id until the session is saved
    session_id = Column(String(100), nullable=False, index=True)
    blob_url = Column(String(500), nullable=False)
    filename = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(50), nullable=False)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    alt_text = Column(String(255), nullable=True)

"""
Image service for session photos.

Files are written under ``UPLOAD_DIR`` and served from ``/static``.
Uploads made before a session is saved carry a temporary session id and
are re-pointed at the real id once the session exists.
"""
import logging
import os
import random
import time
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from tracker.core.config import settings
from tracker.core.exceptions import NotFoundError, ValidationError
from tracker.core.utils import utcnow
from tracker.models.image import SessionImage

logger = logging.getLogger(__name__)

TEMP_SESSION_ID = "temp"


def get_file_url(file_path: str) -> str:
    """Convert file path to URL for static file serving."""
    return f"/static/{os.path.basename(file_path)}"


def make_temp_session_id() -> str:
    """``temp_<epoch ms>_<random>`` placeholder for a session not yet saved."""
    random_part = "".join(random.choices("abcdefghijklmnopqrstuvwxyz0123456789", k=9))
    return f"temp_{int(time.time() * 1000)}_{random_part}"


def resolve_upload_session_id(session_id: Optional[str]) -> str:
    if not session_id or session_id == TEMP_SESSION_ID:
        return make_temp_session_id()
    return session_id


def validate_upload(content_type: Optional[str], size: int) -> None:
    """
    Raises:
        ValidationError: if the file type is not allowed or the file is too large
    """
    if content_type not in settings.ALLOWED_IMAGE_TYPES:
        raise ValidationError(
            f"Invalid file type: {content_type}. Allowed: {', '.join(settings.ALLOWED_IMAGE_TYPES)}",
            ["file"],
        )
    if size > settings.MAX_UPLOAD_SIZE:
        raise ValidationError(
            f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB",
            ["file"],
        )


class ImageStorage:
    """Stores image bytes on the local filesystem."""

    def __init__(self, upload_dir: Optional[str] = None):
        self.upload_dir = upload_dir or settings.UPLOAD_DIR

    def save(self, filename: str, content: bytes) -> str:
        """Write the bytes under a unique name and return their public URL."""
        os.makedirs(self.upload_dir, exist_ok=True)
        file_ext = os.path.splitext(filename or "")[1]
        file_path = os.path.join(self.upload_dir, f"{uuid.uuid4()}{file_ext}")
        with open(file_path, "wb") as buffer:
            buffer.write(content)
        return get_file_url(file_path)

    def delete(self, url: str) -> None:
        file_path = os.path.join(self.upload_dir, os.path.basename(url))
        if os.path.exists(file_path):
            os.remove(file_path)


def upload_image(
    db: Session,
    storage: ImageStorage,
    session_id: Optional[str],
    filename: str,
    content_type: Optional[str],
    content: bytes,
    alt_text: Optional[str] = None,
) -> SessionImage:
    """Validate, store and record an uploaded image."""
    validate_upload(content_type, len(content))
    
    blob_url = storage.save(filename, content)
    image = SessionImage(
        session_id=resolve_upload_session_id(session_id),
        blob_url=blob_url,
        filename=filename,
        file_size=len(content),
        mime_type=content_type,
        alt_text=alt_text,
    )
    db.add(image)
    db.commit()
    db.refresh(image)
    logger.info(f"Stored image {image.id} for session {image.session_id}")
    return image


def get_images_for_session(db: Session, session_id: str) -> List[SessionImage]:
    return db.query(SessionImage).filter(
        SessionImage.session_id == session_id
    ).order_by(SessionImage.created_at).all()


def link_temp_images(db: Session, temp_session_id: str, session_id: str) -> int:
    """Re-point images uploaded under a temporary id; returns how many moved."""
    if not temp_session_id or not session_id:
        raise ValidationError("Both tempSessionId and actualSessionId are required",
                              ["tempSessionId", "actualSessionId"])
    updated = db.query(SessionImage).filter(
        SessionImage.session_id == temp_session_id
    ).update({"session_id": session_id, "updated_at": utcnow()}, synchronize_session=False)
    db.commit()
    return updated


def delete_image(db: Session, storage: ImageStorage, image_id: str) -> None:
    """Delete the file first, then its record."""
    image = db.query(SessionImage).filter(SessionImage.id == image_id).first()
    if not image:
        raise NotFoundError("Image not found")
    storage.delete(image.blob_url)
    db.delete(image)
    db.commit()

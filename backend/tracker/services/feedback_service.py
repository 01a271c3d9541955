"""
Feedback service for free-text notes about the app.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from tracker.core.exceptions import NotFoundError, ValidationError
from tracker.models.feedback import FeedbackEntry
from tracker.schemas.feedback import FeedbackWrite


def _clean_content(data: FeedbackWrite) -> str:
    content = (data.content or "").strip()
    if not content:
        raise ValidationError("Content is required", ["content"])
    return content


def list_feedback(db: Session) -> List[FeedbackEntry]:
    return db.query(FeedbackEntry).order_by(FeedbackEntry.created_at.desc()).all()


def get_feedback(db: Session, feedback_id: str) -> Optional[FeedbackEntry]:
    return db.query(FeedbackEntry).filter(FeedbackEntry.id == feedback_id).first()


def create_feedback(db: Session, data: FeedbackWrite) -> FeedbackEntry:
    entry = FeedbackEntry(content=_clean_content(data), images=data.images or [])
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def update_feedback(db: Session, feedback_id: str, data: FeedbackWrite) -> FeedbackEntry:
    """Replace the content (and images, when sent) of a note."""
    content = _clean_content(data)
    entry = get_feedback(db, feedback_id)
    if not entry:
        raise NotFoundError("Feedback not found")
    entry.content = content
    if data.images is not None:
        entry.images = data.images
    db.commit()
    db.refresh(entry)
    return entry


def delete_feedback(db: Session, feedback_id: str) -> None:
    entry = get_feedback(db, feedback_id)
    if not entry:
        raise NotFoundError("Feedback not found")
    db.delete(entry)
    db.commit()

"""Models package - Import all models for SQLAlchemy registration."""
from tracker.models.location import Location
from tracker.models.session import ConsumptionSession
from tracker.models.feedback import FeedbackEntry
from tracker.models.image import SessionImage

__all__ = [
    "Location",
    "ConsumptionSession",
    "FeedbackEntry",
    "SessionImage",
]

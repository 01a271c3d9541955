"""
Sample sessions for demos and local development.
"""
import logging
from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from tracker.models.session import ConsumptionSession
from tracker.schemas.session import SessionCreate
from tracker.services.quantity_service import encode_quantity
from tracker.services.session_service import create_session

logger = logging.getLogger(__name__)


def _sample(date, time, location, latitude, longitude, who_with, vessel_category, vessel,
            accessory, strain, thc, quantity, **flags) -> dict:
    record = {
        "date": date,
        "time": time,
        "location": location,
        "latitude": latitude,
        "longitude": longitude,
        "who_with": who_with,
        "vessel_category": vessel_category,
        "vessel": vessel,
        "accessory_used": accessory,
        "strain_name": strain,
        "thc_percentage": thc,
        "purchased_legally": True,
        "state_purchased": "California",
        "quantity": encode_quantity(vessel_category, quantity).model_dump(),
        "created_at": f"{date}T{time}:00",
    }
    record.update(flags)
    return record


# San Francisco area sessions spanning two weeks
SAMPLE_SESSIONS: List[dict] = [
    _sample("2024-01-15", "19:30", "Home", 37.7749, -122.4194, [], "Joint", "Joint",
            "Grinder", "Blue Dream", 22, 0.25),
    _sample("2024-01-16", "21:00", "Friend's House", 37.7849, -122.4094, ["Alex", "Jamie"], "Bong", "Bong",
            "N/A", "OG Kush", 25, "small", my_vessel=False, my_substance=False, kief=True),
    _sample("2024-01-18", "16:45", "Golden Gate Park", 37.7694, -122.4862, [], "Pen", "Vape Pen",
            "N/A", "Sour Diesel", 28, 5, concentrate=True),
    _sample("2024-01-20", "20:15", "Dispensary Lounge", 37.7849, -122.4294, ["Casey"], "Dab Rig", "Dab Rig",
            "Dab Tool", "Gorilla Glue #4", 32, 0.1, my_vessel=False, my_substance=False, concentrate=True),
    _sample("2024-01-22", "18:30", "Rooftop", 37.7949, -122.4094, [], "Joint", "Joint",
            "Rolling Papers", "Sunset Sherbet", 20, 0.5),
    _sample("2024-01-25", "22:00", "Home", 37.7749, -122.4194, ["Partner"], "Pipe", "Pipe",
            "Lighter", "Purple Haze", 24, "medium", kief=True),
    _sample("2024-01-28", "17:20", "Beach", 37.7849, -122.5094, ["Group of friends"], "Joint", "Joint",
            "Grinder", "Wedding Cake", 26, 0.75, my_substance=False, tobacco=True),
    _sample("2024-02-02", "19:45", "Coffee Shop", 37.7649, -122.4394, [], "Edible", "Edibles",
            "N/A", "Girl Scout Cookies", 15, 10),
]


def sample_session_drafts() -> List[SessionCreate]:
    """Sample sessions as create payloads (no timestamps)."""
    return [
        SessionCreate(**{key: value for key, value in record.items() if key != "created_at"})
        for record in SAMPLE_SESSIONS
    ]


def seed_sample_sessions(db: Session, force: bool = False) -> int:
    """Insert the sample sessions; skipped when sessions already exist unless forced."""
    if not force and db.query(ConsumptionSession).first():
        logger.info("Database already has sessions, skipping seed.")
        return 0
    
    for record, draft in zip(SAMPLE_SESSIONS, sample_session_drafts()):
        session = create_session(db, draft)
        # Keep the historical timestamps so ordering matches the session dates
        created_at = datetime.fromisoformat(record["created_at"])
        session.created_at = created_at
        session.updated_at = created_at
        db.commit()
    
    return len(SAMPLE_SESSIONS)

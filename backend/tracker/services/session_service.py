"""
Session service for logging, editing and querying consumption sessions.
"""
import json
import logging
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from tracker.core.exceptions import NotFoundError, ValidationError
from tracker.core.utils import utcnow
from tracker.models.image import SessionImage
from tracker.models.session import ConsumptionSession
from tracker.schemas.image import SessionImageResponse
from tracker.schemas.session import (
    BatchResult,
    SessionCreate,
    SessionFilters,
    SessionResponse,
    SessionUpdate,
    StrainAutofill,
    missing_required_fields,
)
from tracker.services import location_service
from tracker.services.quantity_service import get_quantity_config, matches_vessel

logger = logging.getLogger(__name__)

# Columns that may not be cleared by an update
NON_NULLABLE_FIELDS = {
    "date", "time", "location", "who_with", "vessel_category", "vessel",
    "accessory_used", "my_vessel", "my_substance", "strain_name",
    "purchased_legally", "tobacco", "kief", "concentrate", "lavender", "quantity",
}

# Server-assigned keys dropped from records re-submitted by a client
SERVER_ASSIGNED_FIELDS = ("id", "created_at", "updated_at", "location_ref", "images")


def clean_updates(data: SessionUpdate) -> dict:
    """
    Return the fields sent in a partial update, ready to merge.
    
    Explicit nulls on required columns are dropped. Blank required values
    raise ValidationError.
    """
    updates = data.model_dump(exclude_unset=True)
    for field in list(updates):
        if updates[field] is None and field in NON_NULLABLE_FIELDS:
            del updates[field]
    
    empty = [
        field for field in ("date", "time", "vessel_category", "vessel", "strain_name")
        if field in updates and not str(updates[field]).strip()
    ]
    if empty:
        raise ValidationError(f"Required fields cannot be empty: {', '.join(empty)}", empty)
    return updates


def check_quantity_matches_vessel(vessel_category: Optional[str], quantity) -> None:
    """Raise if the quantity type is not the one the vessel category uses."""
    if quantity is not None and not matches_vessel(vessel_category, quantity):
        expected = get_quantity_config(vessel_category)["type"].value
        raise ValidationError(
            f"Quantity type '{quantity.type}' does not match vessel category "
            f"'{vessel_category}' (expected '{expected}')",
            ["quantity"],
        )


def validate_session_data(data: SessionCreate) -> None:
    """
    Check a draft before anything is written.
    
    Raises:
        ValidationError: listing every missing required field, or the
            quantity field when its type does not fit the vessel
    """
    missing = missing_required_fields(data)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing)
    check_quantity_matches_vessel(data.vessel_category, data.quantity)


def create_session(db: Session, data: SessionCreate) -> ConsumptionSession:
    """Validate, resolve the location, and persist a new session."""
    validate_session_data(data)
    
    values = data.model_dump()
    if data.location_id:
        try:
            location = location_service.record_location_use(db, data.location_id)
        except NotFoundError:
            raise ValidationError(f"Location {data.location_id} not found", ["location_id"])
    else:
        location = location_service.resolve_location(db, data.location, data.latitude, data.longitude)
    values["location_id"] = location.id if location else None
    
    session = ConsumptionSession(**values)
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info(f"Created session {session.id} ({session.strain_name}, {session.date})")
    return session


def get_session(db: Session, session_id: str) -> Optional[ConsumptionSession]:
    return db.query(ConsumptionSession).options(
        joinedload(ConsumptionSession.location_ref)
    ).filter(ConsumptionSession.id == session_id).first()


def update_session(db: Session, session_id: str, data: SessionUpdate) -> Optional[ConsumptionSession]:
    """
    Apply a partial update; returns None when the session does not exist.
    
    Changing the location text without naming a ``location_id`` resolves
    the new text like a create does.
    """
    session = get_session(db, session_id)
    if not session:
        return None
    
    updates = clean_updates(data)
    
    if "quantity" in updates or "vessel_category" in updates:
        check_quantity_matches_vessel(
            updates.get("vessel_category", session.vessel_category),
            data.quantity if "quantity" in updates else _stored_quantity(session),
        )
    
    if updates.get("location_id"):
        # Re-sending the current location is not a new reference
        if updates["location_id"] != session.location_id:
            try:
                location_service.record_location_use(db, updates["location_id"])
            except NotFoundError:
                raise ValidationError(f"Location {updates['location_id']} not found", ["location_id"])
    elif "location" in updates and updates["location"] != session.location:
        location = location_service.resolve_location(
            db,
            updates["location"],
            updates.get("latitude", session.latitude),
            updates.get("longitude", session.longitude),
        )
        updates["location_id"] = location.id if location else None
    
    for field, value in updates.items():
        setattr(session, field, value)
    session.updated_at = utcnow()
    
    db.commit()
    db.refresh(session)
    return session


def _stored_quantity(session: ConsumptionSession):
    response = SessionResponse.model_validate(session)
    return response.quantity


def delete_session(db: Session, session_id: str) -> bool:
    """Delete a session; the location's usage count is left as is."""
    session = db.query(ConsumptionSession).filter(ConsumptionSession.id == session_id).first()
    if not session:
        return False
    db.delete(session)
    db.commit()
    return True


def list_sessions(db: Session, filters: Optional[SessionFilters] = None) -> List[ConsumptionSession]:
    """Sessions newest-first, narrowed by the given filters (all must match)."""
    query = db.query(ConsumptionSession).options(joinedload(ConsumptionSession.location_ref))
    
    if filters:
        # ISO dates compare correctly as strings
        if filters.start_date:
            query = query.filter(ConsumptionSession.date >= filters.start_date)
        if filters.end_date:
            query = query.filter(ConsumptionSession.date <= filters.end_date)
        if filters.strain_name:
            query = query.filter(func.lower(ConsumptionSession.strain_name).contains(filters.strain_name.lower()))
        if filters.location:
            query = query.filter(func.lower(ConsumptionSession.location).contains(filters.location.lower()))
        if filters.vessel:
            query = query.filter(func.lower(ConsumptionSession.vessel).contains(filters.vessel.lower()))
    
    query = query.order_by(ConsumptionSession.created_at.desc(), ConsumptionSession.id.desc())
    
    if filters and filters.offset:
        query = query.offset(filters.offset)
    if filters and filters.limit is not None:
        query = query.limit(filters.limit)
    return query.all()


def count_sessions(db: Session) -> int:
    return db.query(ConsumptionSession).count()


def clear_sessions(db: Session) -> int:
    """Delete every session; returns how many were removed."""
    deleted = db.query(ConsumptionSession).delete(synchronize_session=False)
    db.commit()
    logger.warning(f"Cleared {deleted} sessions")
    return deleted


def get_images_by_session(db: Session, session_ids: List[str]) -> dict:
    """Images grouped by the session they belong to."""
    grouped = {session_id: [] for session_id in session_ids}
    if not session_ids:
        return grouped
    images = db.query(SessionImage).filter(
        SessionImage.session_id.in_(session_ids)
    ).order_by(SessionImage.created_at).all()
    for image in images:
        grouped[image.session_id].append(image)
    return grouped


def build_session_response(session: ConsumptionSession, images: Optional[list] = None) -> SessionResponse:
    """
    Convert a stored session into its API shape.
    
    Coordinates of the linked location take priority over those recorded
    on the session itself.
    """
    response = SessionResponse.model_validate(session)
    location = session.location_ref
    if location is not None and location.latitude is not None and location.longitude is not None:
        response.latitude = location.latitude
        response.longitude = location.longitude
    if images is not None:
        response.images = [SessionImageResponse.model_validate(image) for image in images]
    return response


def build_session_responses(db: Session, sessions: List[ConsumptionSession]) -> List[SessionResponse]:
    images = get_images_by_session(db, [session.id for session in sessions])
    return [build_session_response(session, images.get(session.id, [])) for session in sessions]


def export_sessions(db: Session) -> str:
    """All sessions as an indented JSON array, in listing order."""
    records = [
        response.model_dump(mode="json", exclude={"images"})
        for response in build_session_responses(db, list_sessions(db))
    ]
    return json.dumps(records, indent=2)


def get_latest_strain_autofill(
    strain_name: str,
    sessions: Iterable[Any],
    vessel: Optional[str] = None,
) -> Optional[StrainAutofill]:
    """
    Strain metadata from the most recently created matching session.
    
    Names match case-insensitively after trimming; with ``vessel`` given
    only sessions on that vessel count (also matched case-insensitively).
    Blank names never match.
    """
    needle = (strain_name or "").strip().lower()
    if not needle:
        return None
    
    vessel_needle = (vessel or "").strip().lower()
    latest = None
    for session in sessions:
        if (session.strain_name or "").strip().lower() != needle:
            continue
        if vessel_needle and (session.vessel or "").strip().lower() != vessel_needle:
            continue
        # Ties keep the first one seen
        if latest is None or session.created_at > latest.created_at:
            latest = session
    
    if latest is None:
        return None
    return StrainAutofill(
        strain_type=latest.strain_type or "",
        thc_percentage=latest.thc_percentage,
        purchased_legally=latest.purchased_legally if latest.purchased_legally is not None else True,
        state_purchased=latest.state_purchased or "",
    )


def strip_server_fields(record: dict) -> dict:
    """Copy of a client record without server-assigned keys."""
    return {key: value for key, value in record.items() if key not in SERVER_ASSIGNED_FIELDS}


def migrate_local_sessions(db: Session, records: List[dict]) -> BatchResult:
    """
    Write sessions kept on a device into the database.
    
    Each record is created on its own; a bad record is reported and
    skipped without affecting the rest.
    """
    imported = 0
    errors: List[str] = []
    for index, record in enumerate(records, start=1):
        try:
            draft = SessionCreate(**strip_server_fields(record))
            create_session(db, draft)
            imported += 1
        except (ValidationError, SchemaValidationError) as e:
            db.rollback()
            errors.append(f"Session {index}: {getattr(e, 'message', e)}")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error migrating session {index}: {e}")
            errors.append(f"Session {index}: database error")
    
    logger.info(f"Migrated {imported} of {len(records)} local sessions")
    return BatchResult(success=not errors, imported=imported, total=len(records), errors=errors)

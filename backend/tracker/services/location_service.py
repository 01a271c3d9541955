"""
Location service: parsing free-text locations, find-or-create resolution,
favorites, coordinate correction and batch maintenance.
"""
import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tracker.core.config import settings
from tracker.core.exceptions import NotFoundError
from tracker.core.utils import utcnow
from tracker.models.location import Location
from tracker.models.session import ConsumptionSession
from tracker.schemas.location import (
    BackfillReport,
    DedupeReport,
    LocationCreate,
    MigrationReport,
    UniqueLocationResponse,
)
from tracker.services.geocoding_service import GeocodingService

logger = logging.getLogger(__name__)

LEGACY_PREFIX = "legacy-"


@dataclass
class ParsedLocation:
    """Structured parts of a comma-separated location string."""
    name: str
    full_address: str
    city: Optional[str] = None
    state: Optional[str] = None


def parse_location_string(text: str) -> ParsedLocation:
    """
    Split ``"Name, City, State"`` into its parts.
    
    The first segment is the name, the second the city and the third the
    state. With fewer than two commas only the name is extracted. The full
    address is always the input text itself.
    """
    full_address = (text or "").strip()
    parts = [part.strip() for part in full_address.split(",")]
    parsed = ParsedLocation(name=parts[0] or full_address, full_address=full_address)
    if len(parts) >= 3:
        parsed.city = parts[1] or None
        parsed.state = parts[2] or None
    return parsed


def find_matching_location(db: Session, parsed: ParsedLocation) -> Optional[Location]:
    """First location whose name or full address matches exactly."""
    return db.query(Location).filter(
        or_(Location.name == parsed.name, Location.full_address == parsed.full_address)
    ).order_by(Location.created_at, Location.id).first()


def resolve_location(
    db: Session,
    location_text: Optional[str],
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
) -> Optional[Location]:
    """
    Find or create the location referenced by free text.
    
    A match gets one more use and fills in coordinates it lacks; a new row
    starts with a usage count of 1. Changes are flushed, not committed, so
    they land in the caller's transaction.
    """
    if not location_text or not location_text.strip():
        return None
    
    parsed = parse_location_string(location_text)
    have_coordinates = latitude is not None and longitude is not None
    
    location = find_matching_location(db, parsed)
    if location:
        location.usage_count = (location.usage_count or 0) + 1
        location.last_used_at = utcnow()
        # Never overwrite coordinates that are already known
        if have_coordinates and (location.latitude is None or location.longitude is None):
            location.latitude = latitude
            location.longitude = longitude
        db.flush()
        return location
    
    location = Location(
        name=parsed.name,
        full_address=parsed.full_address,
        city=parsed.city,
        state=parsed.state,
        latitude=latitude if have_coordinates else None,
        longitude=longitude if have_coordinates else None,
        usage_count=1,
        last_used_at=utcnow(),
    )
    db.add(location)
    db.flush()
    logger.info(f"Created location {location.id} for '{parsed.full_address}'")
    return location


def record_location_use(db: Session, location_id: str) -> Location:
    """Count one more reference to an existing location."""
    location = db.query(Location).filter(Location.id == location_id).first()
    if not location:
        raise NotFoundError(f"Location {location_id} not found")
    location.usage_count = (location.usage_count or 0) + 1
    location.last_used_at = utcnow()
    db.flush()
    return location


def get_location(db: Session, location_id: str) -> Optional[Location]:
    return db.query(Location).filter(Location.id == location_id).first()


def _ranked(query):
    return query.order_by(
        Location.is_favorite.desc(),
        Location.usage_count.desc(),
        Location.last_used_at.desc(),
    )


def list_locations(db: Session, limit: int = 50) -> List[Location]:
    """All locations, favorites and frequent places first."""
    return _ranked(db.query(Location)).limit(limit).all()


def get_location_suggestions(db: Session, query: str, limit: int = 10) -> List[Location]:
    """Locations whose name, address or city contains the query."""
    needle = (query or "").strip().lower()
    if not needle:
        return list_locations(db, limit)
    
    return _ranked(
        db.query(Location).filter(
            or_(
                func.lower(Location.name).contains(needle),
                func.lower(Location.full_address).contains(needle),
                func.lower(Location.city).contains(needle),
            )
        )
    ).limit(limit).all()


def get_favorite_locations(db: Session) -> List[Location]:
    return db.query(Location).filter(
        Location.is_favorite.is_(True)
    ).order_by(Location.usage_count.desc()).all()


def toggle_favorite(db: Session, location_id: str) -> Location:
    """Flip the favorite flag of a location."""
    location = get_location(db, location_id)
    if not location:
        raise NotFoundError(f"Location {location_id} not found")
    location.is_favorite = not location.is_favorite
    db.commit()
    db.refresh(location)
    return location


def create_location(db: Session, data: LocationCreate) -> Location:
    """Explicitly create a location, independent of any session."""
    values = data.model_dump()
    values["name"] = values["name"].strip()
    values["full_address"] = (values.get("full_address") or values["name"]).strip()
    location = Location(**values, usage_count=0)
    db.add(location)
    db.commit()
    db.refresh(location)
    return location


def update_location_coordinates(
    db: Session,
    location_id: str,
    latitude: float,
    longitude: float,
    address: Optional[str] = None,
) -> Tuple[Optional[Location], int]:
    """
    Correct the coordinates (and optionally the address) of a location.
    
    ``legacy-<text>`` ids address unmigrated sessions that only carry the
    free text; those sessions are updated directly. For normalized
    locations the new coordinates are copied onto every linked session.
    
    Returns:
        The updated location (None for legacy groups) and the number of
        sessions touched.
    """
    if location_id.startswith(LEGACY_PREFIX):
        location_text = location_id[len(LEGACY_PREFIX):]
        values = {"latitude": latitude, "longitude": longitude, "updated_at": utcnow()}
        if address:
            values["location"] = address
        updated = db.query(ConsumptionSession).filter(
            ConsumptionSession.location == location_text,
            ConsumptionSession.location_id.is_(None),
        ).update(values, synchronize_session=False)
        if not updated:
            db.rollback()
            raise NotFoundError(f"No sessions found for location '{location_text}'")
        db.commit()
        return None, updated
    
    location = get_location(db, location_id)
    if not location:
        raise NotFoundError(f"Location {location_id} not found")
    
    location.latitude = latitude
    location.longitude = longitude
    if address:
        location.full_address = address
    
    session_values = {"latitude": latitude, "longitude": longitude, "updated_at": utcnow()}
    if address:
        session_values["location"] = address
    updated = db.query(ConsumptionSession).filter(
        ConsumptionSession.location_id == location_id
    ).update(session_values, synchronize_session=False)
    
    db.commit()
    db.refresh(location)
    return location, updated


def get_unique_locations(db: Session) -> List[UniqueLocationResponse]:
    """Normalized locations plus groups of sessions not yet linked to one."""
    session_counts = dict(
        db.query(ConsumptionSession.location_id, func.count(ConsumptionSession.id))
        .filter(ConsumptionSession.location_id.isnot(None))
        .group_by(ConsumptionSession.location_id)
        .all()
    )
    
    results = []
    for location in db.query(Location).all():
        results.append(UniqueLocationResponse(
            id=location.id,
            name=location.name,
            full_address=location.full_address,
            city=location.city,
            state=location.state,
            country=location.country,
            latitude=location.latitude,
            longitude=location.longitude,
            is_favorite=location.is_favorite,
            is_private=location.is_private,
            usage_count=location.usage_count,
            session_count=session_counts.get(location.id, 0),
            is_legacy=False,
        ))
    
    legacy_rows = db.query(
        ConsumptionSession.location,
        func.max(ConsumptionSession.latitude),
        func.max(ConsumptionSession.longitude),
        func.count(ConsumptionSession.id),
    ).filter(
        ConsumptionSession.location_id.is_(None),
        ConsumptionSession.location != "",
    ).group_by(ConsumptionSession.location).all()
    
    for text, latitude, longitude, count in legacy_rows:
        results.append(UniqueLocationResponse(
            id=f"{LEGACY_PREFIX}{text}",
            name=text,
            full_address=text,
            latitude=latitude,
            longitude=longitude,
            usage_count=count,
            session_count=count,
            is_legacy=True,
        ))
    
    results.sort(key=lambda item: item.session_count, reverse=True)
    return results


def recount_location_usage(db: Session) -> int:
    """Reset every usage count to the number of linked sessions; returns how many changed."""
    counts = dict(
        db.query(ConsumptionSession.location_id, func.count(ConsumptionSession.id))
        .filter(ConsumptionSession.location_id.isnot(None))
        .group_by(ConsumptionSession.location_id)
        .all()
    )
    changed = 0
    for location in db.query(Location).all():
        actual = counts.get(location.id, 0)
        if location.usage_count != actual:
            location.usage_count = actual
            changed += 1
    db.commit()
    return changed


def migrate_session_locations(db: Session) -> MigrationReport:
    """Link every session that only has free-text location to a normalized row."""
    sessions = db.query(ConsumptionSession).filter(
        ConsumptionSession.location_id.is_(None),
        ConsumptionSession.location != "",
    ).order_by(ConsumptionSession.created_at).all()
    
    migrated = 0
    errors: List[str] = []
    for session in sessions:
        try:
            location = resolve_location(db, session.location, session.latitude, session.longitude)
            session.location_id = location.id if location else None
            db.commit()
            migrated += 1
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error migrating location for session {session.id}: {e}")
            errors.append(f"Session {session.id}: database error")
    
    recounted = recount_location_usage(db)
    logger.info(f"Location migration linked {migrated} sessions, {len(errors)} errors")
    return MigrationReport(
        migrated=migrated,
        errors=errors,
        locations_total=db.query(Location).count(),
        recounted=recounted,
    )


def backfill_locations(
    db: Session,
    geocoder: GeocodingService,
    limit: int = 10,
    force: bool = False,
    delay: Optional[float] = None,
) -> BackfillReport:
    """
    Geocode locations that lack coordinates or address components.
    
    Lookups run one at a time with a pause between them to respect the
    providers' rate limits. Known coordinates are never overwritten;
    address components are only replaced when ``force`` is set.
    """
    delay = settings.GEOCODING_DELAY_SECONDS if delay is None else delay
    query = db.query(Location)
    if not force:
        query = query.filter(or_(
            Location.latitude.is_(None),
            Location.longitude.is_(None),
            Location.city.is_(None),
            Location.state.is_(None),
            Location.country.is_(None),
        ))
    locations = query.order_by(Location.usage_count.desc()).limit(limit).all()
    
    updated = 0
    failed = 0
    errors: List[str] = []
    for index, location in enumerate(locations):
        if index and delay:
            time.sleep(delay)
        
        result = geocoder.geocode(location.full_address)
        if not result.has_coordinates and not result.has_address_components:
            failed += 1
            logger.info(f"Backfill found nothing for location {location.id}: {result.error}")
            errors.append(f"{location.name}: {result.error or 'No geocoding results'}")
            continue
        
        changed = False
        if result.has_coordinates and (location.latitude is None or location.longitude is None):
            location.latitude = result.latitude
            location.longitude = result.longitude
            changed = True
        for attr in ("city", "state", "country"):
            value = getattr(result, attr)
            if value and (force or not getattr(location, attr)):
                setattr(location, attr, value)
                changed = True
        
        if changed:
            db.commit()
            updated += 1
            logger.info(f"Backfilled location {location.id} ({location.name})")
    
    return BackfillReport(updated=updated, failed=failed, total=len(locations), errors=errors)


def deduplicate_locations(db: Session) -> DedupeReport:
    """
    Merge locations with the same name and full address, ignoring case.
    
    The oldest row of each group survives; sessions of the others are
    re-pointed at it and usage counts are summed.
    """
    locations = db.query(Location).order_by(Location.created_at, Location.id).all()
    
    keeper_by_key: Dict[Tuple[str, str], Location] = {}
    duplicates: Dict[str, List[Location]] = defaultdict(list)
    for location in locations:
        key = (location.name.strip().lower(), location.full_address.strip().lower())
        keeper = keeper_by_key.get(key)
        if keeper is None:
            keeper_by_key[key] = location
        else:
            duplicates[keeper.id].append(location)
    
    keepers = {location.id: location for location in locations}
    merged = 0
    repointed = 0
    for keeper_id, group in duplicates.items():
        keeper = keepers[keeper_id]
        for duplicate in group:
            repointed += db.query(ConsumptionSession).filter(
                ConsumptionSession.location_id == duplicate.id
            ).update({"location_id": keeper.id}, synchronize_session=False)
            keeper.usage_count = (keeper.usage_count or 0) + (duplicate.usage_count or 0)
            keeper.is_favorite = keeper.is_favorite or duplicate.is_favorite
            if keeper.latitude is None and duplicate.latitude is not None:
                keeper.latitude = duplicate.latitude
                keeper.longitude = duplicate.longitude
            if duplicate.last_used_at and (
                keeper.last_used_at is None or duplicate.last_used_at > keeper.last_used_at
            ):
                keeper.last_used_at = duplicate.last_used_at
            db.delete(duplicate)
            merged += 1
    
    db.commit()
    if merged:
        logger.info(f"Merged {merged} duplicate locations")
    return DedupeReport(merged=merged, kept=len(locations) - merged, sessions_repointed=repointed)

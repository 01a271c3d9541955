"""
Location routes: suggestions, favorites, corrections and batch maintenance.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from tracker.api.dependencies import get_geocoder
from tracker.core.exceptions import NotFoundError
from tracker.db.session import get_db
from tracker.schemas.location import (
    BackfillReport, BackfillRequest, DedupeReport, LocationCreate,
    LocationMaintenanceRequest, LocationResponse, LocationUpdate,
    LocationUpdateResult, MaintenanceResponse, MigrationReport,
    UniqueLocationResponse
)
from tracker.services import location_service
from tracker.services.geocoding_service import GeocodingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/locations", tags=["locations"])


@router.get("", response_model=List[LocationResponse])
async def get_locations(
    q: Optional[str] = None,
    favorites: bool = False,
    limit: int = Query(10, ge=1, le=200),
    db: Session = Depends(get_db)
):
    """Favorites, suggestions matching ``q``, or all locations by usage."""
    if favorites:
        return location_service.get_favorite_locations(db)
    if q:
        return location_service.get_location_suggestions(db, q, limit)
    return location_service.list_locations(db, limit)


@router.post("", response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
async def create_location(
    location_data: LocationCreate,
    db: Session = Depends(get_db)
):
    return location_service.create_location(db, location_data)


@router.get("/unique", response_model=List[UniqueLocationResponse])
async def get_unique_locations(db: Session = Depends(get_db)):
    """Normalized locations plus free-text groups that still need migrating."""
    return location_service.get_unique_locations(db)


@router.put("/coordinates", response_model=LocationUpdateResult)
async def update_coordinates(
    update_data: LocationUpdate,
    db: Session = Depends(get_db)
):
    """Correct coordinates (and optionally the address) of a location."""
    try:
        location, updated = location_service.update_location_coordinates(
            db,
            update_data.location_id,
            update_data.latitude,
            update_data.longitude,
            update_data.address,
        )
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    return LocationUpdateResult(
        location=LocationResponse.model_validate(location) if location else None,
        updated_sessions=updated
    )


# Geocoding blocks on HTTP; plain def handlers run in the threadpool
@router.get("/geocode")
def geocode(
    q: str = Query(..., min_length=1),
    geocoder: GeocodingService = Depends(get_geocoder)
):
    """Look up coordinates and address parts for free text."""
    return geocoder.geocode(q)


@router.get("/reverse-geocode")
def reverse_geocode(
    lat: float,
    lng: float,
    geocoder: GeocodingService = Depends(get_geocoder)
):
    return geocoder.reverse_geocode(lat, lng)


@router.post("/backfill", response_model=BackfillReport)
def backfill_locations(
    request: BackfillRequest,
    db: Session = Depends(get_db),
    geocoder: GeocodingService = Depends(get_geocoder)
):
    """Geocode a batch of locations missing coordinates or address parts."""
    return location_service.backfill_locations(db, geocoder, request.limit, request.force)


@router.post("/maintenance", response_model=MaintenanceResponse)
def run_maintenance(
    request: LocationMaintenanceRequest,
    db: Session = Depends(get_db),
    geocoder: GeocodingService = Depends(get_geocoder)
):
    """Run location migration, backfill, deduplication, or migration plus backfill."""
    migration: Optional[MigrationReport] = None
    backfill: Optional[BackfillReport] = None
    dedupe: Optional[DedupeReport] = None
    
    if request.action in ("migrate", "both"):
        migration = location_service.migrate_session_locations(db)
    if request.action in ("backfill", "both"):
        backfill = location_service.backfill_locations(db, geocoder)
    if request.action == "dedupe":
        dedupe = location_service.deduplicate_locations(db)
    
    logger.info(f"Location maintenance '{request.action}' finished")
    return MaintenanceResponse(
        message=f"Location {request.action} completed",
        migration=migration,
        backfill=backfill,
        dedupe=dedupe,
    )


@router.post("/{location_id}/favorite", response_model=LocationResponse)
async def toggle_favorite(
    location_id: str,
    db: Session = Depends(get_db)
):
    try:
        return location_service.toggle_favorite(db, location_id)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )

"""
Session management routes.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional

from tracker.core.exceptions import ValidationError
from tracker.core.utils import format_error
from tracker.db.session import get_db
from tracker.schemas.session import (
    NameCount, SessionCreate, SessionFilters, SessionResponse, SessionStats,
    SessionUpdate, StrainAutofill, StrainEntry, VesselTreeResponse
)
from tracker.services import autocomplete_service, session_service
from tracker.services.analytics_service import compute_session_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("", response_model=List[SessionResponse])
async def list_sessions(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    strain_name: Optional[str] = Query(None, alias="strainName"),
    location: Optional[str] = None,
    vessel: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=0),
    offset: Optional[int] = Query(None, ge=0),
    db: Session = Depends(get_db)
):
    """List sessions newest-first; every given filter must match."""
    # Blank query parameters mean "no filter"
    filters = SessionFilters(
        start_date=start_date or None,
        end_date=end_date or None,
        strain_name=strain_name or None,
        location=location or None,
        vessel=vessel or None,
        limit=limit,
        offset=offset,
    )
    sessions = session_service.list_sessions(db, filters)
    return session_service.build_session_responses(db, sessions)


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    session_data: SessionCreate,
    db: Session = Depends(get_db)
):
    """Log a new session."""
    try:
        session = session_service.create_session(db, session_data)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=format_error(e.message, e.fields)
        )
    return session_service.build_session_response(session, [])


@router.delete("")
async def clear_sessions(db: Session = Depends(get_db)):
    """Delete every session."""
    deleted = session_service.clear_sessions(db)
    return {"message": "All sessions deleted successfully", "deleted": deleted}


@router.get("/count")
async def count_sessions(db: Session = Depends(get_db)):
    return {"count": session_service.count_sessions(db)}


@router.get("/export")
async def export_sessions(db: Session = Depends(get_db)):
    """Download every session as one JSON document."""
    return Response(
        content=session_service.export_sessions(db),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="sessions-export.json"'}
    )


@router.get("/stats", response_model=SessionStats)
async def get_stats(db: Session = Depends(get_db)):
    """Summary statistics over the whole log."""
    return compute_session_stats(session_service.list_sessions(db))


@router.get("/strain-autofill", response_model=Optional[StrainAutofill])
async def get_strain_autofill(
    strain: str,
    vessel: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Metadata of the latest session with this strain, or null."""
    return session_service.get_latest_strain_autofill(
        strain, session_service.list_sessions(db), vessel
    )


# Autocomplete endpoints (must come before /{session_id})
@router.get("/strains", response_model=List[StrainEntry])
async def get_strains(
    q: Optional[str] = None,
    vessel: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db)
):
    return autocomplete_service.get_strain_entries(db, q, vessel, limit)


@router.get("/who-with", response_model=List[NameCount])
async def get_companions(
    q: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db)
):
    return autocomplete_service.get_companion_counts(db, q, limit)


@router.get("/vessels", response_model=VesselTreeResponse)
async def get_vessels(
    category: Optional[str] = None,
    q: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    return autocomplete_service.get_vessel_tree(db, category, q, limit)


@router.get("/accessories", response_model=List[NameCount])
async def get_accessories(
    q: Optional[str] = None,
    vessel: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db)
):
    return autocomplete_service.get_accessory_counts(db, q, vessel, limit)


@router.get("/tobacco", response_model=List[NameCount])
async def get_tobacco_products(
    q: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db)
):
    return autocomplete_service.get_tobacco_counts(db, q, limit)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    db: Session = Depends(get_db)
):
    session = session_service.get_session(db, session_id)
    if not session:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found"
        )
    return session_service.build_session_responses(db, [session])[0]


@router.put("/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: str,
    session_data: SessionUpdate,
    db: Session = Depends(get_db)
):
    """Apply a partial update to a session."""
    try:
        session = session_service.update_session(db, session_id, session_data)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=format_error(e.message, e.fields)
        )
    if not session:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found"
        )
    return session_service.build_session_responses(db, [session])[0]


@router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    db: Session = Depends(get_db)
):
    if not session_service.delete_session(db, session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found"
        )
    return {"message": "Session deleted successfully"}

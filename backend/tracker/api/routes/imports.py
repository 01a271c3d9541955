"""
Bulk import routes: CSV spreadsheets and sessions kept on a device.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Union

from tracker.db.session import get_db
from tracker.schemas.imports import CSVImportRequest, CSVValidationResult
from tracker.schemas.session import BatchResult, SessionMigrationRequest
from tracker.services import session_service
from tracker.services.csv_import_service import import_csv_sessions, validate_csv

router = APIRouter(tags=["import"])


@router.post("/import", response_model=Union[CSVValidationResult, BatchResult])
async def import_csv(
    request: CSVImportRequest,
    db: Session = Depends(get_db)
):
    """Import CSV rows, or with ``validate`` only check and preview them."""
    if request.validate_only:
        return validate_csv(request.csv_content)
    return import_csv_sessions(db, request.csv_content)


@router.post("/migrate", response_model=BatchResult)
async def migrate_sessions(
    request: SessionMigrationRequest,
    db: Session = Depends(get_db)
):
    """Copy sessions from the on-device store into the database."""
    return session_service.migrate_local_sessions(db, request.sessions)

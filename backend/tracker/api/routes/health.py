"""
Health check routes.
"""
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tracker.db.session import get_db
from tracker.services.session_service import count_sessions

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def check_health(db: Session):
    """Database connectivity and the number of stored sessions."""
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        db.execute(text("SELECT 1"))
        session_count = count_sessions(db)
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "status": "unhealthy",
                "database": "error",
                "error": "Database connection failed",
                "timestamp": timestamp,
            }
        )
    return {
        "status": "healthy",
        "database": "connected",
        "session_count": session_count,
        "timestamp": timestamp,
    }


@router.get("/health")
async def health(db: Session = Depends(get_db)):
    """Health check endpoint."""
    return check_health(db)

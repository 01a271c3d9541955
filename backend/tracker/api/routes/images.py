"""
Session image routes.
"""
import logging
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session
from typing import List, Optional

from tracker.api.dependencies import get_image_storage
from tracker.core.exceptions import NotFoundError, ValidationError
from tracker.core.utils import format_error
from tracker.db.session import get_db
from tracker.schemas.image import ImageLinkResponse, SessionImageResponse
from tracker.services import image_service
from tracker.services.image_service import ImageStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/images", tags=["images"])


@router.post("/upload", response_model=SessionImageResponse, status_code=status.HTTP_201_CREATED)
async def upload_image(
    file: UploadFile = File(...),
    session_id: Optional[str] = Form(None, alias="sessionId"),
    alt_text: Optional[str] = Form(None, alias="altText"),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_image_storage)
):
    """Upload one image; ``sessionId=temp`` files are linked once the session is saved."""
    content = await file.read()
    try:
        return image_service.upload_image(
            db, storage, session_id, file.filename, file.content_type, content, alt_text
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=format_error(e.message, e.fields)
        )


@router.get("", response_model=List[SessionImageResponse])
async def list_images(
    session_id: str = Query(..., alias="sessionId"),
    db: Session = Depends(get_db)
):
    return image_service.get_images_for_session(db, session_id)


@router.patch("/link", response_model=ImageLinkResponse)
async def link_images(
    temp_session_id: str = Query(..., alias="tempSessionId"),
    actual_session_id: str = Query(..., alias="actualSessionId"),
    db: Session = Depends(get_db)
):
    """Move images uploaded under a temporary id onto the saved session."""
    try:
        updated = image_service.link_temp_images(db, temp_session_id, actual_session_id)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=format_error(e.message, e.fields)
        )
    return ImageLinkResponse(updated_count=updated)


@router.delete("/{image_id}")
async def delete_image(
    image_id: str,
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_image_storage)
):
    try:
        image_service.delete_image(db, storage, image_id)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    return {"message": "Image deleted successfully"}

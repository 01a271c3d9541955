"""
Feedback routes.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from tracker.core.exceptions import NotFoundError, ValidationError
from tracker.core.utils import format_error
from tracker.db.session import get_db
from tracker.schemas.feedback import FeedbackResponse, FeedbackWrite
from tracker.services import feedback_service

router = APIRouter(prefix="/feedback", tags=["feedback"])


@router.get("", response_model=List[FeedbackResponse])
async def list_feedback(db: Session = Depends(get_db)):
    return feedback_service.list_feedback(db)


@router.post("", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
async def create_feedback(
    feedback_data: FeedbackWrite,
    db: Session = Depends(get_db)
):
    try:
        return feedback_service.create_feedback(db, feedback_data)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=format_error(e.message, e.fields)
        )


@router.put("/{feedback_id}", response_model=FeedbackResponse)
async def update_feedback(
    feedback_id: str,
    feedback_data: FeedbackWrite,
    db: Session = Depends(get_db)
):
    try:
        return feedback_service.update_feedback(db, feedback_id, feedback_data)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=format_error(e.message, e.fields)
        )
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )


@router.delete("/{feedback_id}")
async def delete_feedback(
    feedback_id: str,
    db: Session = Depends(get_db)
):
    try:
        feedback_service.delete_feedback(db, feedback_id)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    return {"message": "Feedback deleted successfully"}

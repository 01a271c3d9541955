"""
Pydantic schemas for CSV import.
"""
from pydantic import BaseModel, Field
from typing import List

from tracker.schemas.session import SessionCreate


class CSVImportRequest(BaseModel):
    """CSV import request body."""
    csv_content: str = Field(alias="csvContent")
    validate_only: bool = Field(False, alias="validate")
    
    class Config:
        populate_by_name = True


class CSVValidationResult(BaseModel):
    """Header check plus a preview of the first parsed rows."""
    valid: bool
    errors: List[str] = []
    preview: List[SessionCreate] = []

"""
Pydantic schemas for Location entity.
"""
from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime


class LocationBase(BaseModel):
    """Base location schema."""
    name: str
    full_address: str
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_favorite: bool = False
    is_private: bool = False
    nickname: Optional[str] = None


class LocationCreate(BaseModel):
    """Schema for explicit location creation."""
    name: str = Field(min_length=1)
    full_address: Optional[str] = None  # Defaults to name
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    is_favorite: bool = False
    is_private: bool = False
    nickname: Optional[str] = None


class LocationUpdate(BaseModel):
    """Schema for coordinate/address correction."""
    location_id: str = Field(min_length=1)  # "legacy-<text>" targets unmigrated sessions
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: Optional[str] = None


class LocationResponse(LocationBase):
    """Schema for location response."""
    id: str
    usage_count: int
    last_used_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    
    class Config:
        from_attributes = True


class UniqueLocationResponse(BaseModel):
    """Normalized location or a group of unmigrated free-text sessions."""
    id: str  # "legacy-<text>" for unmigrated groups
    name: str
    full_address: str
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_favorite: bool = False
    is_private: bool = False
    usage_count: int
    session_count: int
    is_legacy: bool


class LocationUpdateResult(BaseModel):
    """Result of a coordinate/address correction."""
    location: Optional[LocationResponse] = None
    updated_sessions: int


class LocationMaintenanceRequest(BaseModel):
    """Batch maintenance request."""
    action: Literal["migrate", "backfill", "dedupe", "both"]  # both = migrate then backfill


class BackfillRequest(BaseModel):
    """Geocoding backfill request."""
    limit: int = Field(10, ge=1)
    force: bool = False


class MigrationReport(BaseModel):
    """Result of linking legacy sessions to normalized locations."""
    migrated: int
    errors: List[str] = []
    locations_total: int
    recounted: int  # Locations whose usage_count drifted and was corrected


class BackfillReport(BaseModel):
    """Result of a geocoding backfill batch."""
    updated: int
    failed: int
    total: int
    errors: List[str] = []


class DedupeReport(BaseModel):
    """Result of merging duplicate location rows."""
    merged: int
    kept: int
    sessions_repointed: int


class MaintenanceResponse(BaseModel):
    """Combined maintenance response."""
    message: str
    migration: Optional[MigrationReport] = None
    backfill: Optional[BackfillReport] = None
    dedupe: Optional[DedupeReport] = None

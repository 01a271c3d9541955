"""
Pydantic schemas for ConsumptionSession entity.
"""
from collections.abc import Mapping
from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator
from typing import Any, Iterable, List, Optional, Tuple
from datetime import datetime

from tracker.core.utils import join_companions, split_companions
from tracker.schemas.image import SessionImageResponse
from tracker.schemas.location import LocationResponse
from tracker.schemas.quantity import Quantity


REQUIRED_SESSION_FIELDS = (
    "date",
    "time",
    "location",
    "vessel_category",
    "vessel",
    "strain_name",
    "quantity",
)

_TOBACCO_NO = {"", "none", "n", "no", "false", "0"}
_TOBACCO_YES = {"y", "yes", "true", "1"}


def normalize_tobacco(value: Any) -> Tuple[bool, Optional[str]]:
    """
    Map a legacy tobacco value to ``(used, product_name)``.
    
    Older records hold either a yes/no flag or the name of the tobacco
    product, e.g. ``"Y"`` -> ``(True, None)``, ``"Backwoods"`` ->
    ``(True, "Backwoods")``, ``"None"`` -> ``(False, None)``.
    """
    if value is None:
        return False, None
    if isinstance(value, bool):
        return value, None
    text = str(value).strip()
    lowered = text.lower()
    if lowered in _TOBACCO_NO:
        return False, None
    if lowered in _TOBACCO_YES:
        return True, None
    return True, text


def missing_required_fields(data: Any) -> List[str]:
    """Names of required session fields that are absent or empty."""
    if isinstance(data, Mapping):
        getter = data.get
    else:
        getter = lambda name: getattr(data, name, None)  # noqa: E731
    return [name for name in REQUIRED_SESSION_FIELDS if not getter(name)]


class CompanionFields(BaseModel):
    """Companions are a list in Python and ``;``-joined on the wire."""

    @field_validator("who_with", mode="before", check_fields=False)
    @classmethod
    def parse_who_with(cls, v):
        if v is None:
            return None
        return split_companions(v)

    @field_serializer("who_with", check_fields=False)
    def serialize_who_with(self, v: Optional[List[str]]):
        if v is None:
            return None
        return join_companions(v)

    @model_validator(mode="before")
    @classmethod
    def split_tobacco(cls, data):
        """Accept the legacy string form of ``tobacco``."""
        if isinstance(data, Mapping) and isinstance(data.get("tobacco"), str):
            used, product = normalize_tobacco(data["tobacco"])
            data = dict(data)
            data["tobacco"] = used
            if product and not data.get("tobacco_product"):
                data["tobacco_product"] = product
        return data


class SessionCreate(CompanionFields):
    """
    Schema for session creation.
    
    Required fields are optional here so a missing one is reported together
    with every other missing field, before anything is written.
    """
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_id: Optional[str] = None
    who_with: List[str] = []
    vessel_category: Optional[str] = None
    vessel: Optional[str] = None
    accessory_used: str = "N/A"
    my_vessel: bool = True
    my_substance: bool = True
    strain_name: Optional[str] = None
    strain_type: Optional[str] = None
    thc_percentage: Optional[float] = None
    purchased_legally: bool = True
    state_purchased: Optional[str] = None
    tobacco: bool = False
    tobacco_product: Optional[str] = None
    kief: bool = False
    concentrate: bool = False
    lavender: bool = False
    comments: Optional[str] = None
    quantity: Optional[Quantity] = None
    quantity_legacy: Optional[float] = None

    @field_validator(
        "accessory_used", "my_vessel", "my_substance", "purchased_legally",
        "tobacco", "kief", "concentrate", "lavender",
        mode="before",
    )
    @classmethod
    def null_means_default(cls, v, info):
        """Explicit nulls fall back to the field default."""
        if v is None or (info.field_name == "accessory_used" and v == ""):
            return cls.model_fields[info.field_name].default
        return v


class SessionUpdate(CompanionFields):
    """Schema for partial session update; only sent fields are applied."""
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_id: Optional[str] = None
    who_with: Optional[List[str]] = None
    vessel_category: Optional[str] = None
    vessel: Optional[str] = None
    accessory_used: Optional[str] = None
    my_vessel: Optional[bool] = None
    my_substance: Optional[bool] = None
    strain_name: Optional[str] = None
    strain_type: Optional[str] = None
    thc_percentage: Optional[float] = None
    purchased_legally: Optional[bool] = None
    state_purchased: Optional[str] = None
    tobacco: Optional[bool] = None
    tobacco_product: Optional[str] = None
    kief: Optional[bool] = None
    concentrate: Optional[bool] = None
    lavender: Optional[bool] = None
    comments: Optional[str] = None
    quantity: Optional[Quantity] = None
    quantity_legacy: Optional[float] = None


class SessionResponse(CompanionFields):
    """Schema for session response; also the record shape of the export file."""
    id: str
    date: str
    time: str
    location: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_id: Optional[str] = None
    location_ref: Optional[LocationResponse] = None
    who_with: List[str] = []
    vessel_category: str
    vessel: str
    accessory_used: str = "N/A"
    my_vessel: bool = True
    my_substance: bool = True
    strain_name: str
    strain_type: Optional[str] = None
    thc_percentage: Optional[float] = None
    purchased_legally: bool = True
    state_purchased: Optional[str] = None
    tobacco: bool = False
    tobacco_product: Optional[str] = None
    kief: bool = False
    concentrate: bool = False
    lavender: bool = False
    comments: Optional[str] = None
    quantity: Quantity
    quantity_legacy: Optional[float] = None
    images: List[SessionImageResponse] = []
    created_at: datetime
    updated_at: datetime
    
    class Config:
        from_attributes = True

    def to_create(self) -> SessionCreate:
        """Strip server-assigned fields so the record can be re-submitted."""
        data = self.model_dump(
            exclude={"id", "created_at", "updated_at", "location_id", "location_ref", "images"}
        )
        return SessionCreate(**data)


class SessionFilters(BaseModel):
    """History filters; every present filter must match (logical AND)."""
    start_date: Optional[str] = Field(None, alias="startDate")
    end_date: Optional[str] = Field(None, alias="endDate")
    strain_name: Optional[str] = Field(None, alias="strainName")
    location: Optional[str] = None
    vessel: Optional[str] = None
    limit: Optional[int] = Field(None, ge=0)
    offset: Optional[int] = Field(None, ge=0)
    
    class Config:
        populate_by_name = True

    def is_empty(self) -> bool:
        return all(value is None or value == "" for value in self.model_dump().values())

    def to_query_params(self) -> dict:
        """Camel-case query parameters for the sessions endpoint."""
        return {
            key: value for key, value in self.model_dump(by_alias=True).items()
            if value is not None and value != ""
        }

    def matches(self, record: SessionResponse) -> bool:
        """Check one record against the date range and substring filters."""
        # ISO dates compare correctly as strings
        if self.start_date and record.date < self.start_date:
            return False
        if self.end_date and record.date > self.end_date:
            return False
        for needle, haystack in (
            (self.strain_name, record.strain_name),
            (self.location, record.location),
            (self.vessel, record.vessel),
        ):
            if needle and needle.lower() not in (haystack or "").lower():
                return False
        return True

    def apply(self, records: Iterable[SessionResponse]) -> List[SessionResponse]:
        """Filter and paginate records, keeping their order."""
        selected = [record for record in records if self.matches(record)]
        start = self.offset or 0
        if self.limit is not None:
            return selected[start:start + self.limit]
        return selected[start:]


class StrainAutofill(BaseModel):
    """Metadata copied from the latest session with the same strain."""
    strain_type: str
    thc_percentage: Optional[float] = None
    purchased_legally: bool
    state_purchased: str


class NameCount(BaseModel):
    """Autocomplete entry."""
    name: str
    count: int


class StrainEntry(NameCount):
    """Strain autocomplete entry."""
    last_used: datetime


class VesselCategoryEntry(BaseModel):
    """Vessel category with the vessels logged under it."""
    category: str
    count: int
    vessels: List[NameCount]


class VesselTreeResponse(BaseModel):
    """Vessel autocomplete response."""
    category: Optional[str] = None
    categories: List[VesselCategoryEntry] = []
    vessels: List[NameCount] = []
    total: int


class SessionStats(BaseModel):
    """Summary numbers for the analytics dashboard."""
    total_sessions: int
    most_used_strain: Optional[str] = None
    most_used_vessel: Optional[str] = None
    total_quantity_consumed: float
    favorite_location: Optional[str] = None
    average_sessions_per_week: float


class SessionMigrationRequest(BaseModel):
    """Sessions posted from the on-device store."""
    sessions: List[dict]


class BatchResult(BaseModel):
    """Outcome of a row-by-row batch write."""
    success: bool
    imported: int
    total: int
    errors: List[str] = []


class SyncResult(BaseModel):
    """Outcome of pushing local-only sessions to the server."""
    synced: int
    errors: List[str] = []

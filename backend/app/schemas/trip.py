"""
Trip schemas.

Request bodies and responses for the trip lifecycle, ingestion, detail and
event endpoints. Wire names are camelCase (``deviceId``, ``destLat``,
``clientId``); Python code uses the snake_case attribute names.
"""

from pydantic import AfterValidator, BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, Dict, List, Optional
from datetime import datetime

from backend.app.core.clock import as_utc
from backend.app.models.enums import TravelMode

# Stored timestamps may come back naive (SQLite); responses always carry UTC
UtcDateTime = Annotated[datetime, AfterValidator(as_utc)]


class CamelModel(BaseModel):
    """Base for schemas exchanged with clients."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class TimestampedInput(CamelModel):
    """Normalises an optional client ``timestamp`` to aware UTC."""
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def normalise_timestamp(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class CompanionEntry(CamelModel):
    """Companion snapshot stored on a trip."""
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)


# --- Lifecycle ---

class TripStartRequest(TimestampedInput):
    """Schema for starting a trip."""
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    device_id: Optional[str] = Field(None, max_length=128)
    modes: Optional[List[TravelMode]] = None
    companions: Optional[List[CompanionEntry]] = None
    metadata: Optional[Dict[str, Any]] = None
    dest_lat: Optional[float] = Field(None, ge=-90, le=90)
    dest_lng: Optional[float] = Field(None, ge=-180, le=180)
    dest_address: Optional[str] = Field(None, max_length=1024)


class TripUpdateRequest(CamelModel):
    """
    Partial update of an open trip.

    Only fields present in the request body are applied.
    """
    modes: Optional[List[TravelMode]] = None
    companions: Optional[List[CompanionEntry]] = None
    metadata: Optional[Dict[str, Any]] = None
    dest_lat: Optional[float] = Field(None, ge=-90, le=90)
    dest_lng: Optional[float] = Field(None, ge=-180, le=180)
    dest_address: Optional[str] = Field(None, max_length=1024)


class TripStopRequest(TimestampedInput):
    """Schema for stopping a trip."""
    trip_id: int
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)


class TripResponse(CamelModel):
    """Trip as returned by lifecycle endpoints."""
    id: int
    owner_id: str
    device_id: Optional[str] = None
    started_at: UtcDateTime
    ended_at: Optional[UtcDateTime] = None
    start_lat: Optional[float] = None
    start_lng: Optional[float] = None
    end_lat: Optional[float] = None
    end_lng: Optional[float] = None
    modes: List[str] = []
    companions: Optional[List[Dict[str, Any]]] = None
    metadata: Optional[Dict[str, Any]] = None
    dest_lat: Optional[float] = None
    dest_lng: Optional[float] = None
    distance_meters: Optional[float] = None
    duration_seconds: Optional[int] = None


# --- Ingestion ---

class PointInput(TimestampedInput):
    """One GPS sample. Missing timestamps default to the time of receipt."""
    client_id: Optional[str] = Field(None, min_length=1, max_length=128)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    mode: Optional[TravelMode] = None
    speed: Optional[float] = None
    accuracy: Optional[float] = Field(None, ge=0)
    heading: Optional[float] = None


class LocationIngestRequest(PointInput):
    """Schema for recording a single GPS sample."""
    trip_id: int


class LocationIngestResponse(CamelModel):
    trip_id: int
    recorded: bool


class BatchIngestRequest(CamelModel):
    """Schema for an offline-sync batch (1..1000 points)."""
    trip_id: int
    points: List[PointInput] = Field(..., min_length=1, max_length=1000)


class BatchIngestResponse(CamelModel):
    inserted: int


# --- Detail / listing ---

class TripPointResponse(CamelModel):
    timestamp: UtcDateTime
    lat: float
    lng: float
    speed: Optional[float] = None
    accuracy: Optional[float] = None
    heading: Optional[float] = None
    mode: Optional[str] = None


class TripDetailTrip(TripResponse):
    """Trip fields plus totals derived from its points at read time."""
    dest_address: Optional[str] = None
    average_speed_mps: Optional[float] = None
    distance_by_mode: Dict[str, float] = {}


class TripDetailResponse(CamelModel):
    trip: TripDetailTrip
    points: List[TripPointResponse]


class TripListItem(CamelModel):
    id: int
    started_at: UtcDateTime
    ended_at: Optional[UtcDateTime] = None
    modes: List[str] = []
    distance_meters: Optional[float] = None
    duration_seconds: Optional[int] = None


class TripListResponse(CamelModel):
    """Schema for paginated trip list."""
    total: int
    page: int
    page_size: int
    items: List[TripListItem]


# --- Events ---

class TripEventCreate(CamelModel):
    trip_id: int
    type: str = Field(..., min_length=1, max_length=64)
    data: Optional[Dict[str, Any]] = None


class TripEventResponse(CamelModel):
    id: int
    trip_id: int
    type: str
    data: Optional[Dict[str, Any]] = None
    created_at: UtcDateTime


class TripEventListResponse(CamelModel):
    items: List[TripEventResponse]

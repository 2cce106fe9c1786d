"""
Trip schemas for API requests/responses
"""
from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from tripsync.models.trip import TripRecord


class TripCreate(BaseModel):
    """Schema for creating a new trip"""
    name: str = Field(..., min_length=1, max_length=255)
    members: List[str] = Field(default_factory=list)
    start_date: datetime
    end_date: datetime

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def to_record(self) -> TripRecord:
        return TripRecord(**self.model_dump())


class TripUpdate(BaseModel):
    """Schema for updating a trip; omitted fields keep their value"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    members: Optional[List[str]] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def apply_to(self, record: TripRecord) -> TripRecord:
        return record.model_copy(update=self.model_dump(exclude_unset=True, exclude_none=True))


class TripRead(BaseModel):
    """Schema for trip read response; image bytes are served separately"""
    id: UUID
    name: str
    members: List[str]
    start_date: datetime
    end_date: datetime
    created_at: datetime
    last_message_date: Optional[datetime]
    message_count: int
    has_artifact: bool
    is_ongoing: bool

    @classmethod
    def from_record(cls, record: TripRecord, now: Optional[datetime] = None) -> "TripRead":
        return cls(
            id=record.id,
            name=record.name,
            members=record.members,
            start_date=record.start_date,
            end_date=record.end_date,
            created_at=record.created_at,
            last_message_date=record.last_message_date,
            message_count=record.message_count,
            has_artifact=record.has_artifact,
            is_ongoing=record.is_ongoing_at(now) if now is not None else record.is_ongoing,
        )


class TripListResponse(BaseModel):
    """Collection view with where it came from"""
    owner_id: str
    source: Optional[str] = None
    trips: List[TripRead] = []


class SyncStatus(BaseModel):
    """Outcome of a write as seen by the client"""
    operation: str
    synced: bool
    found: bool = True
    recovery: List[str] = []
    trip: Optional[TripRead] = None


class CategorizationRefresh(BaseModel):
    token: int
    ongoing: int
    past: int


class CoordinatorStatus(BaseModel):
    owner_id: str
    trips: int
    pending_enrichment: int
    active_enrichment_passes: int
    source: Optional[str] = None


class SystemStatus(BaseModel):
    app_name: str
    version: str
    environment: str
    remote_configured: bool
    artifact_provider_configured: bool
    local_backend: str
    in_flight_enrichments: int
    coordinators: List[CoordinatorStatus] = []
    metrics: Dict[str, Any] = {}

"""
Trip record model shared by the coordinator, the stores and the enrichment pipeline
"""
from datetime import datetime, timezone, date
from typing import Optional, List
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def calendar_day(moment: datetime) -> date:
    """Local calendar day of an instant; naive values are taken as local already."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone().date()


class TripRecord(BaseModel):
    """
    A user's trip.

    `artifact` holds the destination background image once enrichment has
    produced one. A non-null artifact is final: the trip never re-enters the
    enrichment pipeline.
    """
    model_config = ConfigDict(
        ser_json_bytes="base64",
        val_json_bytes="base64",
        validate_assignment=True,
    )

    id: UUID = Field(default_factory=uuid4, frozen=True)
    name: str
    members: List[str] = Field(default_factory=list)
    start_date: datetime
    end_date: datetime
    created_at: datetime = Field(default_factory=utcnow, frozen=True)
    last_message_date: Optional[datetime] = None
    message_count: int = Field(default=0, ge=0)
    owner_id: str = ""
    artifact: Optional[bytes] = Field(default=None, repr=False)
    # Set while the latest change exists only in the local snapshot.
    pending_sync: bool = False

    @property
    def has_artifact(self) -> bool:
        return self.artifact is not None

    def is_ongoing_at(self, now: datetime) -> bool:
        return calendar_day(self.end_date) >= calendar_day(now)

    def is_past_at(self, now: datetime) -> bool:
        return not self.is_ongoing_at(now)

    # Volatile: both depend on the wall clock and may flip between calls.
    @property
    def is_ongoing(self) -> bool:
        return self.is_ongoing_at(utcnow())

    @property
    def is_past(self) -> bool:
        return not self.is_ongoing

    def with_artifact(self, artifact: bytes) -> "TripRecord":
        return self.model_copy(update={"artifact": artifact})

    def keeping_artifact_of(self, existing: Optional["TripRecord"]) -> "TripRecord":
        """This record, carrying over `existing`'s artifact when it has none of its own."""
        if self.artifact is None and existing is not None and existing.artifact is not None:
            return self.with_artifact(existing.artifact)
        return self

    def with_message_event(self, at: Optional[datetime] = None) -> "TripRecord":
        return self.model_copy(update={
            "message_count": self.message_count + 1,
            "last_message_date": at or utcnow(),
        })

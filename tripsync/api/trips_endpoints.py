"""
Trip API endpoints - per-owner trip collection backed by the sync coordinator
"""
import io
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from PIL import Image, UnidentifiedImageError

from tripsync.core.dependencies import get_owner_coordinator
from tripsync.core.exceptions import TripNotFoundError
from tripsync.models.trip import TripRecord
from tripsync.schemas.base import Envelope
from tripsync.schemas.trip import (
    CategorizationRefresh,
    SyncStatus,
    TripCreate,
    TripListResponse,
    TripRead,
    TripUpdate,
)
from tripsync.services.sync_coordinator import SyncCoordinator, SyncResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/owners/{owner_id}/trips", tags=["trips"])


def _require_trip(coordinator: SyncCoordinator, trip_id: UUID) -> TripRecord:
    trip = coordinator.get_trip(trip_id)
    if trip is None:
        raise TripNotFoundError(str(trip_id))
    return trip


def _sync_status(result: SyncResult, coordinator: SyncCoordinator) -> SyncStatus:
    current = coordinator.get_trip(result.record.id) if result.record is not None else None
    return SyncStatus(
        operation=result.operation,
        synced=result.synced,
        found=result.found,
        recovery=[action.value for action in result.recovery],
        trip=TripRead.from_record(current) if current is not None else None,
    )


def _read_all(trips: List[TripRecord], now) -> List[TripRead]:
    return [TripRead.from_record(trip, now) for trip in trips]


@router.get("", response_model=Envelope[TripListResponse])
async def list_trips(
    owner_id: str,
    coordinator: SyncCoordinator = Depends(get_owner_coordinator),
):
    """
    Load the owner's trips from the remote store, or from the local snapshot
    when the remote store is unreachable.
    """
    result = await coordinator.sync(owner_id)
    return Envelope(
        status="ok",
        data=TripListResponse(
            owner_id=owner_id,
            source=result.source.value,
            trips=_read_all(result.trips, coordinator.clock()),
        ),
    )


@router.get("/ongoing", response_model=Envelope[List[TripRead]])
async def list_ongoing_trips(coordinator: SyncCoordinator = Depends(get_owner_coordinator)):
    partition = coordinator.categorized()
    return Envelope(status="ok", data=_read_all(list(partition.ongoing), partition.evaluated_at))


@router.get("/past", response_model=Envelope[List[TripRead]])
async def list_past_trips(coordinator: SyncCoordinator = Depends(get_owner_coordinator)):
    partition = coordinator.categorized()
    return Envelope(status="ok", data=_read_all(list(partition.past), partition.evaluated_at))


@router.post("/refresh", response_model=Envelope[CategorizationRefresh])
async def refresh_categorization(coordinator: SyncCoordinator = Depends(get_owner_coordinator)):
    """Re-evaluate the ongoing/past split against the current date."""
    token = coordinator.refresh_categorization()
    partition = coordinator.categorized()
    return Envelope(
        status="ok",
        data=CategorizationRefresh(token=token, ongoing=len(partition.ongoing), past=len(partition.past)),
    )


@router.post("", response_model=Envelope[SyncStatus], status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    coordinator: SyncCoordinator = Depends(get_owner_coordinator),
):
    """
    Create a new trip

    - **name**: Trip name, also used to guess the destination for the background image
    - **members**: Member identifiers
    - **start_date** / **end_date**: Trip dates
    """
    result = await coordinator.add_trip(trip_data.to_record())
    return Envelope(status="ok", data=_sync_status(result, coordinator))


@router.put("/{trip_id}", response_model=Envelope[SyncStatus])
async def update_trip(
    trip_id: UUID,
    update: TripUpdate,
    coordinator: SyncCoordinator = Depends(get_owner_coordinator),
):
    trip = _require_trip(coordinator, trip_id)
    updated = update.apply_to(trip)
    if updated.end_date < updated.start_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_date must not be before start_date",
        )

    result = await coordinator.update_trip(updated)
    if not result.found:
        raise TripNotFoundError(str(trip_id))
    return Envelope(status="ok", data=_sync_status(result, coordinator))


@router.delete("/{trip_id}", response_model=Envelope[SyncStatus])
async def delete_trip(
    trip_id: UUID,
    coordinator: SyncCoordinator = Depends(get_owner_coordinator),
):
    trip = _require_trip(coordinator, trip_id)
    result = await coordinator.delete_trip(trip)
    return Envelope(status="ok", data=_sync_status(result, coordinator))


@router.post("/{trip_id}/messages", response_model=Envelope[SyncStatus])
async def record_message(
    trip_id: UUID,
    coordinator: SyncCoordinator = Depends(get_owner_coordinator),
):
    """Count a chat message against the trip and stamp its time."""
    _require_trip(coordinator, trip_id)
    result = await coordinator.add_message_event(trip_id)
    if not result.found:
        raise TripNotFoundError(str(trip_id))
    return Envelope(status="ok", data=_sync_status(result, coordinator))


@router.get("/{trip_id}/artifact")
async def get_trip_artifact(
    trip_id: UUID,
    coordinator: SyncCoordinator = Depends(get_owner_coordinator),
):
    """Background image bytes for the trip, once enrichment has produced one."""
    trip = _require_trip(coordinator, trip_id)
    if trip.artifact is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip has no background image yet")

    media_type = "application/octet-stream"
    try:
        with Image.open(io.BytesIO(trip.artifact)) as image:
            media_type = Image.MIME.get(image.format, media_type)
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Stored artifact is not a readable image: {e}", extra={"trip_id": str(trip_id)})

    return Response(content=trip.artifact, media_type=media_type)

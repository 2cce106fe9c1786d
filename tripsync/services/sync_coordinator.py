"""
Sync Coordinator - owns a user's trip collection and keeps it in step with the
remote store, falling back to the local snapshot store when the remote store
cannot be reached.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional, Protocol, Tuple
from uuid import UUID

from tripsync.core.exceptions import (
    LocalPersistenceError,
    RecoveryAction,
    RemoteUnavailableError,
)
from tripsync.core.metrics import increment
from tripsync.models.trip import TripRecord, utcnow
from tripsync.services.interfaces import LocalTripCache, RemoteTripGateway

logger = logging.getLogger(__name__)


class TripSource(str, Enum):
    """Where the current collection came from"""
    REMOTE = "remote"
    LOCAL = "local"


class EnrichmentTrigger(Protocol):
    def schedule(self, trips: Iterable[TripRecord]) -> Optional[asyncio.Task]:
        ...


@dataclass
class SyncResult:
    """Outcome of a single coordinator write."""
    operation: str
    record: Optional[TripRecord] = None
    synced: bool = False
    found: bool = True
    remote_error: Optional[RemoteUnavailableError] = None
    local_error: Optional[LocalPersistenceError] = None

    @property
    def recovery(self) -> List[RecoveryAction]:
        return [error.recovery for error in (self.remote_error, self.local_error) if error is not None]


@dataclass
class LoadResult:
    """Outcome of loading an owner's collection."""
    owner_id: str
    trips: List[TripRecord] = field(default_factory=list)
    source: TripSource = TripSource.REMOTE
    remote_error: Optional[RemoteUnavailableError] = None
    local_error: Optional[LocalPersistenceError] = None


@dataclass(frozen=True)
class TripPartition:
    """Ongoing/past split of the collection as of one observation token."""
    token: int
    evaluated_at: datetime
    ongoing: Tuple[TripRecord, ...]
    past: Tuple[TripRecord, ...]


class SyncCoordinator:
    """
    Single owner of the observable trip collection for one user.

    Remote-first, local-fallback for every read and write. Remote failures are
    recovered, never raised; local persistence failures are logged and the
    in-memory collection stays authoritative for the process lifetime.
    Structural changes to the collection happen only under the apply lock.
    """

    def __init__(
        self,
        remote: RemoteTripGateway,
        local: LocalTripCache,
        owner_id: str = "",
        enricher: Optional[EnrichmentTrigger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.remote = remote
        self.local = local
        self.owner_id = owner_id
        self.clock = clock
        self._enricher = enricher
        self._trips: List[TripRecord] = []
        self._apply_lock = asyncio.Lock()
        self._observation_token = 0
        self._partition: Optional[TripPartition] = None
        self.source: Optional[TripSource] = None

    def attach_enricher(self, enricher: EnrichmentTrigger) -> None:
        self._enricher = enricher

    # Reads

    @property
    def trips(self) -> List[TripRecord]:
        return list(self._trips)

    def get_trip(self, trip_id: UUID) -> Optional[TripRecord]:
        for trip in self._trips:
            if trip.id == trip_id:
                return trip
        return None

    @property
    def observation_token(self) -> int:
        return self._observation_token

    def categorized(self) -> TripPartition:
        """
        Ongoing/past split, cached until the next mutation or
        `refresh_categorization` call.
        """
        partition = self._partition
        if partition is None or partition.token != self._observation_token:
            now = self.clock()
            snapshot = tuple(self._trips)
            partition = TripPartition(
                token=self._observation_token,
                evaluated_at=now,
                ongoing=tuple(t for t in snapshot if t.is_ongoing_at(now)),
                past=tuple(t for t in snapshot if t.is_past_at(now)),
            )
            self._partition = partition
        return partition

    @property
    def ongoing_trips(self) -> List[TripRecord]:
        return list(self.categorized().ongoing)

    @property
    def past_trips(self) -> List[TripRecord]:
        return list(self.categorized().past)

    def refresh_categorization(self) -> int:
        """Invalidate the cached partition so day roll-overs show up. No data changes."""
        self._observation_token += 1
        self._partition = None
        return self._observation_token

    # Writes

    async def sync(self, owner_id: Optional[str] = None) -> LoadResult:
        """Load the collection for `owner_id` with full outcome details."""
        if owner_id is not None:
            self.owner_id = owner_id
        owner = self.owner_id
        result = LoadResult(owner_id=owner)

        pushed = False
        try:
            trips = await self.remote.fetch(owner)
            result.source = TripSource.REMOTE
            trips, pushed = await self._push_pending(owner, trips)
        except RemoteUnavailableError as e:
            logger.warning(
                f"Remote load failed, using local snapshot: {e.message}",
                extra={"owner_id": owner, "error_code": e.error_code.value},
            )
            increment("sync.remote_failures")
            result.remote_error = e
            result.source = TripSource.LOCAL
            trips = await self.local.load(owner)

        async with self._apply_lock:
            self._trips = list(trips)
            self.source = result.source
            self._invalidate()
            if pushed:
                result.local_error = await self._persist_locked()
            result.trips = list(self._trips)

        logger.info(
            f"Loaded {len(result.trips)} trips from {result.source.value}",
            extra={"owner_id": owner},
        )
        self._request_enrichment(result.trips)
        return result

    async def load_trips(self, owner_id: Optional[str] = None) -> List[TripRecord]:
        """Load the owner's trips; never fails, worst case an empty list."""
        return (await self.sync(owner_id)).trips

    async def add_trip(self, record: TripRecord) -> SyncResult:
        record = record.model_copy(update={"owner_id": self.owner_id})
        result = SyncResult(operation="add", record=record)

        try:
            await self.remote.insert(record)
            result.synced = True
        except RemoteUnavailableError as e:
            logger.warning(
                f"Remote insert failed, keeping trip locally: {e.message}",
                extra={"trip_id": str(record.id), "owner_id": self.owner_id},
            )
            increment("sync.remote_failures")
            result.remote_error = e

        async with self._apply_lock:
            if not result.synced:
                record = record.model_copy(update={"pending_sync": True})
                result.record = record
            self._trips.append(record)
            self._invalidate()
            if not result.synced:
                result.local_error = await self._persist_locked()

        self._request_enrichment([record])
        return result

    async def update_trip(self, record: TripRecord) -> SyncResult:
        """
        Push an edited trip. The in-memory entry is replaced whatever the
        remote outcome; an id that is no longer in the collection is a no-op.
        """
        existing = self.get_trip(record.id)
        if existing is None:
            logger.debug(f"Ignoring update for unknown trip {record.id}", extra={"trip_id": str(record.id)})
            return SyncResult(operation="update", record=record, found=False)

        record = record.keeping_artifact_of(existing).model_copy(update={"owner_id": self.owner_id})
        result = SyncResult(operation="update", record=record)

        try:
            await self.remote.update(record)
            result.synced = True
        except RemoteUnavailableError as e:
            logger.warning(
                f"Remote update failed, keeping change locally: {e.message}",
                extra={"trip_id": str(record.id), "owner_id": self.owner_id},
            )
            increment("sync.remote_failures")
            result.remote_error = e

        async with self._apply_lock:
            index = self._index_of(record.id)
            if index is None:
                # deleted while the remote call was in flight
                result.found = False
                return result
            current = self._trips[index]
            # enrichment may have stored an image while the remote call was in flight
            record = record.keeping_artifact_of(current).model_copy(
                update={"pending_sync": current.pending_sync or not result.synced}
            )
            result.record = record
            self._trips[index] = record
            self._invalidate()
            if record.pending_sync:
                result.local_error = await self._persist_locked()

        return result

    async def delete_trip(self, record: TripRecord) -> SyncResult:
        """Delete everywhere. The local removal stands even if the remote call fails."""
        result = SyncResult(operation="delete", record=record)

        try:
            await self.remote.delete(record.id, self.owner_id)
            result.synced = True
        except RemoteUnavailableError as e:
            logger.warning(
                f"Remote delete failed, deleting locally: {e.message}",
                extra={"trip_id": str(record.id), "owner_id": self.owner_id},
            )
            increment("sync.remote_failures")
            result.remote_error = e

        async with self._apply_lock:
            index = self._index_of(record.id)
            result.found = index is not None
            if index is not None:
                del self._trips[index]
                self._invalidate()
            result.local_error = await self._persist_locked()

        return result

    async def add_message_event(self, trip_id: UUID) -> SyncResult:
        trip = self.get_trip(trip_id)
        if trip is None:
            return SyncResult(operation="update", found=False)
        return await self.update_trip(trip.with_message_event(self.clock()))

    # Internals

    def _index_of(self, trip_id: UUID) -> Optional[int]:
        for index, trip in enumerate(self._trips):
            if trip.id == trip_id:
                return index
        return None

    async def _push_pending(
        self, owner: str, remote_trips: List[TripRecord]
    ) -> Tuple[List[TripRecord], bool]:
        """
        Push trips written while offline, then merge them into the freshly
        loaded collection. Trips that still cannot be pushed stay pending.
        Returns the merged collection and whether any pending trip was found.
        """
        pending = {t.id: t for t in await self.local.load(owner) if t.pending_sync}
        pending.update({t.id: t for t in self._trips if t.pending_sync and t.owner_id == owner})
        if not pending:
            return remote_trips, False

        merged = {t.id: t for t in remote_trips}
        for record in pending.values():
            loaded = merged.get(record.id)
            record = record.keeping_artifact_of(loaded)
            try:
                if loaded is None:
                    await self.remote.insert(record)
                else:
                    await self.remote.update(record)
            except RemoteUnavailableError as e:
                logger.warning(
                    f"Pending trip still not pushed: {e.message}",
                    extra={"trip_id": str(record.id), "owner_id": owner},
                )
                increment("sync.remote_failures")
            else:
                record = record.model_copy(update={"pending_sync": False})
                increment("sync.pending_pushed")
            merged[record.id] = record

        logger.info(f"Reconciled {len(pending)} pending trips", extra={"owner_id": owner})
        trips = sorted(merged.values(), key=lambda t: t.created_at, reverse=True)
        return trips, True

    def _invalidate(self) -> None:
        self._partition = None

    async def _persist_locked(self) -> Optional[LocalPersistenceError]:
        try:
            await self.local.save(self.owner_id, list(self._trips))
        except LocalPersistenceError as e:
            logger.error(e.message, extra={"owner_id": self.owner_id, "error_code": e.error_code.value})
            increment("sync.local_failures")
            return e
        return None

    def _request_enrichment(self, trips: Iterable[TripRecord]) -> None:
        pending = [trip for trip in trips if trip.artifact is None]
        if self._enricher is None or not pending:
            return
        self._enricher.schedule(pending)

"""
Enrichment Scheduler - fetches destination background images for trips that
do not have one yet.

Trips are processed in fixed-size batches. Each batch runs its fetches
concurrently; batches run one after another with a fixed pause in between to
stay under the image provider's rate limit.
"""

import asyncio
import hashlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set
from uuid import UUID

from tripsync.core.enrichment_guard import EnrichmentGuard
from tripsync.core.exceptions import ArtifactFetchError, ErrorCode
from tripsync.core.metrics import increment
from tripsync.models.trip import TripRecord
from tripsync.services.destination_inference import infer_destination
from tripsync.services.interfaces import ArtifactProvider
from tripsync.services.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 3
DEFAULT_INTER_BATCH_DELAY_SECONDS = 1.0


class EnrichmentOutcome(str, Enum):
    ENRICHED = "enriched"
    IN_FLIGHT = "in_flight"
    ALREADY_PRESENT = "already_present"
    GONE = "gone"
    FAILED = "failed"


@dataclass
class EnrichmentReport:
    """What one enrichment pass did."""
    batch_sizes: List[int] = field(default_factory=list)
    outcomes: Dict[UUID, EnrichmentOutcome] = field(default_factory=dict)
    errors: Dict[UUID, ErrorCode] = field(default_factory=dict)

    def with_outcome(self, outcome: EnrichmentOutcome) -> List[UUID]:
        return [trip_id for trip_id, value in self.outcomes.items() if value is outcome]

    @property
    def enriched(self) -> List[UUID]:
        return self.with_outcome(EnrichmentOutcome.ENRICHED)

    @property
    def failed(self) -> List[UUID]:
        return self.with_outcome(EnrichmentOutcome.FAILED)


def variation_for(trip_id: UUID) -> int:
    """Stable, non-negative variation index derived from the trip id."""
    digest = hashlib.sha256(str(trip_id).encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big")


def partition_batches(trips: List[TripRecord], batch_size: int) -> List[List[TripRecord]]:
    return [trips[i:i + batch_size] for i in range(0, len(trips), batch_size)]


class EnrichmentScheduler:
    """
    Runs enrichment passes for one coordinator.

    The guard may be shared between schedulers; a trip claimed by any of them
    is skipped by all others until the claim is released.
    """

    def __init__(
        self,
        coordinator: SyncCoordinator,
        provider: ArtifactProvider,
        guard: Optional[EnrichmentGuard] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        inter_batch_delay: float = DEFAULT_INTER_BATCH_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.coordinator = coordinator
        self.provider = provider
        self.guard = guard or EnrichmentGuard()
        self.batch_size = batch_size
        self.inter_batch_delay = inter_batch_delay
        self._sleep = sleep
        self._tasks: Set[asyncio.Task] = set()

    async def run_pass(self, trips: Iterable[TripRecord]) -> EnrichmentReport:
        """Enrich every trip in `trips` that has no artifact yet."""
        pending = [trip for trip in trips if trip.artifact is None]
        batches = partition_batches(pending, self.batch_size)
        report = EnrichmentReport()

        if batches:
            logger.info(f"Enriching {len(pending)} trips in {len(batches)} batches")

        for index, batch in enumerate(batches):
            report.batch_sizes.append(len(batch))
            outcomes = await asyncio.gather(*(self._enrich(trip, report) for trip in batch))
            for trip, outcome in zip(batch, outcomes):
                report.outcomes[trip.id] = outcome

            if index < len(batches) - 1:
                await self._sleep(self.inter_batch_delay)

        return report

    async def _enrich(self, trip: TripRecord, report: EnrichmentReport) -> EnrichmentOutcome:
        with self.guard.claim(trip.id) as acquired:
            if not acquired:
                return EnrichmentOutcome.IN_FLIGHT

            current = self.coordinator.get_trip(trip.id)
            if current is None:
                return EnrichmentOutcome.GONE
            if current.artifact is not None:
                return EnrichmentOutcome.ALREADY_PRESENT

            destination = infer_destination(current.name)
            variation = variation_for(current.id)
            log_extra = {"trip_id": str(current.id), "destination": destination}

            try:
                artifact = await self.provider.fetch(destination, variation)
            except ArtifactFetchError as e:
                logger.warning(
                    f"Artifact fetch failed for '{destination}': {e.message}",
                    extra={**log_extra, "error_code": e.error_code.value},
                )
                increment("enrichment.failed")
                report.errors[current.id] = e.error_code
                return EnrichmentOutcome.FAILED
            except Exception as e:
                logger.error(f"Unexpected enrichment error for '{destination}': {e}", extra=log_extra, exc_info=True)
                increment("enrichment.failed")
                report.errors[current.id] = ErrorCode.INTERNAL_SERVER_ERROR
                return EnrichmentOutcome.FAILED

            # Re-read: the trip may have been edited or deleted during the fetch.
            latest = self.coordinator.get_trip(current.id)
            if latest is None:
                return EnrichmentOutcome.GONE

            result = await self.coordinator.update_trip(latest.with_artifact(artifact))
            if not result.found:
                return EnrichmentOutcome.GONE

            increment("enrichment.enriched")
            logger.info(f"Background image stored for '{destination}'", extra=log_extra)
            return EnrichmentOutcome.ENRICHED

    # Background scheduling

    def schedule(self, trips: Iterable[TripRecord]) -> Optional[asyncio.Task]:
        """Start a pass in the background; returns None when nothing needs work."""
        pending = [trip for trip in trips if trip.artifact is None]
        if not pending:
            return None
        task = asyncio.create_task(self.run_pass(pending))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Enrichment pass crashed", exc_info=error)

    @property
    def active_passes(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled pass, including ones scheduled meanwhile."""
        while True:
            running = [task for task in self._tasks if not task.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)

    async def cancel(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()

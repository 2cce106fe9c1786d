"""
Collaborator contracts for the sync coordinator and enrichment scheduler.

Implementations are injected, so tests can substitute in-memory stubs for the
remote store, the local snapshot store and the image provider.
"""

from typing import List, Protocol, runtime_checkable
from uuid import UUID

from tripsync.models.trip import TripRecord


@runtime_checkable
class RemoteTripGateway(Protocol):
    """CRUD against the backing trip store. Failures raise RemoteUnavailableError."""

    async def fetch(self, owner_id: str) -> List[TripRecord]:
        """All trips of `owner_id`, newest `created_at` first."""
        ...

    async def insert(self, record: TripRecord) -> None:
        ...

    async def update(self, record: TripRecord) -> None:
        """Update keyed by `(record.id, record.owner_id)`."""
        ...

    async def delete(self, trip_id: UUID, owner_id: str) -> None:
        ...


@runtime_checkable
class LocalTripCache(Protocol):
    """Best-effort whole-collection snapshots per owner."""

    async def save(self, owner_id: str, records: List[TripRecord]) -> None:
        """Raises LocalPersistenceError when the snapshot cannot be written."""
        ...

    async def load(self, owner_id: str) -> List[TripRecord]:
        """Last snapshot for `owner_id`; empty on miss or corruption."""
        ...


@runtime_checkable
class ArtifactProvider(Protocol):
    """Image source for destination backgrounds. Failures raise ArtifactFetchError."""

    async def fetch(self, query: str, variation: int) -> bytes:
        ...

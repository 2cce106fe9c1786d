"""
Shared test fixtures: in-memory adapters, a recording sleep and an app client.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from tripsync.config.settings import Settings
from tripsync.core.dependencies import ServiceContainer
from tripsync.core.exceptions import (
    ArtifactNotFoundError,
    LocalPersistenceError,
    RemoteUnavailableError,
)
from tripsync.core.metrics import reset_metrics
from tripsync.main import create_app
from tripsync.models.trip import TripRecord

OWNER = "traveler@example.com"
FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_trip(name: str = "Paris Trip", days_from_now: int = 3, owner_id: str = OWNER, **kwargs) -> TripRecord:
    """Trip whose end date is `days_from_now` days after FIXED_NOW (negative for past trips)."""
    end = FIXED_NOW + timedelta(days=days_from_now)
    return TripRecord(
        name=name,
        start_date=kwargs.pop("start_date", end - timedelta(days=5)),
        end_date=end,
        owner_id=owner_id,
        **kwargs,
    )


class StubRemoteGateway:
    """Remote store kept in a dict; flip `available` to simulate an outage."""

    def __init__(self, available: bool = True):
        self.available = available
        self.rows: Dict[str, Dict[UUID, TripRecord]] = {}
        self.calls: List[str] = []

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if not self.available:
            raise RemoteUnavailableError(operation, "connection refused")

    def seed(self, *records: TripRecord) -> None:
        for record in records:
            self.rows.setdefault(record.owner_id, {})[record.id] = record

    def count(self, operation: str) -> int:
        return self.calls.count(operation)

    async def fetch(self, owner_id: str) -> List[TripRecord]:
        self._check("fetch")
        rows = self.rows.get(owner_id, {}).values()
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    async def insert(self, record: TripRecord) -> None:
        self._check("insert")
        self.rows.setdefault(record.owner_id, {})[record.id] = record

    async def update(self, record: TripRecord) -> None:
        self._check("update")
        self.rows.setdefault(record.owner_id, {})[record.id] = record

    async def delete(self, trip_id: UUID, owner_id: str) -> None:
        self._check("delete")
        self.rows.get(owner_id, {}).pop(trip_id, None)


class InMemoryTripCache:
    """Local snapshot store; `fail_saves` makes every save raise."""

    def __init__(self, fail_saves: bool = False):
        self.snapshots: Dict[str, List[TripRecord]] = {}
        self.fail_saves = fail_saves
        self.save_count = 0

    async def save(self, owner_id: str, records: List[TripRecord]) -> None:
        self.save_count += 1
        if self.fail_saves:
            raise LocalPersistenceError(owner_id, "disk full")
        self.snapshots[owner_id] = list(records)

    async def load(self, owner_id: str) -> List[TripRecord]:
        return list(self.snapshots.get(owner_id, []))


class StubArtifactProvider:
    """
    Returns `b"image:<query>"`. Queries in `missing` raise ArtifactNotFoundError.
    When `gate` is set, every fetch waits on it so tests can hold fetches open.
    """

    def __init__(self, missing: Optional[Set[str]] = None, gate: Optional[asyncio.Event] = None):
        self.missing = missing or set()
        self.gate = gate
        self.calls: List[tuple] = []
        self.active = 0
        self.max_active = 0

    async def fetch(self, query: str, variation: int) -> bytes:
        self.calls.append((query, variation))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if query in self.missing:
                raise ArtifactNotFoundError(query)
            return f"image:{query}".encode("utf-8")
        finally:
            self.active -= 1


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class MockRedis:
    """Just enough of redis.asyncio.Redis for CacheClient."""

    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def setex(self, key, ttl, value):
        return await self.set(key, value, ex=ttl)

    async def delete(self, key):
        if self._closed:
            return 0
        return 1 if self.store.pop(key, None) is not None else 0

    async def aclose(self):
        self._closed = True


@pytest.fixture(autouse=True)
def clean_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def remote():
    return StubRemoteGateway()


@pytest.fixture
def local():
    return InMemoryTripCache()


@pytest.fixture
def provider():
    return StubArtifactProvider()


@pytest.fixture
def gated_provider():
    """Provider whose fetches block until `gated_provider.gate.set()`."""
    return StubArtifactProvider(gate=asyncio.Event())


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def trip_factory():
    return make_trip


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        supabase={"url": None, "anon_key": None},
        pexels={"api_key": None},
        local_cache={"directory": str(tmp_path / "trips")},
    )


@pytest_asyncio.fixture
async def container(test_settings, remote, local, provider, fake_sleep):
    service_container = ServiceContainer(
        test_settings,
        remote=remote,
        local=local,
        provider=provider,
        sleep=fake_sleep,
    )
    await service_container.initialize_services()
    yield service_container
    await service_container.cleanup_services()


@pytest_asyncio.fixture
async def async_client(test_settings, container):
    app = create_app(test_settings, container)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

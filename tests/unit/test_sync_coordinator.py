"""
Unit tests for the sync coordinator: remote-first writes, local fallback and
the ongoing/past split
"""
import asyncio
from datetime import timedelta

import pytest

from tripsync.core.exceptions import ErrorCode, RecoveryAction, RemoteUnavailableError
from tripsync.core.metrics import get_metrics_snapshot
from tripsync.services.enrichment_scheduler import EnrichmentScheduler
from tripsync.services.sync_coordinator import SyncCoordinator, TripSource

OWNER = "traveler@example.com"


class RecordingEnricher:
    def __init__(self):
        self.scheduled = []

    def schedule(self, trips):
        self.scheduled.append(list(trips))
        return None


@pytest.fixture
def enricher():
    return RecordingEnricher()


@pytest.fixture
def coordinator(remote, local, enricher, fixed_clock):
    return SyncCoordinator(remote, local, owner_id=OWNER, enricher=enricher, clock=fixed_clock)


# Loading

@pytest.mark.asyncio
async def test_load_uses_remote_and_leaves_snapshot_alone(coordinator, remote, local, trip_factory):
    trip = trip_factory("Tokyo")
    remote.seed(trip)
    local.snapshots[OWNER] = [trip_factory("Older snapshot")]

    result = await coordinator.sync()

    assert result.source is TripSource.REMOTE
    assert [t.id for t in result.trips] == [trip.id]
    assert [t.name for t in local.snapshots[OWNER]] == ["Older snapshot"]
    assert local.save_count == 0


@pytest.mark.asyncio
async def test_load_orders_newest_first(coordinator, remote, trip_factory, now):
    older = trip_factory("Old", created_at=now - timedelta(days=2))
    newer = trip_factory("New", created_at=now)
    remote.seed(older, newer)

    trips = await coordinator.load_trips(OWNER)

    assert [t.name for t in trips] == ["New", "Old"]


@pytest.mark.asyncio
async def test_load_falls_back_to_local_snapshot(coordinator, remote, local, trip_factory):
    cached = trip_factory("Cached")
    local.snapshots[OWNER] = [cached]
    remote.available = False

    result = await coordinator.sync()

    assert result.source is TripSource.LOCAL
    assert result.remote_error is not None
    assert result.remote_error.error_code is ErrorCode.REMOTE_UNAVAILABLE
    assert result.remote_error.recovery is RecoveryAction.USE_LOCAL_SNAPSHOT
    assert [t.id for t in coordinator.trips] == [cached.id]
    assert get_metrics_snapshot()["counters"]["sync.remote_failures"] == 1


@pytest.mark.asyncio
async def test_load_with_nothing_anywhere_is_empty(coordinator, remote):
    remote.available = False
    assert await coordinator.load_trips(OWNER) == []


@pytest.mark.asyncio
async def test_load_is_scoped_to_owner(coordinator, remote, trip_factory):
    remote.seed(trip_factory("Mine"), trip_factory("Theirs", owner_id="someone@else.com"))

    trips = await coordinator.load_trips(OWNER)

    assert [t.name for t in trips] == ["Mine"]


@pytest.mark.asyncio
async def test_load_requests_enrichment_for_trips_without_image(coordinator, remote, enricher, trip_factory):
    bare = trip_factory("Paris")
    done = trip_factory("Rome", artifact=b"jpeg")
    remote.seed(bare, done)

    await coordinator.sync()

    assert [[t.id for t in batch] for batch in enricher.scheduled] == [[bare.id]]


# Adding

@pytest.mark.asyncio
async def test_add_online_inserts_remotely_only(coordinator, remote, local, trip_factory):
    trip = trip_factory("Lisbon", owner_id="")

    result = await coordinator.add_trip(trip)

    assert result.synced
    assert remote.count("insert") == 1
    assert remote.rows[OWNER][trip.id].owner_id == OWNER
    assert local.save_count == 0
    assert coordinator.get_trip(trip.id).owner_id == OWNER


@pytest.mark.asyncio
async def test_add_offline_persists_locally(coordinator, remote, local, enricher, trip_factory):
    remote.available = False
    trip = trip_factory("Offline Trip")

    result = await coordinator.add_trip(trip)

    assert not result.synced
    assert result.recovery == [RecoveryAction.USE_LOCAL_SNAPSHOT]
    assert coordinator.get_trip(trip.id) is not None
    assert [t.id for t in local.snapshots[OWNER]] == [trip.id]
    assert local.snapshots[OWNER][0].pending_sync is True
    assert enricher.scheduled[-1][0].id == trip.id


@pytest.mark.asyncio
async def test_offline_add_is_pushed_after_reconnect(coordinator, remote, local, trip_factory):
    remote.available = False
    trip = trip_factory("Rome Trip")
    await coordinator.add_trip(trip)
    remote.available = True

    trips = await coordinator.load_trips(OWNER)

    assert [t.id for t in trips] == [trip.id]
    assert remote.rows[OWNER][trip.id].name == "Rome Trip"
    assert [t.id for t in local.snapshots[OWNER]] == [trip.id]
    assert local.snapshots[OWNER][0].pending_sync is False
    assert get_metrics_snapshot()["counters"]["sync.pending_pushed"] == 1


@pytest.mark.asyncio
async def test_offline_add_survives_restart(remote, local, fixed_clock, trip_factory):
    remote.available = False
    before = SyncCoordinator(remote, local, owner_id=OWNER, clock=fixed_clock)
    trip = trip_factory("Rome Trip")
    await before.add_trip(trip)
    remote.available = True

    after = SyncCoordinator(remote, local, owner_id=OWNER, clock=fixed_clock)
    await after.sync()

    assert after.get_trip(trip.id).pending_sync is False
    assert trip.id in remote.rows[OWNER]


@pytest.mark.asyncio
async def test_pending_trip_kept_when_push_fails(coordinator, remote, local, trip_factory):
    remote.available = False
    trip = trip_factory("Still offline")
    await coordinator.add_trip(trip)

    class FlakyInsertGateway(type(remote)):
        async def insert(self, record):
            raise RemoteUnavailableError("insert", "timeout")

    flaky = FlakyInsertGateway()
    coordinator.remote = flaky

    result = await coordinator.sync()

    assert result.source is TripSource.REMOTE
    assert coordinator.get_trip(trip.id).pending_sync is True
    assert local.snapshots[OWNER][0].id == trip.id


@pytest.mark.asyncio
async def test_offline_edit_of_remote_trip_is_pushed(coordinator, remote, trip_factory):
    trip = trip_factory("Draft")
    remote.seed(trip)
    await coordinator.sync()
    remote.available = False
    await coordinator.update_trip(trip.model_copy(update={"name": "Edited offline"}))
    remote.available = True

    await coordinator.sync()

    assert remote.rows[OWNER][trip.id].name == "Edited offline"
    assert coordinator.get_trip(trip.id).name == "Edited offline"
    assert coordinator.get_trip(trip.id).pending_sync is False


@pytest.mark.asyncio
async def test_local_failure_is_reported_not_raised(coordinator, remote, local, trip_factory):
    local.fail_saves = True
    remote.available = False

    result = await coordinator.add_trip(trip_factory("Anywhere"))

    assert result.local_error is not None
    assert result.local_error.recovery is RecoveryAction.LOG_AND_IGNORE
    assert len(coordinator.trips) == 1
    assert get_metrics_snapshot()["counters"]["sync.local_failures"] == 1


# Updating

@pytest.mark.asyncio
async def test_update_replaces_entry(coordinator, remote, trip_factory):
    trip = trip_factory("Draft")
    remote.seed(trip)
    await coordinator.sync()

    result = await coordinator.update_trip(trip.model_copy(update={"name": "Final"}))

    assert result.synced
    assert coordinator.get_trip(trip.id).name == "Final"
    assert remote.rows[OWNER][trip.id].name == "Final"


@pytest.mark.asyncio
async def test_update_offline_keeps_change_and_snapshots(coordinator, remote, local, trip_factory):
    trip = trip_factory("Draft")
    remote.seed(trip)
    await coordinator.sync()
    remote.available = False

    result = await coordinator.update_trip(trip.model_copy(update={"name": "Edited offline"}))

    assert not result.synced
    assert coordinator.get_trip(trip.id).name == "Edited offline"
    assert local.snapshots[OWNER][0].name == "Edited offline"


@pytest.mark.asyncio
async def test_update_unknown_trip_is_noop(coordinator, remote, trip_factory):
    result = await coordinator.update_trip(trip_factory("Ghost"))

    assert result.found is False
    assert remote.count("update") == 0
    assert coordinator.trips == []


@pytest.mark.asyncio
async def test_message_event_bumps_count_and_date(coordinator, remote, trip_factory, now):
    trip = trip_factory("Chatty")
    remote.seed(trip)
    await coordinator.sync()

    await coordinator.add_message_event(trip.id)
    await coordinator.add_message_event(trip.id)

    updated = coordinator.get_trip(trip.id)
    assert updated.message_count == 2
    assert updated.last_message_date == now


# Deleting

@pytest.mark.asyncio
async def test_delete_removes_locally_even_when_remote_fails(coordinator, remote, local, trip_factory):
    trip = trip_factory("Doomed")
    remote.seed(trip)
    await coordinator.sync()
    remote.available = False

    result = await coordinator.delete_trip(trip)

    assert not result.synced
    assert result.found
    assert coordinator.get_trip(trip.id) is None
    assert local.snapshots[OWNER] == []


@pytest.mark.asyncio
async def test_delete_online_also_rewrites_snapshot(coordinator, remote, local, trip_factory):
    keep, drop = trip_factory("Keep"), trip_factory("Drop")
    remote.seed(keep, drop)
    await coordinator.sync()

    await coordinator.delete_trip(drop)

    assert drop.id not in remote.rows[OWNER]
    assert [t.id for t in local.snapshots[OWNER]] == [keep.id]


# Concurrency

@pytest.mark.asyncio
async def test_concurrent_adds_all_land(coordinator, trip_factory):
    trips = [trip_factory(f"Trip {i}") for i in range(20)]

    await asyncio.gather(*(coordinator.add_trip(t) for t in trips))

    assert {t.id for t in coordinator.trips} == {t.id for t in trips}


@pytest.mark.asyncio
async def test_delete_during_update_wins(remote, local, fixed_clock, trip_factory):
    """An update whose remote call is still in flight must not resurrect a deleted trip."""
    release = asyncio.Event()

    class SlowUpdateGateway(type(remote)):
        async def update(self, record):
            await release.wait()
            await super().update(record)

    slow = SlowUpdateGateway()
    coordinator = SyncCoordinator(slow, local, owner_id=OWNER, clock=fixed_clock)
    trip = trip_factory("Race")
    slow.seed(trip)
    await coordinator.sync()

    update = asyncio.create_task(coordinator.update_trip(trip.model_copy(update={"name": "Late"})))
    await asyncio.sleep(0)
    await coordinator.delete_trip(trip)
    release.set()
    result = await update

    assert result.found is False
    assert coordinator.get_trip(trip.id) is None


@pytest.mark.asyncio
async def test_edit_in_flight_keeps_image_stored_meanwhile(remote, local, provider, fake_sleep, fixed_clock, trip_factory):
    """A message event started before enrichment finished must not drop the new image."""
    release = asyncio.Event()

    class SlowEditGateway(type(remote)):
        async def update(self, record):
            if record.artifact is None:
                await release.wait()
            await super().update(record)

    slow = SlowEditGateway()
    coordinator = SyncCoordinator(slow, local, owner_id=OWNER, clock=fixed_clock)
    scheduler = EnrichmentScheduler(coordinator, provider, sleep=fake_sleep)
    trip = trip_factory("Paris")
    slow.seed(trip)
    await coordinator.sync()

    message = asyncio.create_task(coordinator.add_message_event(trip.id))
    await asyncio.sleep(0)
    await scheduler.run_pass(coordinator.trips)
    release.set()
    await message
    await scheduler.run_pass(coordinator.trips)

    updated = coordinator.get_trip(trip.id)
    assert updated.artifact == b"image:France"
    assert updated.message_count == 1
    assert len(provider.calls) == 1


# Categorization

@pytest.mark.asyncio
async def test_ongoing_and_past_partition(coordinator, remote, trip_factory):
    today = trip_factory("Ends today", days_from_now=0)
    future = trip_factory("Upcoming", days_from_now=10)
    finished = trip_factory("Last year", days_from_now=-300)
    yesterday = trip_factory("Yesterday", days_from_now=-1)
    remote.seed(today, future, finished, yesterday)

    await coordinator.sync()

    assert {t.name for t in coordinator.ongoing_trips} == {"Ends today", "Upcoming"}
    assert {t.name for t in coordinator.past_trips} == {"Last year", "Yesterday"}
    assert len(coordinator.ongoing_trips) + len(coordinator.past_trips) == len(coordinator.trips)


@pytest.mark.asyncio
async def test_categorization_cached_until_refresh(remote, local, trip_factory, now):
    clock_now = [now]
    coordinator = SyncCoordinator(remote, local, owner_id=OWNER, clock=lambda: clock_now[0])
    remote.seed(trip_factory("Ends today", days_from_now=0))
    await coordinator.sync()

    assert len(coordinator.ongoing_trips) == 1

    clock_now[0] = now + timedelta(days=1)
    assert len(coordinator.ongoing_trips) == 1

    token = coordinator.refresh_categorization()

    assert token == coordinator.observation_token
    assert coordinator.ongoing_trips == []
    assert len(coordinator.past_trips) == 1


@pytest.mark.asyncio
async def test_refresh_does_not_touch_data(coordinator, remote, local, trip_factory):
    remote.seed(trip_factory("Steady"))
    await coordinator.sync()
    calls, saves = list(remote.calls), local.save_count

    coordinator.refresh_categorization()

    assert remote.calls == calls
    assert local.save_count == saves

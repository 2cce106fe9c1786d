"""
Integration tests for the trip endpoints, with in-memory adapters behind the app
"""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from httpx import AsyncClient

OWNER = "traveler@example.com"
BASE = f"/api/v1/owners/{OWNER}/trips"


def trip_payload(name: str, ends_in_days: int = 5) -> dict:
    end = datetime.now(timezone.utc) + timedelta(days=ends_in_days)
    return {
        "name": name,
        "members": ["ana@example.com"],
        "start_date": (end - timedelta(days=3)).isoformat(),
        "end_date": end.isoformat(),
    }


async def create(client: AsyncClient, name: str, ends_in_days: int = 5) -> dict:
    response = await client.post(BASE, json=trip_payload(name, ends_in_days))
    assert response.status_code == 201
    return response.json()["data"]["trip"]


@pytest.mark.asyncio
async def test_create_trip_then_image_arrives(async_client, container, remote, provider):
    response = await async_client.post(BASE, json=trip_payload("🇯🇵 Tokyo Adventure"))

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "ok"
    assert body["data"]["synced"] is True
    trip = body["data"]["trip"]
    assert trip["has_artifact"] is False
    assert trip["is_ongoing"] is True

    await container.get_scheduler(OWNER).drain()

    artifact = await async_client.get(f"{BASE}/{trip['id']}/artifact")
    assert artifact.status_code == 200
    assert artifact.content == b"image:Japan"
    assert provider.calls[0][0] == "Japan"
    assert remote.count("insert") == 1


@pytest.mark.asyncio
async def test_list_reports_remote_source(async_client):
    await create(async_client, "Paris, France")

    response = await async_client.get(BASE)

    data = response.json()["data"]
    assert data["source"] == "remote"
    assert [t["name"] for t in data["trips"]] == ["Paris, France"]


@pytest.mark.asyncio
async def test_list_falls_back_to_local_when_remote_down(async_client, remote):
    await async_client.get(BASE)
    remote.available = False
    await create(async_client, "Offline Lisbon")

    response = await async_client.get(BASE)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["source"] == "local"
    assert [t["name"] for t in data["trips"]] == ["Offline Lisbon"]


@pytest.mark.asyncio
async def test_trip_created_offline_reaches_remote_on_reconnect(async_client, remote):
    remote.available = False
    trip = await create(async_client, "Rome Trip")
    remote.available = True

    response = await async_client.get(BASE)

    data = response.json()["data"]
    assert data["source"] == "remote"
    assert [t["name"] for t in data["trips"]] == ["Rome Trip"]
    assert str(next(iter(remote.rows[OWNER]))) == trip["id"]


@pytest.mark.asyncio
async def test_create_while_offline_still_succeeds(async_client, remote):
    remote.available = False

    response = await async_client.post(BASE, json=trip_payload("Berlin"))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["synced"] is False
    assert data["recovery"] == ["use_local_snapshot"]


@pytest.mark.asyncio
async def test_update_trip_fields(async_client):
    trip = await create(async_client, "Draft")

    response = await async_client.put(f"{BASE}/{trip['id']}", json={"name": "Kyoto temples"})

    assert response.status_code == 200
    assert response.json()["data"]["trip"]["name"] == "Kyoto temples"


@pytest.mark.asyncio
async def test_update_unknown_trip_is_404(async_client):
    response = await async_client.put(f"{BASE}/{uuid4()}", json={"name": "Nowhere"})

    assert response.status_code == 404
    body = response.json()
    assert body["status"] == "error"
    assert body["error_code"] == "TRIP_NOT_FOUND"


@pytest.mark.asyncio
async def test_end_before_start_is_rejected(async_client):
    payload = trip_payload("Backwards")
    payload["start_date"], payload["end_date"] = payload["end_date"], payload["start_date"]

    response = await async_client.post(BASE, json=payload)

    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_message_event_counts(async_client):
    trip = await create(async_client, "Group chat")

    await async_client.post(f"{BASE}/{trip['id']}/messages")
    response = await async_client.post(f"{BASE}/{trip['id']}/messages")

    updated = response.json()["data"]["trip"]
    assert updated["message_count"] == 2
    assert updated["last_message_date"] is not None


@pytest.mark.asyncio
async def test_delete_removes_trip(async_client, remote):
    trip = await create(async_client, "Cancelled")
    remote.available = False

    response = await async_client.delete(f"{BASE}/{trip['id']}")

    assert response.status_code == 200
    assert response.json()["data"]["synced"] is False
    remote.available = True
    listed = (await async_client.get(f"{BASE}/ongoing")).json()["data"]
    assert listed == []


@pytest.mark.asyncio
async def test_ongoing_and_past_views(async_client):
    await create(async_client, "Upcoming", ends_in_days=10)
    await create(async_client, "Finished", ends_in_days=-30)

    ongoing = (await async_client.get(f"{BASE}/ongoing")).json()["data"]
    past = (await async_client.get(f"{BASE}/past")).json()["data"]

    assert [t["name"] for t in ongoing] == ["Upcoming"]
    assert [t["name"] for t in past] == ["Finished"]


@pytest.mark.asyncio
async def test_refresh_bumps_token(async_client):
    first = (await async_client.post(f"{BASE}/refresh")).json()["data"]
    second = (await async_client.post(f"{BASE}/refresh")).json()["data"]

    assert second["token"] == first["token"] + 1


@pytest.mark.asyncio
async def test_artifact_missing_is_404(async_client, provider):
    provider.missing = {"Atlantis"}
    trip = await create(async_client, "Atlantis")

    response = await async_client.get(f"{BASE}/{trip['id']}/artifact")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_owners_are_isolated(async_client):
    await create(async_client, "Mine")

    response = await async_client.get("/api/v1/owners/someone@else.com/trips")

    assert response.json()["data"]["trips"] == []


@pytest.mark.asyncio
async def test_request_id_is_echoed(async_client):
    response = await async_client.get(BASE, headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_health_and_status(async_client, container):
    await create(async_client, "Monitored")

    health = (await async_client.get("/api/v1/health")).json()["data"]
    status = (await async_client.get("/api/v1/status")).json()["data"]

    assert health["status"] == "degraded"
    assert status["coordinators"][0]["owner_id"] == OWNER
    assert status["coordinators"][0]["trips"] == 1
    assert "timers" in status["metrics"]

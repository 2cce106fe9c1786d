"""
Local trip snapshot stores.

The local store is the fallback used whenever the remote store cannot be
reached. It keeps one full-collection snapshot per owner and never raises on
read: a missing or corrupted snapshot reads as an empty collection.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from tripsync.core.cache_client import CacheClient
from tripsync.core.exceptions import LocalPersistenceError
from tripsync.models.trip import TripRecord

logger = logging.getLogger(__name__)

_snapshot_adapter = TypeAdapter(List[TripRecord])
# Characters kept as-is in snapshot file names; everything else is percent-encoded.
_SAFE_KEY_CHARS = "@.-_"


def encode_snapshot(owner_id: str, records: List[TripRecord]) -> bytes:
    try:
        return _snapshot_adapter.dump_json(records)
    except PydanticSerializationError as e:
        raise LocalPersistenceError(owner_id, f"serialization failed: {e}") from e


def decode_snapshot(owner_id: str, payload) -> List[TripRecord]:
    try:
        return _snapshot_adapter.validate_json(payload)
    except ValidationError as e:
        logger.warning(
            f"Discarding corrupted trip snapshot: {e.error_count()} errors",
            extra={"owner_id": owner_id},
        )
        return []


class FileTripCache:
    """
    Snapshot store writing one JSON file per owner (`SavedTrips_<owner>.json`).
    Writes go through a temp file and an atomic rename.
    """

    def __init__(self, directory, key_prefix: str = "SavedTrips_"):
        self.directory = Path(directory)
        self.key_prefix = key_prefix

    def path_for(self, owner_id: str) -> Path:
        safe_owner = quote(owner_id, safe=_SAFE_KEY_CHARS)
        return self.directory / f"{self.key_prefix}{safe_owner}.json"

    def _write(self, path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "wb") as f:
            f.write(payload)
        os.replace(tmp_path, path)

    async def save(self, owner_id: str, records: List[TripRecord]) -> None:
        payload = encode_snapshot(owner_id, records)
        path = self.path_for(owner_id)
        try:
            await asyncio.to_thread(self._write, path, payload)
        except OSError as e:
            raise LocalPersistenceError(owner_id, str(e)) from e
        logger.debug(f"Saved {len(records)} trips to {path}", extra={"owner_id": owner_id})

    async def load(self, owner_id: str) -> List[TripRecord]:
        path = self.path_for(owner_id)
        try:
            payload = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning(f"Could not read trip snapshot {path}: {e}", extra={"owner_id": owner_id})
            return []
        return decode_snapshot(owner_id, payload)


class RedisTripCache:
    """Snapshot store keeping each owner's collection under one Redis key."""

    def __init__(self, cache_client: CacheClient, key_prefix: str = "SavedTrips_", ttl_seconds: Optional[int] = None):
        self.cache_client = cache_client
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds

    def key_for(self, owner_id: str) -> str:
        return f"{self.key_prefix}{owner_id}"

    async def save(self, owner_id: str, records: List[TripRecord]) -> None:
        payload = encode_snapshot(owner_id, records).decode("utf-8")
        stored = await self.cache_client.set(self.key_for(owner_id), payload, self.ttl_seconds)
        if not stored:
            raise LocalPersistenceError(owner_id, "Redis unavailable")

    async def load(self, owner_id: str) -> List[TripRecord]:
        payload = await self.cache_client.get(self.key_for(owner_id))
        if not payload:
            return []
        return decode_snapshot(owner_id, payload)

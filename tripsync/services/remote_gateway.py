"""
Supabase Trip Gateway - remote trip storage over the Supabase REST (PostgREST) API.
"""

import base64
import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tripsync.config.settings import SupabaseSettings, get_settings
from tripsync.core.exceptions import RemoteUnavailableError
from tripsync.core.metrics import record_latency
from tripsync.models.trip import TripRecord

logger = logging.getLogger(__name__)


class SupabaseTripRow(BaseModel):
    """Row shape of the `trips` table."""
    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    name: str
    members: List[str] = Field(default_factory=list)
    start_date: datetime
    end_date: datetime
    user_email: str
    created_at: datetime
    last_message_date: Optional[datetime] = None
    message_count: int = 0
    background_image: Optional[str] = None  # base64

    @classmethod
    def from_record(cls, record: TripRecord) -> "SupabaseTripRow":
        return cls(
            id=record.id,
            name=record.name,
            members=list(record.members),
            start_date=record.start_date,
            end_date=record.end_date,
            user_email=record.owner_id,
            created_at=record.created_at,
            last_message_date=record.last_message_date,
            message_count=record.message_count,
            background_image=(
                base64.b64encode(record.artifact).decode("ascii") if record.artifact is not None else None
            ),
        )

    def to_record(self) -> TripRecord:
        return TripRecord(
            id=self.id,
            name=self.name,
            members=self.members,
            start_date=self.start_date,
            end_date=self.end_date,
            created_at=self.created_at,
            last_message_date=self.last_message_date,
            message_count=self.message_count,
            owner_id=self.user_email,
            artifact=base64.b64decode(self.background_image) if self.background_image else None,
        )


class SupabaseTripGateway:
    """
    RemoteTripGateway over a Supabase project.

    Every call is scoped by owner (`user_email` column). Any failure to
    reach or complete a call is raised as RemoteUnavailableError; the
    coordinator decides what to do about it.
    """

    def __init__(
        self,
        settings: Optional[SupabaseSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings().supabase
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        if not self.settings.is_configured:
            logger.warning(
                "Supabase not configured, remote trip sync disabled. "
                "Set SUPABASE_URL and SUPABASE_ANON_KEY."
            )

    @property
    def table_url(self) -> str:
        return f"{self.settings.url.rstrip('/')}/rest/v1/{self.settings.trips_table}"

    def _get_headers(self) -> dict:
        return {
            "apikey": self.settings.anon_key or "",
            "Authorization": f"Bearer {self.settings.anon_key}",
            "Content-Type": "application/json",
        }

    def _get_client(self, operation: str) -> httpx.AsyncClient:
        if not self.settings.is_configured:
            raise RemoteUnavailableError(operation, "Supabase is not configured")
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self._get_headers(),
                timeout=self.settings.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def _request(self, operation: str, method: str, **kwargs) -> httpx.Response:
        client = self._get_client(operation)
        try:
            with record_latency(f"remote.{operation}"):
                response = await client.request(method, self.table_url, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteUnavailableError(operation, f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            raise RemoteUnavailableError(
                operation,
                f"HTTP {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:200]},
            )
        return response

    @staticmethod
    def _scope(trip_id: UUID, owner_id: str) -> dict:
        return {"id": f"eq.{trip_id}", "user_email": f"eq.{owner_id}"}

    async def fetch(self, owner_id: str) -> List[TripRecord]:
        response = await self._request(
            "fetch",
            "GET",
            params={
                "select": "*",
                "user_email": f"eq.{owner_id}",
                "order": "created_at.desc",
            },
        )
        try:
            rows = [SupabaseTripRow.model_validate(row) for row in response.json()]
        except (ValueError, TypeError, ValidationError) as e:
            raise RemoteUnavailableError("fetch", f"unreadable response: {e}") from e

        logger.info(f"Fetched {len(rows)} trips from Supabase", extra={"owner_id": owner_id})
        return [row.to_record() for row in rows]

    async def insert(self, record: TripRecord) -> None:
        row = SupabaseTripRow.from_record(record)
        await self._request(
            "insert",
            "POST",
            content=row.model_dump_json(),
            headers={"Prefer": "return=minimal"},
        )
        logger.info(f"Trip inserted: {record.name}", extra={"trip_id": str(record.id)})

    async def update(self, record: TripRecord) -> None:
        row = SupabaseTripRow.from_record(record)
        excluded = {"id", "user_email", "created_at"}
        # A stored image is final; a copy without one must not clear it.
        if row.background_image is None:
            excluded.add("background_image")
        await self._request(
            "update",
            "PATCH",
            params=self._scope(record.id, record.owner_id),
            content=row.model_dump_json(exclude=excluded),
            headers={"Prefer": "return=minimal"},
        )

    async def delete(self, trip_id: UUID, owner_id: str) -> None:
        await self._request("delete", "DELETE", params=self._scope(trip_id, owner_id))
        logger.info("Trip deleted from Supabase", extra={"trip_id": str(trip_id)})

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

"""
Dependency injection setup for FastAPI.
Provides dependency providers for the trip sync services with lifecycle management.
"""

from fastapi import Depends, Request, HTTPException
from typing import Dict, Optional
import logging
import asyncio

from tripsync.config.settings import CacheBackend, Settings, get_settings
from tripsync.core.cache_client import CacheClient
from tripsync.core.enrichment_guard import EnrichmentGuard
from tripsync.services import (
    ArtifactProvider,
    EnrichmentScheduler,
    FileTripCache,
    LocalTripCache,
    PexelsImageService,
    RedisTripCache,
    RemoteTripGateway,
    SupabaseTripGateway,
    SyncCoordinator,
)


logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Container for managing application services with lifecycle management.

    Adapters and the enrichment guard are shared; each owner id gets its own
    coordinator and scheduler, created and loaded on first use.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        remote: Optional[RemoteTripGateway] = None,
        local: Optional[LocalTripCache] = None,
        provider: Optional[ArtifactProvider] = None,
        sleep=asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self._remote = remote
        self._local = local
        self._provider = provider
        self._sleep = sleep
        self._cache_client: Optional[CacheClient] = None
        self._guard = EnrichmentGuard()
        self._coordinators: Dict[str, SyncCoordinator] = {}
        self._schedulers: Dict[str, EnrichmentScheduler] = {}
        self._owner_locks: Dict[str, asyncio.Lock] = {}
        self._ticker: Optional[asyncio.Task] = None
        self._initialized = False
        self._initialization_lock = asyncio.Lock()

    async def initialize_services(self) -> None:
        async with self._initialization_lock:
            if self._initialized:
                return

            logger.info("Initializing service container")

            try:
                if self._remote is None:
                    self._remote = SupabaseTripGateway(self.settings.supabase)
                if self._local is None:
                    self._local = await self._build_local_cache()
                if self._provider is None:
                    self._provider = PexelsImageService(self.settings.pexels)

                self._ticker = asyncio.create_task(self._run_categorization_ticker())
                self._initialized = True
                logger.info("Service container initialization completed")

            except Exception as e:
                logger.error(f"Service container initialization failed: {e}", exc_info=True)
                raise

    async def _build_local_cache(self) -> LocalTripCache:
        cache_settings = self.settings.local_cache
        if cache_settings.backend is CacheBackend.REDIS:
            self._cache_client = CacheClient(self.settings.redis.url)
            if await self._cache_client.connect():
                return RedisTripCache(self._cache_client, key_prefix=cache_settings.key_prefix)
            logger.warning("Redis unavailable, falling back to file snapshot store")
        return FileTripCache(self.settings.get_local_cache_path(), key_prefix=cache_settings.key_prefix)

    async def cleanup_services(self) -> None:
        """Stop the ticker, drain enrichment passes and close clients."""
        logger.info("Cleaning up service container")

        try:
            if self._ticker is not None:
                self._ticker.cancel()
                await asyncio.gather(self._ticker, return_exceptions=True)

            for owner_id, scheduler in self._schedulers.items():
                if scheduler.active_passes:
                    logger.info(f"Draining {scheduler.active_passes} enrichment passes", extra={"owner_id": owner_id})
                await scheduler.drain()

            if isinstance(self._remote, SupabaseTripGateway):
                await self._remote.aclose()

            if self._cache_client is not None:
                await self._cache_client.disconnect()

            logger.info("Service container cleanup completed")

        except Exception as e:
            logger.error(f"Service container cleanup failed: {e}", exc_info=True)
        finally:
            self._ticker = None
            self._cache_client = None
            self._coordinators.clear()
            self._schedulers.clear()
            self._owner_locks.clear()
            self._initialized = False

    async def _run_categorization_ticker(self) -> None:
        interval = self.settings.enrichment.categorization_refresh_seconds
        while True:
            await asyncio.sleep(interval)
            for coordinator in list(self._coordinators.values()):
                coordinator.refresh_categorization()

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("Service container not initialized")

    async def get_coordinator(self, owner_id: str) -> SyncCoordinator:
        """Coordinator for `owner_id`; the first request loads the owner's trips."""
        self._require_initialized()
        coordinator = self._coordinators.get(owner_id)
        if coordinator is not None:
            return coordinator

        # one first load per owner; other owners are not held up by it
        owner_lock = self._owner_locks.setdefault(owner_id, asyncio.Lock())
        async with owner_lock:
            coordinator = self._coordinators.get(owner_id)
            if coordinator is None:
                coordinator = SyncCoordinator(self._remote, self._local, owner_id=owner_id)
                enrichment = self.settings.enrichment
                scheduler = EnrichmentScheduler(
                    coordinator,
                    self._provider,
                    guard=self._guard,
                    batch_size=enrichment.batch_size,
                    inter_batch_delay=enrichment.inter_batch_delay_seconds,
                    sleep=self._sleep,
                )
                coordinator.attach_enricher(scheduler)
                await coordinator.sync(owner_id)
                self._coordinators[owner_id] = coordinator
                self._schedulers[owner_id] = scheduler
        return coordinator

    def get_scheduler(self, owner_id: str) -> Optional[EnrichmentScheduler]:
        return self._schedulers.get(owner_id)

    @property
    def guard(self) -> EnrichmentGuard:
        return self._guard

    @property
    def owners(self):
        return list(self._coordinators)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def local_backend(self) -> str:
        return type(self._local).__name__ if self._local is not None else "none"

    @property
    def remote_configured(self) -> bool:
        return self.settings.supabase.is_configured

    @property
    def artifact_provider_configured(self) -> bool:
        return bool(self.settings.pexels.api_key)


def get_service_container(request: Request) -> ServiceContainer:
    """
    Get the service container from application state.

    Raises:
        HTTPException: If service container is not available
    """
    if not hasattr(request.app.state, 'service_container'):
        logger.error("Service container not initialized")
        raise HTTPException(
            status_code=500,
            detail="Service container not available"
        )

    return request.app.state.service_container


async def get_owner_coordinator(
    owner_id: str,
    container: ServiceContainer = Depends(get_service_container)
) -> SyncCoordinator:
    """Dependency provider for the coordinator of the path's owner."""
    try:
        return await container.get_coordinator(owner_id)
    except RuntimeError as e:
        logger.error(f"Sync coordinator not available: {e}")
        raise HTTPException(
            status_code=500,
            detail="Sync coordinator not available"
        )


def get_request_id(request: Request) -> str:
    return getattr(request.state, 'request_id', 'unknown')

"""
Health check and system status API endpoints.

- GET /health: liveness plus adapter configuration
- GET /status: per-owner coordinators, in-flight enrichment and latency metrics
"""

from fastapi import APIRouter, Depends
import logging
import time

from tripsync.core.dependencies import ServiceContainer, get_request_id, get_service_container
from tripsync.core.metrics import get_metrics_snapshot
from tripsync.schemas.base import Envelope
from tripsync.schemas.trip import CoordinatorStatus, SystemStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["health"])

# Application start time for uptime calculation
_app_start_time = time.time()


@router.get("/health", response_model=Envelope[dict], summary="Basic health check")
async def health_check(
    container: ServiceContainer = Depends(get_service_container),
    request_id: str = Depends(get_request_id),
):
    """
    Healthy when the container is up. Remote and image provider settings are
    reported but never make the service unhealthy: both have offline paths.
    """
    healthy = container.is_initialized
    if not container.remote_configured or not container.artifact_provider_configured:
        health = "degraded" if healthy else "unhealthy"
    else:
        health = "healthy" if healthy else "unhealthy"

    logger.info(f"Health check completed: {health}", extra={'request_id': request_id, 'status': health})

    return Envelope(
        status="ok",
        data={
            "status": health,
            "version": container.settings.app_version,
            "uptime_seconds": int(time.time() - _app_start_time),
            "remote_configured": container.remote_configured,
            "artifact_provider_configured": container.artifact_provider_configured,
        },
    )


@router.get("/status", response_model=Envelope[SystemStatus], summary="Detailed system status")
async def system_status(container: ServiceContainer = Depends(get_service_container)):
    coordinators = []
    for owner_id in container.owners:
        coordinator = await container.get_coordinator(owner_id)
        scheduler = container.get_scheduler(owner_id)
        trips = coordinator.trips
        coordinators.append(CoordinatorStatus(
            owner_id=owner_id,
            trips=len(trips),
            pending_enrichment=sum(1 for trip in trips if trip.artifact is None),
            active_enrichment_passes=scheduler.active_passes if scheduler else 0,
            source=coordinator.source.value if coordinator.source else None,
        ))

    settings = container.settings
    return Envelope(
        status="ok",
        data=SystemStatus(
            app_name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment.value,
            remote_configured=container.remote_configured,
            artifact_provider_configured=container.artifact_provider_configured,
            local_backend=container.local_backend,
            in_flight_enrichments=container.guard.in_flight_count,
            coordinators=coordinators,
            metrics=get_metrics_snapshot(),
        ),
    )

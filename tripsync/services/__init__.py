# Business logic services

from .destination_inference import infer_destination, UNKNOWN_DESTINATION
from .interfaces import RemoteTripGateway, LocalTripCache, ArtifactProvider
from .remote_gateway import SupabaseTripGateway, SupabaseTripRow
from .local_cache import FileTripCache, RedisTripCache
from .pexels_service import PexelsImageService
from .sync_coordinator import (
    SyncCoordinator,
    SyncResult,
    LoadResult,
    TripPartition,
    TripSource,
)
from .enrichment_scheduler import (
    EnrichmentScheduler,
    EnrichmentReport,
    EnrichmentOutcome,
    variation_for,
)


__all__ = [
    'infer_destination',
    'UNKNOWN_DESTINATION',
    'RemoteTripGateway',
    'LocalTripCache',
    'ArtifactProvider',
    'SupabaseTripGateway',
    'SupabaseTripRow',
    'FileTripCache',
    'RedisTripCache',
    'PexelsImageService',
    'SyncCoordinator',
    'SyncResult',
    'LoadResult',
    'TripPartition',
    'TripSource',
    'EnrichmentScheduler',
    'EnrichmentReport',
    'EnrichmentOutcome',
    'variation_for',
]

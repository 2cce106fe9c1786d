"""
Core building blocks for the trip sync coordinator.
Provides error taxonomy, in-flight enrichment tracking, caching, logging and metrics.
"""

from .exceptions import (
    ErrorCode,
    RecoveryAction,
    RECOVERY_POLICY,
    TripSyncException,
    RemoteUnavailableError,
    LocalPersistenceError,
    ArtifactFetchError,
)
from .enrichment_guard import EnrichmentGuard
from .cache_client import CacheClient

__all__ = [
    "ErrorCode",
    "RecoveryAction",
    "RECOVERY_POLICY",
    "TripSyncException",
    "RemoteUnavailableError",
    "LocalPersistenceError",
    "ArtifactFetchError",
    "EnrichmentGuard",
    "CacheClient",
]

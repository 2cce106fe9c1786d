"""
Custom exceptions and the recovery policy for trip synchronization.

Every failure the coordinator can meet is classified by an ErrorCode, and
RECOVERY_POLICY maps each error kind to the action the coordinator or the
enrichment scheduler takes. None of these ever reach the UI as a hard failure.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for the application."""

    # Remote store
    REMOTE_UNAVAILABLE = "REMOTE_UNAVAILABLE"

    # Local snapshot store
    LOCAL_PERSISTENCE_FAILED = "LOCAL_PERSISTENCE_FAILED"

    # Artifact provider
    MISSING_API_KEY = "MISSING_API_KEY"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    ARTIFACT_NOT_FOUND = "ARTIFACT_NOT_FOUND"
    ARTIFACT_TRANSPORT_FAILED = "ARTIFACT_TRANSPORT_FAILED"

    # Coordinator
    ENRICHMENT_IN_FLIGHT = "ENRICHMENT_IN_FLIGHT"
    TRIP_NOT_FOUND = "TRIP_NOT_FOUND"

    # Generic errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class RecoveryAction(str, Enum):
    """What the subsystem does when an error kind is met."""

    USE_LOCAL_SNAPSHOT = "use_local_snapshot"
    LOG_AND_IGNORE = "log_and_ignore"
    SKIP_UNTIL_NEXT_PASS = "skip_until_next_pass"
    SILENT_SKIP = "silent_skip"
    REPORT_TO_CALLER = "report_to_caller"


RECOVERY_POLICY: Dict[ErrorCode, RecoveryAction] = {
    ErrorCode.REMOTE_UNAVAILABLE: RecoveryAction.USE_LOCAL_SNAPSHOT,
    ErrorCode.LOCAL_PERSISTENCE_FAILED: RecoveryAction.LOG_AND_IGNORE,
    ErrorCode.MISSING_API_KEY: RecoveryAction.SKIP_UNTIL_NEXT_PASS,
    ErrorCode.RATE_LIMIT_EXCEEDED: RecoveryAction.SKIP_UNTIL_NEXT_PASS,
    ErrorCode.ARTIFACT_NOT_FOUND: RecoveryAction.SKIP_UNTIL_NEXT_PASS,
    ErrorCode.ARTIFACT_TRANSPORT_FAILED: RecoveryAction.SKIP_UNTIL_NEXT_PASS,
    ErrorCode.ENRICHMENT_IN_FLIGHT: RecoveryAction.SILENT_SKIP,
    ErrorCode.TRIP_NOT_FOUND: RecoveryAction.REPORT_TO_CALLER,
    ErrorCode.VALIDATION_ERROR: RecoveryAction.REPORT_TO_CALLER,
    ErrorCode.INTERNAL_SERVER_ERROR: RecoveryAction.REPORT_TO_CALLER,
}


def recovery_for(error_code: ErrorCode) -> RecoveryAction:
    """Look up the recovery action for an error code."""
    return RECOVERY_POLICY[error_code]


class TripSyncException(Exception):
    """Base exception for the trip sync coordinator."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code

    @property
    def recovery(self) -> RecoveryAction:
        return recovery_for(self.error_code)


class RemoteUnavailableError(TripSyncException):
    """Raised when a call to the remote trip store cannot be completed."""

    def __init__(self, operation: str, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Remote store {operation} failed: {reason}",
            error_code=ErrorCode.REMOTE_UNAVAILABLE,
            details={"operation": operation, **(details or {})},
            status_code=503
        )
        self.operation = operation


class LocalPersistenceError(TripSyncException):
    """Raised when a local trip snapshot cannot be serialized or stored."""

    def __init__(self, owner_id: str, reason: str):
        super().__init__(
            message=f"Could not persist local snapshot for '{owner_id}': {reason}",
            error_code=ErrorCode.LOCAL_PERSISTENCE_FAILED,
            details={"owner_id": owner_id},
            status_code=500
        )


class ArtifactFetchError(TripSyncException):
    """Base class for artifact provider failures."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        query: Optional[str] = None,
        status_code: int = 502
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details={"query": query} if query else {},
            status_code=status_code
        )
        self.query = query


class MissingCredentialError(ArtifactFetchError):
    """Raised when the provider API key is missing or rejected."""

    def __init__(self, message: str = "Image provider API key not configured", query: Optional[str] = None):
        super().__init__(message, ErrorCode.MISSING_API_KEY, query=query, status_code=401)


class RateLimitedError(ArtifactFetchError):
    """Raised when the provider reports the rate limit is exhausted."""

    def __init__(self, query: Optional[str] = None):
        super().__init__(
            "Image provider rate limit exceeded",
            ErrorCode.RATE_LIMIT_EXCEEDED,
            query=query,
            status_code=429
        )


class ArtifactNotFoundError(ArtifactFetchError):
    """Raised when no usable image exists for a query."""

    def __init__(self, query: str, reason: str = "no photos found"):
        super().__init__(
            f"No image for '{query}': {reason}",
            ErrorCode.ARTIFACT_NOT_FOUND,
            query=query,
            status_code=404
        )


class ArtifactTransportError(ArtifactFetchError):
    """Raised on network errors, unexpected statuses or undecodable payloads."""

    def __init__(self, reason: str, query: Optional[str] = None):
        super().__init__(
            f"Image provider request failed: {reason}",
            ErrorCode.ARTIFACT_TRANSPORT_FAILED,
            query=query
        )


class TripNotFoundError(TripSyncException):
    """Raised by the HTTP layer when a trip id is not in the owner's collection."""

    def __init__(self, trip_id: str):
        super().__init__(
            message=f"Trip '{trip_id}' not found",
            error_code=ErrorCode.TRIP_NOT_FOUND,
            details={"trip_id": trip_id},
            status_code=404
        )

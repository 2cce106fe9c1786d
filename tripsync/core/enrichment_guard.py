"""
In-flight tracking for destination artifact enrichment.

At most one enrichment attempt may run per trip id at a time, across every
scheduler invocation (launch, trip creation, periodic refresh). Claims are
atomic check-and-set operations behind a single lock; there is
no public `contains`.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Hashable, Iterator, Set

logger = logging.getLogger(__name__)


class EnrichmentGuard:
    """Mutex-protected set of trip ids whose artifact is being generated."""

    def __init__(self):
        self._in_flight: Set[Hashable] = set()
        self._lock = threading.Lock()

    def try_begin(self, trip_id: Hashable) -> bool:
        """Claim `trip_id`. Returns False if another attempt already holds it."""
        with self._lock:
            if trip_id in self._in_flight:
                return False
            self._in_flight.add(trip_id)
            return True

    def end(self, trip_id: Hashable) -> None:
        """Release a claim made by a successful `try_begin`."""
        with self._lock:
            self._in_flight.discard(trip_id)

    @contextmanager
    def claim(self, trip_id: Hashable) -> Iterator[bool]:
        """
        Scoped claim. Yields whether the claim was acquired and releases it on
        exit, including on exceptions and cancellation.

            with guard.claim(trip.id) as acquired:
                if not acquired:
                    return
                ...
        """
        acquired = self.try_begin(trip_id)
        if not acquired:
            logger.debug(f"Enrichment already in flight for {trip_id}", extra={"trip_id": str(trip_id)})
        try:
            yield acquired
        finally:
            if acquired:
                self.end(trip_id)

    @property
    def in_flight_count(self) -> int:
        with self._lock:
            return len(self._in_flight)

"""
Models package for the trip sync coordinator.
"""

from .trip import TripRecord, utcnow, calendar_day

__all__ = [
    "TripRecord",
    "utcnow",
    "calendar_day",
]

# API endpoints and routers

from .trips_endpoints import router as trips_router
from .health_endpoints import router as health_router

__all__ = [
    "trips_router",
    "health_router",
]

"""
FastAPI application setup with dependency injection.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
from contextlib import asynccontextmanager
from typing import Optional

from tripsync.config.settings import Settings, get_settings
from tripsync.core.logging import configure_logging
from tripsync.core.dependencies import ServiceContainer
from tripsync.core.error_handlers import setup_error_handlers
from tripsync.api import health_router, trips_router
from tripsync.middleware import RequestContextMiddleware


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan management with service container.
    Enrichment passes still running at shutdown are drained before clients close.
    """
    container: ServiceContainer = app.state.service_container
    logger.info(f"Starting {container.settings.app_name} v{container.settings.app_version}")

    try:
        await container.initialize_services()
        logger.info("Application startup complete")

        yield

    except Exception as e:
        logger.error(f"Application startup failed: {e}", exc_info=True)
        raise

    finally:
        logger.info("Shutting down application")
        await container.cleanup_services()
        logger.info("Application shutdown complete")


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Settings to use instead of the environment-derived ones
        container: Pre-built service container (tests inject stub adapters here)

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level.value, settings.log_format, settings.log_file)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan
    )
    app.state.service_container = container or ServiceContainer(settings)

    app.add_middleware(
        CORSMiddleware,
        **settings.get_cors_config()
    )
    app.add_middleware(RequestContextMiddleware)

    setup_error_handlers(app)

    app.include_router(health_router)
    app.include_router(trips_router)

    @app.get("/")
    async def root():
        return {
            "message": f"{settings.app_name} is running",
            "version": settings.app_version,
            "docs_url": "/docs",
            "health_url": "/api/v1/health",
        }

    return app


app = create_app()

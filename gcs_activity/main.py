"""
FastAPI application entry point.

Exposes the storage activity to workflow hosts over HTTP. Using an
application factory (create_app) so tests can build apps with different
settings and metadata.

For local development:
    uvicorn gcs_activity.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.routes import activity, health
from .config.settings import Settings, get_settings
from .host.metadata import load_metadata

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup configuration and shutdown."""
    settings = get_settings()

    logger.info(
        "GCS activity API starting",
        extra={
            "version": __version__,
            "activity": app.state.metadata.name,
            "mock_mode": settings.storage_mock_mode,
        }
    )

    problems = settings.validate_required_fields()
    if problems:
        logger.error(
            "Invalid configuration",
            extra={"problems": problems}
        )

    yield

    logger.info("GCS activity API shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Loads activity metadata once and keeps it on app.state; routes read it
    through a dependency rather than a module-level cache.
    """
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    metadata = load_metadata(settings.metadata_path)

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description=metadata.description,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.metadata = metadata

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        activity.router,
        prefix="/api/v1/activity",
        tags=["Activity"],
    )

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": settings.api_title,
            "activity": metadata.name,
            "version": metadata.version,
            "docs": "/docs",
            "health": "/health",
        }

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Activity errors never get here (they come back as results), so
        anything that does is a bug. Log it in full, return a generic body.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error."}
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "activity": metadata.name,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "gcs_activity.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )

"""
FastAPI Application Entry Point.

This is the main application file for the Trip Tracker Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.core.redis_client import create_redis_client, ping_redis
from backend.app.db.session import Database
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from backend.app.models.trip import Trip  # noqa: F401
from backend.app.models.trip_point import TripPoint  # noqa: F401
from backend.app.models.trip_event import TripEvent  # noqa: F401
from backend.app.models.companion_contact import CompanionContact  # noqa: F401

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Opens the storage handle and applies the schema.
    2. Creates the Redis client used for distance caching.
    3. Releases both on shutdown.
    """
    database = Database.from_settings()
    await database.create_schema()
    app.state.database = database
    app.state.redis = create_redis_client(settings)
    logger.info("%s started (api %s)", settings.app_name, settings.api_version)

    yield

    await app.state.redis.aclose()
    await database.dispose()
    logger.info("%s stopped", settings.app_name)


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Trip lifecycle, GPS ingestion and travel analytics",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and cache reachability
    """
    redis = getattr(request.app.state, "redis", None)
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "cache": "up" if redis is not None and await ping_redis(redis) else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Trip Tracker Backend API",
        "docs": "/docs",
        "health": "/health",
    }

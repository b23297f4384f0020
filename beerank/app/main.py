"""
FastAPI Application Entry Point.

This is the main application file for the Bee Rank journey planning backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from beerank.app.core.config import settings
from beerank.app.api.v1.router import router as api_v1_router
from beerank.app.db.session import engine, Base
from beerank.app.domain.routing.graph_cache import RouteGraphCache
from beerank.app.core.observability import ObservabilityMiddleware, configure_logging
from beerank.app.core.redis_client import close_redis, ping_redis
from beerank.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from beerank.app.models.user import User
from beerank.app.models.taxi_rank import TaxiRank
from beerank.app.models.transit_route import TransitRoute
from beerank.app.models.journey import Journey
from beerank.app.models.route_connection import RouteConnection
from beerank.app.models.hiking_sign import HikingSign
from beerank.app.models.sign_verification import SignVerification
from beerank.app.models.user_activity import UserActivity

configure_logging(settings.log_level)
logger = logging.getLogger("beerank")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup; releases the database pool and the
    Redis connection on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Startup complete (graph cache %s)", "enabled" if settings.graph_cache_enabled else "disabled")
    yield
    await close_redis()
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Journey planning for minibus-taxi commuters",
    lifespan=lifespan,
)

# One route graph snapshot per process
app.state.graph_cache = RouteGraphCache(enabled=settings.graph_cache_enabled)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and Redis reachability
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
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
        "message": "Welcome to the Bee Rank Journey Planner API",
        "docs": "/docs",
        "health": "/health",
    }

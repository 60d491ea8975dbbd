"""
FastAPI application entry point for the Sales Intelligence API.

Configures logging and CORS, loads the initial client snapshot during
startup, registers the API router and starts the ASGI server.

The snapshot is held by the process-wide SnapshotCache; endpoints receive
the engine for the current snapshot through dependency injection, and a
stale snapshot is rebuilt on the first request after it expires.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from salesintel import __version__
from salesintel.api.intelligence import router as intelligence_router
from salesintel.core.config import get_settings
from salesintel.core.dependencies import load_engine
from salesintel.core.snapshot import (
    SnapshotUnavailableError,
    close_snapshot_cache,
    get_snapshot_cache,
    init_snapshot_cache,
)

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.

    On startup:
        - Initialize the snapshot cache
        - Load the first snapshot (requests get 503 until one loads)

    On shutdown:
        - Drop the snapshot cache
    """
    # Startup
    logger.info("Sales Intelligence API starting")
    snapshot = init_snapshot_cache(settings.snapshot_refresh_seconds)
    try:
        engine = await snapshot.refresh_or_serve_stale(lambda: load_engine(settings))
        logger.info(f"Initial snapshot loaded: {len(engine.index)} clients")
    except SnapshotUnavailableError as e:
        logger.error(f"Failed to load initial snapshot: {e}")
        # Continue startup; the next request retries the load

    yield

    # Shutdown
    logger.info("Sales Intelligence API shutting down")
    close_snapshot_cache()


# Create FastAPI application
app = FastAPI(
    title="Sales Intelligence API",
    version=__version__,
    description=(
        "Product recommendations, revenue-opportunity estimates and "
        "comparable companies for existing clients and prospects."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # Next.js dev server
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(intelligence_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Reports 'degraded' while no snapshot has been loaded.
    """
    try:
        snapshot = get_snapshot_cache()
    except SnapshotUnavailableError:
        return {"status": "degraded", "snapshot": None}

    current = snapshot.current
    if current is None:
        return {"status": "degraded", "snapshot": None, "error": snapshot.last_error}
    return {
        "status": "healthy",
        "snapshot": {
            "built_at": current.built_at.isoformat(),
            "clients": len(current.value.index),
            "stale": snapshot.is_stale(),
        },
    }


@app.get("/")
async def root():
    """
    Root endpoint providing API information.

    Returns:
        Dict with API name and version
    """
    return {
        "name": "Sales Intelligence API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "salesintel.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )

"""
FastAPI dependency injection module for the Sales Intelligence backend.

Provides reusable dependencies so endpoint handlers never touch the snapshot
cache or the settings singleton directly, and tests can swap either through
app.dependency_overrides.

Key Dependencies Provided:
- get_settings_dependency / SettingsDep: the cached Settings singleton
- get_engine / EngineDep: the SalesIntelEngine for the current snapshot,
  refreshed first when the snapshot is stale
- get_response_cache / ResponseCacheDep: TTL cache for computed responses
- load_engine: coroutine that loads the raw snapshot and builds an engine

Usage Examples:
    @router.get("/adoption")
    async def adoption(engine: EngineDep) -> Dict[str, SegmentAdoptionProfile]:
        return engine.compute_adoption()
"""

import asyncio
from typing import Annotated, Optional

from fastapi import Depends, HTTPException

from salesintel.core.config import Settings, get_settings
from salesintel.core.snapshot import ResponseCache, SnapshotUnavailableError, get_snapshot_cache
from salesintel.services.engine import SalesIntelEngine, build_engine
from salesintel.services.snapshot_loader import load_snapshot


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Returns:
        Settings: The cached Settings instance with all configuration values.
    """
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


# =============================================================================
# Engine Dependency
# =============================================================================

async def load_engine(settings: Settings) -> SalesIntelEngine:
    """Load the raw snapshot off the event loop and build a new engine from it."""
    raw = await asyncio.to_thread(load_snapshot, settings)
    return build_engine(raw, settings)


async def get_engine(settings: SettingsDep) -> SalesIntelEngine:
    """
    Return the engine for the current snapshot.

    A stale snapshot is rebuilt first; when the rebuild fails the previous
    engine is served. With no snapshot at all the request fails with 503.

    Raises:
        HTTPException: 503 if no snapshot is available.
    """
    try:
        cache = get_snapshot_cache()
        return await cache.refresh_or_serve_stale(lambda: load_engine(settings))
    except SnapshotUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


EngineDep = Annotated[SalesIntelEngine, Depends(get_engine)]


# =============================================================================
# Response Cache Dependency
# =============================================================================

_response_cache: Optional[ResponseCache] = None


def get_response_cache(settings: SettingsDep) -> ResponseCache:
    global _response_cache
    if _response_cache is None:
        _response_cache = ResponseCache(ttl_seconds=settings.response_cache_ttl_seconds)
    return _response_cache


ResponseCacheDep = Annotated[ResponseCache, Depends(get_response_cache)]

"""
Core infrastructure package for the Sales Intelligence backend.

Provides:
- Configuration management via pydantic-settings
- Snapshot and response caching for the request layer

This module re-exports key components from submodules for convenient importing:

    from salesintel.core import get_settings, SnapshotCache

FastAPI dependencies live in salesintel.core.dependencies and are imported
from there directly, since they depend on the service layer.
"""

# =============================================================================
# Re-exports from salesintel.core.config
# =============================================================================
from salesintel.core.config import Settings, get_settings

# =============================================================================
# Re-exports from salesintel.core.snapshot
# =============================================================================
from salesintel.core.snapshot import (
    CachedValue,
    ResponseCache,
    SnapshotCache,
    SnapshotUnavailableError,
    close_snapshot_cache,
    get_snapshot_cache,
    init_snapshot_cache,
)

__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Snapshot lifecycle (from snapshot.py)
    'CachedValue',
    'ResponseCache',
    'SnapshotCache',
    'SnapshotUnavailableError',
    'init_snapshot_cache',
    'get_snapshot_cache',
    'close_snapshot_cache',
]

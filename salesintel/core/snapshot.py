"""
Snapshot caching module for the Sales Intelligence backend.

The scoring core works over one immutable snapshot of client data at a time.
This module owns that snapshot on behalf of the request layer.

Key Features:
- CachedValue: explicit {value, built_at} holder
- SnapshotCache: staleness check plus refresh-or-serve-stale, with concurrent
  refreshes coalesced behind a single asyncio.Lock
- ResponseCache: keyed time-to-live cache for computed API responses
- Global SnapshotCache singleton (_snapshot_cache) with init/get/close
  functions for the FastAPI lifespan

Refresh Semantics:
- Refresh is rebuild-and-swap: the loader builds a complete new value and a
  single reference is replaced. Readers holding the previous value keep a
  consistent (old) snapshot.
- At most one rebuild runs at a time. Callers that were waiting on the lock
  while another caller attempted a rebuild reuse the outcome of that attempt
  instead of running the loader again: the new value after a success, the
  stale value (or SnapshotUnavailableError) after a failure.
- If a rebuild fails and a previous value exists, the stale value is served
  and the failure logged. With nothing to serve, SnapshotUnavailableError is
  raised. Retrying is left to the caller.

Usage:
    from salesintel.core.snapshot import SnapshotCache

    cache = SnapshotCache(max_age_seconds=300)
    engine = await cache.refresh_or_serve_stale(load_engine)
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotUnavailableError(RuntimeError):
    """Raised when no snapshot can be built and none is cached."""


@dataclass(frozen=True)
class CachedValue(Generic[T]):
    """A value together with the time it was built."""
    value: T
    built_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.built_at


# =============================================================================
# Snapshot Cache
# =============================================================================


class SnapshotCache(Generic[T]):
    """
    Holder of the current snapshot with explicit refresh-or-serve-stale logic.

    Attributes:
        max_age_seconds: Age after which the cached value is stale.
    """

    def __init__(self, max_age_seconds: float, clock: Clock = utc_now):
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._current: Optional[CachedValue[T]] = None
        self._lock = asyncio.Lock()
        self._generation = 0
        self._attempts = 0
        self.last_error: Optional[str] = None

    @property
    def current(self) -> Optional[CachedValue[T]]:
        return self._current

    @property
    def generation(self) -> int:
        """Number of successful swaps so far."""
        return self._generation

    @property
    def attempts(self) -> int:
        """Number of completed loader runs, successful or not."""
        return self._attempts

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        """True when there is no value or the value is older than max_age_seconds."""
        if self._current is None:
            return True
        now = now or self._clock()
        return self._current.age(now).total_seconds() >= self.max_age_seconds

    def swap(self, value: T, built_at: Optional[datetime] = None) -> CachedValue[T]:
        """Replace the current value wholesale."""
        cached = CachedValue(value=value, built_at=built_at or self._clock())
        self._current = cached
        self._generation += 1
        self.last_error = None
        return cached

    def get(self) -> T:
        """Current value, stale or not."""
        if self._current is None:
            raise SnapshotUnavailableError(self.last_error or "Snapshot has not been loaded")
        return self._current.value

    async def refresh_or_serve_stale(
        self,
        loader: Callable[[], Awaitable[T]],
        force: bool = False,
    ) -> T:
        """
        Return a fresh value, rebuilding through `loader` when needed.

        Args:
            loader: Coroutine function building a complete new value
            force: Rebuild even if the current value is not stale

        Returns:
            The fresh value, or the stale one if the rebuild failed

        Raises:
            SnapshotUnavailableError: rebuild failed and nothing is cached
        """
        if not force and not self.is_stale():
            return self._current.value

        seen_attempts = self._attempts
        async with self._lock:
            # Another caller ran the loader while we waited; reuse its outcome
            if self._attempts != seen_attempts:
                return self.get()
            if not force and not self.is_stale():
                return self._current.value

            try:
                value = await loader()
            except Exception as e:
                self._attempts += 1
                self.last_error = f"Snapshot refresh failed: {e}"
                if self._current is not None:
                    logger.warning(
                        f"{self.last_error}; serving snapshot built at "
                        f"{self._current.built_at.isoformat()}"
                    )
                    return self._current.value
                logger.error(self.last_error)
                raise SnapshotUnavailableError(self.last_error) from e

            self._attempts += 1
            cached = self.swap(value)
            logger.info(f"Snapshot refreshed at {cached.built_at.isoformat()}")
            return cached.value


# =============================================================================
# Response Cache
# =============================================================================


class ResponseCache:
    """
    Keyed time-to-live cache for request-layer responses.

    Entries are also tagged with the snapshot they were computed from, so a
    snapshot swap invalidates them regardless of age.
    """

    def __init__(self, ttl_seconds: float, clock: Clock = utc_now, max_entries: int = 1024):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[Hashable, CachedValue[Any]] = {}
        self._tags: Dict[Hashable, Any] = {}

    def get(self, key: Hashable, tag: Any = None) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expired = entry.age(self._clock()).total_seconds() >= self.ttl_seconds
        if expired or self._tags.get(key) != tag:
            self._entries.pop(key, None)
            self._tags.pop(key, None)
            return None
        return entry.value

    def set(self, key: Hashable, value: Any, tag: Any = None) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            # Evict the oldest entry
            oldest = min(self._entries, key=lambda k: self._entries[k].built_at)
            self._entries.pop(oldest)
            self._tags.pop(oldest, None)
        self._entries[key] = CachedValue(value=value, built_at=self._clock())
        self._tags[key] = tag

    def clear(self) -> None:
        self._entries.clear()
        self._tags.clear()

    def __len__(self) -> int:
        return len(self._entries)


# =============================================================================
# Global Snapshot Cache
# =============================================================================

_snapshot_cache: Optional[SnapshotCache] = None


def init_snapshot_cache(max_age_seconds: float) -> SnapshotCache:
    """Create the process-wide snapshot cache if it does not exist yet."""
    global _snapshot_cache
    if _snapshot_cache is None:
        _snapshot_cache = SnapshotCache(max_age_seconds=max_age_seconds)
        logger.info(f"Snapshot cache initialized (refresh every {max_age_seconds}s)")
    return _snapshot_cache


def get_snapshot_cache() -> SnapshotCache:
    if _snapshot_cache is None:
        raise SnapshotUnavailableError("Snapshot cache is not initialized")
    return _snapshot_cache


def close_snapshot_cache() -> None:
    """Drop the process-wide snapshot cache; the next init starts empty."""
    global _snapshot_cache
    if _snapshot_cache is not None:
        logger.info("Snapshot cache closed")
        _snapshot_cache = None

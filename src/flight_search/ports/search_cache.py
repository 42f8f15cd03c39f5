"""
Search Cache port interface.

Defines the protocol for caching computed search results keyed by
fingerprint, with single-flight computation per key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Callable,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

if TYPE_CHECKING:
    from src.flight_search.schemas.criteria import SearchCriteria
    from src.flight_search.schemas.itinerary import Itinerary, ResolvedItineraries
    from src.flight_search.services.search_fingerprint import SearchFingerprint


class EntryState(Enum):
    """Lifecycle state of a cache entry."""

    PENDING = "PENDING"
    READY = "READY"


@dataclass(frozen=True)
class CacheEntry:
    """
    Immutable snapshot of a cached search result.

    Entries are owned by the cache; callers only ever hold snapshots, so a
    reader can never observe a half-populated itinerary list.

    Attributes:
        fingerprint: Cache key.
        itineraries: Ordered outbound itineraries.
        return_itineraries: Ordered return itineraries (round trips).
        computed_at: When the computation finished (None while PENDING).
        expires_at: End of the freshness window (None while PENDING).
        state: PENDING while being computed, READY afterwards.
        is_complete: False if computed while ingestion was incomplete.
        criteria: Criteria that produced the entry, for range-based
            invalidation and refresh.
        max_connections: Connection limit the entry was computed with.
    """

    fingerprint: SearchFingerprint
    itineraries: Tuple[Itinerary, ...] = ()
    return_itineraries: Tuple[Itinerary, ...] = ()
    computed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    state: EntryState = EntryState.READY
    is_complete: bool = True
    criteria: Optional[SearchCriteria] = field(default=None, compare=False)
    max_connections: Optional[int] = field(default=None, compare=False)

    @property
    def is_ready(self) -> bool:
        return self.state is EntryState.READY

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache counters."""

    hits: int = 0
    misses: int = 0
    shared_waits: int = 0
    evictions: int = 0
    discarded: int = 0
    entries: int = 0
    in_flight: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses + self.shared_waits
        if lookups == 0:
            return 0.0
        return (self.hits + self.shared_waits) / lookups


ComputeFn = Callable[[], "ResolvedItineraries"]


@runtime_checkable
class SearchCache(Protocol):
    """
    Protocol for search result caches.

    Implementations must be thread-safe and must guarantee at most one
    concurrent computation per fingerprint, while letting computations for
    different fingerprints run in parallel.

    Implementations:
    - CacheCoordinator: In-process TTL + LRU cache with shared futures
    """

    def lookup(self, fingerprint: SearchFingerprint) -> Optional[CacheEntry]:
        """Return the current entry, or None if absent or expired."""
        ...

    def get_or_compute(
        self,
        fingerprint: SearchFingerprint,
        compute_fn: ComputeFn,
        criteria: Optional[SearchCriteria] = None,
        timeout: Optional[float] = None,
        max_connections: Optional[int] = None,
    ) -> CacheEntry:
        """Return a fresh entry, computing it at most once concurrently."""
        ...

    def invalidate(self, fingerprint: SearchFingerprint) -> bool:
        """Remove an entry; in-flight results for it are discarded."""
        ...

    def refresh(
        self,
        fingerprint: SearchFingerprint,
        compute_fn: ComputeFn,
        criteria: Optional[SearchCriteria] = None,
        max_connections: Optional[int] = None,
    ) -> CacheEntry:
        """Recompute regardless of freshness and swap the entry atomically."""
        ...

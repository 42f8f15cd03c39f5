"""
Cache Coordinator - fingerprint-keyed search result cache.

Implements the SearchCache protocol with:
- At most one concurrent computation per fingerprint (shared futures)
- Parallel computation for distinct fingerprints (lock never held while computing)
- Double-buffer refresh (old entry served until the new one is swapped in)
- TTL freshness per entry plus LRU bound on READY entries
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import (
    TYPE_CHECKING,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Union,
)

from src.flight_search.exceptions import SearchTimeoutError
from src.flight_search.ports.search_cache import (
    CacheEntry,
    CacheStats,
    ComputeFn,
    EntryState,
)
from src.flight_search.schemas.itinerary import Itinerary, ResolvedItineraries

if TYPE_CHECKING:
    from src.flight_search.schemas.config import SearchConfig
    from src.flight_search.schemas.criteria import SearchCriteria
    from src.flight_search.services.search_fingerprint import SearchFingerprint

logger = logging.getLogger(__name__)

CriteriaPredicate = Callable[[Optional["SearchCriteria"]], bool]


@dataclass
class _InFlight:
    """
    Handle for one running computation.

    Attributes:
        future: Resolved with the new CacheEntry (or the compute error).
        criteria: Criteria being computed, for range-based invalidation.
        max_connections: Connection limit of the computation.
        detached: Set by invalidate(); the result still reaches waiters
            but is not stored.
    """

    future: "Future[CacheEntry]" = field(default_factory=Future)
    criteria: Optional[SearchCriteria] = None
    max_connections: Optional[int] = None
    detached: bool = False


def _as_resolved(
    result: Union[ResolvedItineraries, Sequence[Itinerary]],
) -> ResolvedItineraries:
    if isinstance(result, ResolvedItineraries):
        return result
    return ResolvedItineraries(outbound=tuple(result))


class CacheCoordinator:
    """
    In-process, thread-safe search cache.

    One lock guards the READY map and the in-flight map. It is held only
    for dictionary bookkeeping, never while a compute function runs.

    Usage:
        >>> cache = CacheCoordinator(ttl=timedelta(minutes=10))
        >>> entry = cache.get_or_compute(fp, lambda: resolver.resolve(criteria))
        >>> entry.itineraries

    Attributes:
        _entries: READY entries in LRU order (oldest first).
        _in_flight: Running computations by fingerprint.
        _ttl: Freshness window for authoritative results.
        _partial_ttl: Freshness window for results computed while ingestion
            was incomplete.
        _max_entries: LRU bound (None = unbounded).
        _clock: Callable returning the current time.
    """

    def __init__(
        self,
        ttl: timedelta,
        partial_ttl: Optional[timedelta] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError(f"ttl must be positive, got {ttl}")
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")

        self._ttl = ttl
        self._partial_ttl = partial_ttl if partial_ttl is not None else ttl
        self._max_entries = max_entries
        self._clock = clock

        self._entries: "OrderedDict[SearchFingerprint, CacheEntry]" = OrderedDict()
        self._in_flight: Dict[SearchFingerprint, _InFlight] = {}
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._shared_waits = 0
        self._evictions = 0
        self._discarded = 0

    @classmethod
    def from_config(
        cls,
        config: SearchConfig,
        clock: Callable[[], datetime] = datetime.now,
    ) -> "CacheCoordinator":
        """Build a coordinator from SearchConfig cache settings."""
        return cls(
            ttl=config.cache_ttl,
            partial_ttl=config.partial_cache_ttl,
            max_entries=config.cache_max_entries or None,
            clock=clock,
        )

    # =========================================================================
    # READ PATH
    # =========================================================================

    def lookup(self, fingerprint: SearchFingerprint) -> Optional[CacheEntry]:
        """
        Return the current entry for a fingerprint.

        Returns:
            The READY entry if present and fresh; a PENDING snapshot if only
            a computation is running; None otherwise. Expired entries are
            evicted on the way.
        """
        with self._lock:
            entry = self._fresh_entry(fingerprint)
            if entry is not None:
                return entry

            flight = self._in_flight.get(fingerprint)
            if flight is not None:
                return CacheEntry(
                    fingerprint=fingerprint,
                    state=EntryState.PENDING,
                    criteria=flight.criteria,
                    max_connections=flight.max_connections,
                )
            return None

    def get_or_compute(
        self,
        fingerprint: SearchFingerprint,
        compute_fn: ComputeFn,
        criteria: Optional[SearchCriteria] = None,
        timeout: Optional[float] = None,
        max_connections: Optional[int] = None,
    ) -> CacheEntry:
        """
        Return a fresh entry, computing it at most once concurrently.

        The first caller for a missing fingerprint runs `compute_fn` on its
        own thread; concurrent callers for the same fingerprint wait on the
        shared handle and receive the same entry (or the same exception).

        Args:
            fingerprint: Cache key.
            compute_fn: Produces ResolvedItineraries (or a plain itinerary
                sequence) on a miss.
            criteria: Criteria being computed, kept on the entry.
            timeout: Seconds a waiter may wait for a shared computation.
                Does not apply to the computing caller.
            max_connections: Connection limit of the search, kept on the
                entry so it can be refreshed later.

        Returns:
            READY CacheEntry.

        Raises:
            SearchTimeoutError: If a waiter gives up. The computation itself
                continues and its result is still stored.
            Exception: Whatever `compute_fn` raised; nothing is cached.
        """
        with self._lock:
            entry = self._fresh_entry(fingerprint)
            if entry is not None:
                self._hits += 1
                return entry

            flight = self._in_flight.get(fingerprint)
            if flight is None:
                flight = _InFlight(criteria=criteria, max_connections=max_connections)
                self._in_flight[fingerprint] = flight
                self._misses += 1
                owner = True
            else:
                self._shared_waits += 1
                owner = False

        if owner:
            return self._compute(fingerprint, flight, compute_fn)
        return self._wait(fingerprint, flight, timeout)

    # =========================================================================
    # WRITE PATH
    # =========================================================================

    def refresh(
        self,
        fingerprint: SearchFingerprint,
        compute_fn: ComputeFn,
        criteria: Optional[SearchCriteria] = None,
        max_connections: Optional[int] = None,
    ) -> CacheEntry:
        """
        Recompute an entry regardless of freshness.

        Readers keep getting the old READY entry until the new one replaces
        it in a single assignment. If a computation for the fingerprint is
        already running, the caller joins it instead of starting another.
        If the recomputation fails, the old entry stays in place.
        """
        with self._lock:
            flight = self._in_flight.get(fingerprint)
            if flight is None:
                previous = self._entries.get(fingerprint)
                if previous is not None:
                    if criteria is None:
                        criteria = previous.criteria
                    if max_connections is None:
                        max_connections = previous.max_connections
                flight = _InFlight(criteria=criteria, max_connections=max_connections)
                self._in_flight[fingerprint] = flight
                owner = True
            else:
                owner = False

        if owner:
            logger.debug("Refreshing cache entry %s", fingerprint.short)
            return self._compute(fingerprint, flight, compute_fn)
        return self._wait(fingerprint, flight, None)

    def invalidate(self, fingerprint: SearchFingerprint) -> bool:
        """
        Remove an entry unconditionally.

        A computation running for the fingerprint is detached: it finishes
        and serves its waiters, but its result is not stored. The next
        get_or_compute starts a fresh computation.

        Returns:
            True if an entry or a running computation was removed.
        """
        with self._lock:
            removed = self._entries.pop(fingerprint, None) is not None
            flight = self._in_flight.pop(fingerprint, None)
            if flight is not None:
                flight.detached = True

        if removed or flight is not None:
            logger.debug("Invalidated cache entry %s", fingerprint.short)
            return True
        return False

    def invalidate_where(self, predicate: CriteriaPredicate, running_only: bool = False) -> int:
        """
        Invalidate every entry whose criteria satisfy `predicate`.

        Running computations whose criteria match are detached.

        Args:
            predicate: Called with each entry's criteria (may be None).
            running_only: Only detach running computations and keep READY
                entries in service (used before a background refresh).

        Returns:
            Number of entries and computations removed.
        """
        with self._lock:
            stale = []
            if not running_only:
                stale = [fp for fp, entry in self._entries.items() if predicate(entry.criteria)]
            for fp in stale:
                del self._entries[fp]

            running = [fp for fp, flight in self._in_flight.items() if predicate(flight.criteria)]
            for fp in running:
                self._in_flight.pop(fp).detached = True

        count = len(stale) + len(running)
        if count:
            logger.info(
                "Invalidated %d cached searches (%d running)", count, len(running)
            )
        return count

    def entries_where(self, predicate: CriteriaPredicate) -> List[CacheEntry]:
        """Snapshots of READY entries whose criteria satisfy `predicate`."""
        with self._lock:
            return [entry for entry in self._entries.values() if predicate(entry.criteria)]

    def clear(self) -> int:
        """Drop all entries and detach running computations."""
        with self._lock:
            count = len(self._entries) + len(self._in_flight)
            self._entries.clear()
            for flight in self._in_flight.values():
                flight.detached = True
            self._in_flight.clear()

        logger.info("Cleared search cache (%d entries)", count)
        return count

    def evict_expired(self) -> int:
        """Remove all expired READY entries."""
        with self._lock:
            now = self._clock()
            expired = [fp for fp, entry in self._entries.items() if entry.is_expired(now)]
            for fp in expired:
                del self._entries[fp]
            self._evictions += len(expired)

        if expired:
            logger.debug("Evicted %d expired cache entries", len(expired))
        return len(expired)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                shared_waits=self._shared_waits,
                evictions=self._evictions,
                discarded=self._discarded,
                entries=len(self._entries),
                in_flight=len(self._in_flight),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._entries

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _fresh_entry(self, fingerprint: SearchFingerprint) -> Optional[CacheEntry]:
        """Return a fresh READY entry and mark it recently used. Lock held."""
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[fingerprint]
            self._evictions += 1
            return None
        self._entries.move_to_end(fingerprint)
        return entry

    def _compute(
        self,
        fingerprint: SearchFingerprint,
        flight: _InFlight,
        compute_fn: ComputeFn,
    ) -> CacheEntry:
        """Run compute_fn on the calling thread and publish the result."""
        start_time = time.perf_counter()
        try:
            result = _as_resolved(compute_fn())
        except BaseException as e:
            # The handle is released and its future resolved for any raise
            with self._lock:
                if self._in_flight.get(fingerprint) is flight:
                    del self._in_flight[fingerprint]
            flight.future.set_exception(e)
            logger.warning(
                "Computation for %s failed after %.3fms: %s",
                fingerprint.short,
                (time.perf_counter() - start_time) * 1000,
                e,
            )
            raise

        now = self._clock()
        ttl = self._ttl if result.is_complete else self._partial_ttl
        entry = CacheEntry(
            fingerprint=fingerprint,
            itineraries=tuple(result.outbound),
            return_itineraries=tuple(result.inbound),
            computed_at=now,
            expires_at=now + ttl,
            state=EntryState.READY,
            is_complete=result.is_complete,
            criteria=flight.criteria,
            max_connections=flight.max_connections,
        )

        with self._lock:
            if self._in_flight.get(fingerprint) is flight:
                del self._in_flight[fingerprint]
            if flight.detached:
                self._discarded += 1
            else:
                self._store(fingerprint, entry)

        flight.future.set_result(entry)

        logger.debug(
            "Computed %s in %.3fms (%d itineraries%s)",
            fingerprint.short,
            (time.perf_counter() - start_time) * 1000,
            len(entry.itineraries) + len(entry.return_itineraries),
            ", discarded" if flight.detached else "",
        )
        return entry

    def _wait(
        self,
        fingerprint: SearchFingerprint,
        flight: _InFlight,
        timeout: Optional[float],
    ) -> CacheEntry:
        """Block until a shared computation publishes its result."""
        try:
            return flight.future.result(timeout=timeout)
        except FutureTimeoutError as e:
            logger.warning(
                "Gave up waiting %.1fs for in-flight search %s",
                timeout,
                fingerprint.short,
            )
            raise SearchTimeoutError(fingerprint.short, timeout) from e

    def _store(self, fingerprint: SearchFingerprint, entry: CacheEntry) -> None:
        """Atomic swap plus LRU trim. Lock held."""
        self._entries[fingerprint] = entry
        self._entries.move_to_end(fingerprint)
        if self._max_entries is None:
            return
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("Evicted least recently used entry %s", evicted.short)

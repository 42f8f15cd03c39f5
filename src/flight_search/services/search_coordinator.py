"""
Search Coordinator - Domain orchestrator for flight searches.

Coordinates the interaction between:
- SearchValidator (request validation)
- CacheCoordinator (fingerprint-keyed results, single-flight computation)
- ConnectionResolver (itinerary computation against the schedule store)
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Optional

from src.flight_search.ports.ingestion_status import IngestionState, IngestionStatus
from src.flight_search.ports.search_cache import CacheEntry, CacheStats
from src.flight_search.schemas.config import SearchConfig
from src.flight_search.schemas.criteria import DateRange, SearchCriteria
from src.flight_search.schemas.flight import FlightLeg
from src.flight_search.schemas.itinerary import ResolvedItineraries
from src.flight_search.schemas.response import SearchResponse, page_slice
from src.flight_search.services.search_fingerprint import (
    SearchFingerprint,
    compute_fingerprint,
)

if TYPE_CHECKING:
    from src.flight_search.adapters.repositories.cache_coordinator import CacheCoordinator
    from src.flight_search.ports.schedule_store import ScheduleStore
    from src.flight_search.services.connection_resolver import ConnectionResolver
    from src.flight_search.services.search_validator import SearchValidator

logger = logging.getLogger(__name__)


class SearchCoordinator:
    """
    Entry point of the search engine.

    Orchestrates each search:
    1. Validates the request (errors are returned, never raised)
    2. Fingerprints the normalized criteria
    3. Serves from cache, or computes once via the resolver
    4. Logs performance metrics

    Safe for concurrent use; all shared state lives in the cache.

    Attributes:
        _validator: Request validator.
        _resolver: Connection resolver.
        _cache: Search result cache.
        _store: Schedule store (for flight detail lookups).
        _config: Engine configuration.
        _executor: Background executor for ingestion-triggered refreshes.
    """

    def __init__(
        self,
        validator: SearchValidator,
        resolver: ConnectionResolver,
        cache: CacheCoordinator,
        store: ScheduleStore,
        config: Optional[SearchConfig] = None,
    ) -> None:
        self._validator = validator
        self._resolver = resolver
        self._cache = cache
        self._store = store
        self._config = config or SearchConfig()

        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="search-refresh"
        )

    # =========================================================================
    # SEARCH
    # =========================================================================

    def search(
        self,
        criteria: SearchCriteria,
        max_connections: Optional[int] = None,
        page: int = 0,
        page_size: Optional[int] = None,
    ) -> SearchResponse:
        """
        Search for itineraries matching the criteria.

        Args:
            criteria: Search request.
            max_connections: Per-request connection limit (None = default).
            page: Zero-based page of itineraries to return.
            page_size: Itineraries per page (None = configured default).

        Returns:
            SearchResponse holding one page of itineraries and the totals
            across all pages. Validation failures come back as `errors` with
            no itineraries; an empty itinerary list with no errors means no
            flights match.

        Raises:
            ScheduleStoreError: If the schedule store cannot be read.
            SearchTimeoutError: If waiting on another caller's computation
                of the same search timed out.
        """
        start_time = time.perf_counter()

        validation = self._validator.validate(criteria, max_connections, page, page_size)
        if not validation.is_valid:
            logger.info(
                "Search %s -> %s rejected: %d validation errors",
                criteria.origin,
                criteria.destination,
                len(validation.errors),
            )
            return SearchResponse.invalid(criteria, validation.errors)

        connections = self._effective_connections(max_connections)
        fingerprint = compute_fingerprint(criteria, connections)

        computed = False

        def compute() -> ResolvedItineraries:
            nonlocal computed
            computed = True
            return self._compute(criteria, connections)

        entry = self._cache.get_or_compute(
            fingerprint,
            compute,
            criteria=criteria,
            timeout=self._config.wait_timeout,
            max_connections=connections,
        )
        response = self._to_response(
            criteria, entry, not computed, page, self._page_size(page_size)
        )

        logger.info(
            "Search %s -> %s (%s, %s) completed: %d itineraries%s in %.3fms [%s]",
            criteria.origin,
            criteria.destination,
            criteria.date_range,
            fingerprint.short,
            response.total_results,
            " from cache" if response.served_from_cache else "",
            (time.perf_counter() - start_time) * 1000,
            "complete" if response.is_complete else "partial",
        )

        return response

    def has_cached_results(
        self,
        criteria: SearchCriteria,
        max_connections: Optional[int] = None,
    ) -> bool:
        """Check whether a fresh result for the search is cached."""
        entry = self._cache.lookup(self.fingerprint(criteria, max_connections))
        return entry is not None and entry.is_ready

    def fingerprint(
        self,
        criteria: SearchCriteria,
        max_connections: Optional[int] = None,
    ) -> SearchFingerprint:
        """Cache key the engine uses for a search."""
        return compute_fingerprint(criteria, self._effective_connections(max_connections))

    # =========================================================================
    # ADMINISTRATION
    # =========================================================================

    def invalidate(
        self,
        criteria: SearchCriteria,
        max_connections: Optional[int] = None,
    ) -> bool:
        """Drop the cached result of one search."""
        return self._cache.invalidate(self.fingerprint(criteria, max_connections))

    def refresh(
        self,
        criteria: SearchCriteria,
        max_connections: Optional[int] = None,
        page: int = 0,
        page_size: Optional[int] = None,
    ) -> SearchResponse:
        """
        Recompute a search and replace its cached result.

        The previous result stays visible to concurrent searches until the
        new one is ready.
        """
        validation = self._validator.validate(criteria, max_connections, page, page_size)
        if not validation.is_valid:
            return SearchResponse.invalid(criteria, validation.errors)

        connections = self._effective_connections(max_connections)
        fingerprint = compute_fingerprint(criteria, connections)

        computed = False

        def compute() -> ResolvedItineraries:
            nonlocal computed
            computed = True
            return self._compute(criteria, connections)

        entry = self._cache.refresh(
            fingerprint, compute, criteria=criteria, max_connections=connections
        )
        return self._to_response(
            criteria, entry, not computed, page, self._page_size(page_size)
        )

    def on_ingestion_complete(self, status: IngestionStatus) -> int:
        """
        React to a finished ingestion run.

        Cached searches whose dates overlap the ingested range are
        invalidated. With `refresh_on_ingestion` they are recomputed in the
        background instead, and keep being served until the refresh lands.

        Returns:
            Number of cached searches invalidated or scheduled for refresh.
        """
        if status.state is IngestionState.IN_PROGRESS:
            return 0

        def affected(criteria: Optional[SearchCriteria]) -> bool:
            return criteria is not None and self._is_affected(criteria, status)

        if not self._config.refresh_on_ingestion:
            count = self._cache.invalidate_where(affected)
            logger.info(
                "Ingestion %s (%s) invalidated %d cached searches",
                status.ingestion_id,
                status.state.value,
                count,
            )
            return count

        detached = self._cache.invalidate_where(affected, running_only=True)
        entries = self._cache.entries_where(affected)
        for entry in entries:
            self._executor.submit(self._background_refresh, entry)

        logger.info(
            "Ingestion %s (%s) scheduled %d background refreshes",
            status.ingestion_id,
            status.state.value,
            len(entries),
        )
        return len(entries) + detached

    def get_flight(self, flight_id: str) -> Optional[FlightLeg]:
        """
        Look up one leg by identifier.

        Returns:
            The leg, or None when it does not exist.

        Raises:
            ScheduleStoreError: If the schedule store cannot be read.
        """
        if not flight_id or not flight_id.strip():
            return None
        return self._store.get_leg(flight_id.strip())

    def clear_cache(self) -> int:
        return self._cache.clear()

    @property
    def cache_stats(self) -> CacheStats:
        return self._cache.stats

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background refresh executor."""
        self._executor.shutdown(wait=wait)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _effective_connections(self, max_connections: Optional[int]) -> int:
        if max_connections is None:
            return self._config.default_max_connections
        return max_connections

    def _page_size(self, page_size: Optional[int]) -> int:
        if page_size is None:
            return self._config.default_page_size
        return page_size

    def _compute(self, criteria: SearchCriteria, connections: int) -> ResolvedItineraries:
        """Run the resolver for both directions of the search."""
        authoritative_before = self._resolver.is_authoritative(criteria)

        outbound = self._resolver.resolve(criteria, connections)
        inbound = []
        if criteria.is_round_trip:
            inbound = self._resolver.resolve_return(criteria, connections)

        is_complete = authoritative_before and self._resolver.is_authoritative(criteria)
        if not is_complete:
            logger.warning(
                "Schedule data for %s -> %s (%s) is still being ingested; "
                "results may be incomplete",
                criteria.origin,
                criteria.destination,
                criteria.date_range,
            )

        return ResolvedItineraries(
            outbound=tuple(outbound),
            inbound=tuple(inbound),
            is_complete=is_complete,
        )

    def _is_affected(self, criteria: SearchCriteria, status: IngestionStatus) -> bool:
        """Could the ingested data change the result of this search?"""
        if status.airline_ids and criteria.airlines and not (
            status.airline_ids & criteria.airlines
        ):
            return False

        limit = self._config.max_connections_limit
        if status.date_range.overlaps(
            self._resolver.connection_window(criteria.date_range, limit)
        ):
            return True

        if criteria.is_round_trip and criteria.return_date is not None:
            window = self._resolver.connection_window(
                DateRange.single(criteria.return_date), limit
            )
            return status.date_range.overlaps(window)

        return False

    def _background_refresh(self, entry: CacheEntry) -> None:
        """Execute refresh in background thread."""
        connections = entry.max_connections
        if connections is None or entry.criteria is None:
            logger.warning("Cannot refresh %s: unknown search", entry.fingerprint.short)
            self._cache.invalidate(entry.fingerprint)
            return

        criteria = entry.criteria
        try:
            self._cache.refresh(
                entry.fingerprint,
                lambda: self._compute(criteria, connections),
                criteria=criteria,
                max_connections=connections,
            )
            logger.debug("Background refresh of %s completed", entry.fingerprint.short)
        except Exception as e:
            # Keep serving the previous result on failure
            logger.error("Background refresh of %s failed: %s", entry.fingerprint.short, e)

    @staticmethod
    def _to_response(
        criteria: SearchCriteria,
        entry: CacheEntry,
        served_from_cache: bool,
        page: int,
        page_size: int,
    ) -> SearchResponse:
        """Cut one page out of the cached itinerary lists."""
        return SearchResponse(
            criteria=criteria,
            itineraries=page_slice(entry.itineraries, page, page_size),
            return_itineraries=page_slice(entry.return_itineraries, page, page_size),
            served_from_cache=served_from_cache,
            is_complete=entry.is_complete,
            fingerprint=entry.fingerprint,
            total_results=len(entry.itineraries),
            total_return_results=len(entry.return_itineraries),
            page=page,
            page_size=page_size,
        )

"""
SearchFlights Use Case - Public API for flight schedule searches.

This module provides the main entry point for the search engine. It acts
as a Facade/Factory, handling dependency initialization and providing a
clean interface for consumers.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Iterable, Optional, Union

from src.flight_search.adapters.ingestion.ingestion_tracker import (
    InMemoryIngestionTracker,
)
from src.flight_search.adapters.repositories.cache_coordinator import CacheCoordinator
from src.flight_search.adapters.schedule_stores.sqlite_store import SQLiteScheduleStore
from src.flight_search.ports.ingestion_status import IngestionStatus
from src.flight_search.ports.schedule_store import ScheduleStore
from src.flight_search.ports.search_cache import CacheStats
from src.flight_search.schemas.config import SearchConfig
from src.flight_search.schemas.criteria import DateRange, SearchCriteria, SeatClass
from src.flight_search.schemas.flight import FlightLeg
from src.flight_search.schemas.response import SearchResponse
from src.flight_search.services.connection_resolver import ConnectionResolver
from src.flight_search.services.search_coordinator import SearchCoordinator
from src.flight_search.services.search_validator import SearchValidator

logger = logging.getLogger(__name__)


class SearchFlights:
    """
    Public API for searching flight schedules.

    Wires the schedule store, ingestion tracker, validator, resolver, cache
    and coordinator from a single SearchConfig.

    Example usage:
        >>> engine = SearchFlights()
        >>> response = engine.search(
        ...     origin="JFK",
        ...     destination="LAX",
        ...     departure_date=date(2024, 6, 1),
        ... )
        >>> for itinerary in response.itineraries:
        ...     print(itinerary.route_airports, itinerary.elapsed)

    Attributes:
        _store: Schedule store.
        _tracker: Ingestion tracker (also the ingestion status provider).
        _coordinator: Underlying SearchCoordinator.
    """

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        store: Optional[ScheduleStore] = None,
        tracker: Optional[InMemoryIngestionTracker] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        """
        Initialize the engine with optional custom dependencies.

        Args:
            config: Engine configuration. Defaults to SearchConfig().
            store: Custom schedule store. If None, uses SQLiteScheduleStore
                at config.db_path.
            tracker: Custom ingestion tracker. If None, a fresh
                InMemoryIngestionTracker is created.
            today: Clock used by the validator to decide what is "past".
        """
        self._config = config or SearchConfig()

        if store is not None:
            self._store = store
        else:
            self._store = SQLiteScheduleStore(
                db_path=self._config.db_path,
                timeout=self._config.store_timeout_seconds,
            )

        self._tracker = tracker or InMemoryIngestionTracker()

        self._coordinator = SearchCoordinator(
            validator=SearchValidator(self._config, today=today),
            resolver=ConnectionResolver(self._store, self._config, self._tracker),
            cache=CacheCoordinator.from_config(self._config),
            store=self._store,
            config=self._config,
        )
        self._tracker.subscribe(self._coordinator.on_ingestion_complete)

        logger.info(
            "SearchFlights initialized with %s (max %d connections, cache TTL %.0fs)",
            self._store.name,
            self._config.max_connections_limit,
            self._config.cache_ttl_seconds,
        )

    def search(
        self,
        origin: str,
        destination: str,
        departure_date: Union[date, DateRange],
        end_date: Optional[date] = None,
        seat_class: Union[str, SeatClass] = SeatClass.ECONOMY,
        return_date: Optional[date] = None,
        round_trip: Optional[bool] = None,
        max_connections: Optional[int] = None,
        airlines: Optional[Iterable[str]] = None,
        min_seats: int = 1,
        page: int = 0,
        page_size: Optional[int] = None,
    ) -> SearchResponse:
        """
        Search for itineraries between two airports.

        Args:
            origin: Origin airport code (e.g., 'JFK').
            destination: Destination airport code (e.g., 'LAX').
            departure_date: First departure date, or a full DateRange.
            end_date: Last departure date (defaults to departure_date).
            seat_class: ECONOMY, BUSINESS or FIRST.
            return_date: Return date for round trips.
            round_trip: Whether to search the return leg. Defaults to True
                when a return_date is given.
            max_connections: Connection limit (None = configured default).
            airlines: Only use legs operated by these airlines.
            min_seats: Seats required on every leg.
            page: Zero-based page of itineraries to return.
            page_size: Itineraries per page (None = configured default).

        Returns:
            SearchResponse with itineraries or validation errors.

        Example:
            >>> engine.search("JFK", "LAX", date(2024, 6, 1), max_connections=0)
        """
        if isinstance(departure_date, DateRange):
            date_range = departure_date
        else:
            date_range = DateRange(start=departure_date, end=end_date or departure_date)

        if round_trip is None:
            round_trip = return_date is not None

        criteria = SearchCriteria.create(
            origin=origin,
            destination=destination,
            date_range=date_range,
            seat_class=seat_class,
            is_round_trip=round_trip,
            return_date=return_date,
            airlines=airlines,
            min_seats=min_seats,
        )
        return self._coordinator.search(criteria, max_connections, page, page_size)

    def search_criteria(
        self,
        criteria: SearchCriteria,
        max_connections: Optional[int] = None,
        page: int = 0,
        page_size: Optional[int] = None,
    ) -> SearchResponse:
        """Search with pre-built criteria."""
        return self._coordinator.search(criteria, max_connections, page, page_size)

    def invalidate(
        self,
        criteria: SearchCriteria,
        max_connections: Optional[int] = None,
    ) -> bool:
        """Drop one cached search result."""
        return self._coordinator.invalidate(criteria, max_connections)

    def refresh(
        self,
        criteria: SearchCriteria,
        max_connections: Optional[int] = None,
        page: int = 0,
        page_size: Optional[int] = None,
    ) -> SearchResponse:
        """Recompute one search and replace its cached result."""
        return self._coordinator.refresh(criteria, max_connections, page, page_size)

    def has_cached_results(
        self,
        criteria: SearchCriteria,
        max_connections: Optional[int] = None,
    ) -> bool:
        return self._coordinator.has_cached_results(criteria, max_connections)

    def clear_cache(self) -> int:
        return self._coordinator.clear_cache()

    def get_flight(self, flight_id: str) -> Optional[FlightLeg]:
        """
        Get details of one flight leg.

        Returns:
            The leg, or None if no such flight exists.
        """
        return self._coordinator.get_flight(flight_id)

    def get_available_airports(self) -> frozenset[str]:
        """
        Get all airports present in the schedule.

        Returns:
            Frozenset of airport codes.
        """
        return frozenset(self._store.get_airports())

    def complete_ingestion(
        self,
        date_range: DateRange,
        airline_ids: Optional[Iterable[str]] = None,
    ) -> int:
        """
        Record an ingestion run that already finished outside the engine.

        Cached searches overlapping the range are invalidated (or refreshed).

        Returns:
            Number of cached searches affected.
        """
        run = self._tracker.start(date_range, airline_ids)
        status = self._tracker.mark_complete(run.ingestion_id, notify=False)
        return self.on_ingestion_complete(status)

    def on_ingestion_complete(self, status: IngestionStatus) -> int:
        """Apply a finished ingestion run to the search cache."""
        return self._coordinator.on_ingestion_complete(status)

    @property
    def tracker(self) -> InMemoryIngestionTracker:
        """Ingestion tracker the ingestion job reports to."""
        return self._tracker

    @property
    def config(self) -> SearchConfig:
        return self._config

    @property
    def cache_stats(self) -> CacheStats:
        return self._coordinator.cache_stats

    @property
    def is_ready(self) -> bool:
        """Check if the engine can serve searches."""
        return self._store.is_available

    def shutdown(self) -> None:
        """
        Clean shutdown of the engine.

        Stops background refreshes and closes the schedule store.
        """
        self._coordinator.shutdown()
        if hasattr(self._store, "close"):
            self._store.close()
        logger.info("SearchFlights shutdown complete")

    def __enter__(self) -> "SearchFlights":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit with cleanup."""
        self.shutdown()

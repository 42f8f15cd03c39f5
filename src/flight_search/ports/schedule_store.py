"""
Schedule Store port interface.

Defines the read-only contract for sources of scheduled flight legs.
Implementations handle the specifics of different backends (in-memory
DataFrame, SQLite, ...). The engine never owns the store's lifecycle.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Set

from src.flight_search.schemas.criteria import DateRange, SeatClass
from src.flight_search.schemas.flight import FlightLeg


class ScheduleStore(ABC):
    """
    Abstract interface for schedule stores.

    All methods must be safe for concurrent invocation. A failing read must
    raise ScheduleStoreError - returning an empty list is reserved for
    "no flights match", so the two can never be confused.

    Implementations:
    - DataFrameScheduleStore: In-memory, indexed pandas DataFrame
    - SQLiteScheduleStore: SQL -> DataFrame from a SQLite database
    """

    @abstractmethod
    def find_legs(
        self,
        origin: str,
        destination: Optional[str],
        date_range: DateRange,
        seat_class: SeatClass,
        min_seats: int = 1,
    ) -> List[FlightLeg]:
        """
        Return legs departing `origin` within `date_range`.

        Args:
            origin: Departure airport code.
            destination: Arrival airport code, or None for any destination.
            date_range: Dates (inclusive) on which the leg departs.
            seat_class: Cabin that must have seats available.
            min_seats: Minimum seats required in `seat_class`.

        Returns:
            Matching legs ordered by departure time.

        Raises:
            ScheduleStoreError: If the store cannot be read.
        """
        ...

    @abstractmethod
    def get_leg(self, flight_id: str) -> Optional[FlightLeg]:
        """
        Look up a single leg by identifier.

        Returns:
            The leg, or None when no such flight exists.

        Raises:
            ScheduleStoreError: If the store cannot be read.
        """
        ...

    @abstractmethod
    def get_airports(self) -> Set[str]:
        """
        Return all airport codes present in the schedule.

        Raises:
            ScheduleStoreError: If the store cannot be read.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable store name (e.g., "SQLite schedules")."""
        ...

    @property
    def is_available(self) -> bool:
        """
        Check if the store is currently reachable.

        Default implementation returns True. Override for stores that need
        connection health checks.
        """
        return True

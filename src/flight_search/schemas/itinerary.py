"""
Itinerary result schemas.

Defines the output contract of the connection resolver: an Itinerary is an
ordered, airport-continuous chain of flight legs.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Sequence, Tuple

from src.flight_search.schemas.flight import FlightLeg


@dataclass(frozen=True)
class Itinerary:
    """
    Immutable travel option made of one or more legs.

    Built through `from_legs`, which enforces airport continuity. Layover
    bounds are enforced by the resolver, which owns the connection-time
    configuration.
    """

    legs: Tuple[FlightLeg, ...]

    @classmethod
    def from_legs(cls, legs: Sequence[FlightLeg]) -> "Itinerary":
        """
        Factory method to create an Itinerary from legs.

        Raises:
            ValueError: If no legs are given or consecutive legs do not meet
                at the same airport.
        """
        if not legs:
            raise ValueError("Itinerary must have at least one leg")

        for current, following in zip(legs, legs[1:]):
            if current.destination != following.origin:
                raise ValueError(
                    f"Leg {following.flight_id} departs {following.origin}, "
                    f"but previous leg {current.flight_id} arrives at {current.destination}"
                )

        return cls(legs=tuple(legs))

    @property
    def itinerary_id(self) -> str:
        """Stable identifier derived from the leg identifiers."""
        return "+".join(leg.flight_id for leg in self.legs)

    @property
    def origin(self) -> str:
        return self.legs[0].origin

    @property
    def destination(self) -> str:
        return self.legs[-1].destination

    @property
    def departure_time(self) -> datetime:
        return self.legs[0].departure_time

    @property
    def arrival_time(self) -> datetime:
        return self.legs[-1].arrival_time

    @property
    def elapsed(self) -> timedelta:
        """Total elapsed time from first departure to last arrival."""
        return self.arrival_time - self.departure_time

    @property
    def elapsed_minutes(self) -> float:
        return self.elapsed.total_seconds() / 60

    @property
    def num_legs(self) -> int:
        return len(self.legs)

    @property
    def num_connections(self) -> int:
        return len(self.legs) - 1

    @property
    def layovers(self) -> List[timedelta]:
        """Ground time at each connecting airport, in order."""
        return [
            following.departure_time - current.arrival_time
            for current, following in zip(self.legs, self.legs[1:])
        ]

    @property
    def route_airports(self) -> List[str]:
        """Ordered list of all airports on the itinerary."""
        return [self.legs[0].origin] + [leg.destination for leg in self.legs]

    @property
    def airlines(self) -> List[str]:
        return [leg.airline_id for leg in self.legs]

    @property
    def sort_key(self) -> Tuple[timedelta, int, datetime]:
        """Result ordering: elapsed time, then leg count, then departure."""
        return (self.elapsed, self.num_legs, self.departure_time)


@dataclass(frozen=True)
class ResolvedItineraries:
    """
    Output of one search computation, as stored by the cache coordinator.

    Attributes:
        outbound: Itineraries from origin to destination, ordered.
        inbound: Return itineraries for round trips (empty otherwise).
        is_complete: False when the schedule data for the searched dates
            was still being ingested, so an empty result is not authoritative.
    """

    outbound: Tuple[Itinerary, ...] = ()
    inbound: Tuple[Itinerary, ...] = ()
    is_complete: bool = True

"""
Connection Resolver - finds direct and connecting itineraries.

Treats airports as graph nodes and scheduled legs as directed, timed edges,
then runs an iterative, level-by-level bounded-depth search from the origin.
Search state lives in local variables only, so one resolver instance can
serve many searches concurrently.
"""

from __future__ import annotations

import logging
import math
import time
from datetime import timedelta
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

from src.flight_search.exceptions import ScheduleStoreError
from src.flight_search.schemas.config import SearchConfig
from src.flight_search.schemas.criteria import DateRange, SearchCriteria, SeatClass
from src.flight_search.schemas.flight import FlightLeg
from src.flight_search.schemas.itinerary import Itinerary

if TYPE_CHECKING:
    from src.flight_search.ports.ingestion_status import IngestionStatusProvider
    from src.flight_search.ports.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)

Path = Tuple[FlightLeg, ...]


def drop_needless_connections(paths: Sequence[Path]) -> List[Path]:
    """
    Drop connecting paths that a path with fewer legs makes pointless.

    A path is dropped only when another one with strictly fewer legs departs
    no earlier and arrives no later. Paths with the same number of legs are
    never compared, so every direct flight is kept.
    """
    return [
        candidate
        for candidate in paths
        if not any(
            len(other) < len(candidate)
            and other[0].departure_time >= candidate[0].departure_time
            and other[-1].arrival_time <= candidate[-1].arrival_time
            for other in paths
        )
    ]


def can_still_improve(partial: Path, complete: Sequence[Path]) -> bool:
    """
    Check whether extending `partial` could yield an itinerary worth keeping.

    Any completion of `partial` departs when it does, arrives later than its
    current arrival and has more legs than it. If the destination was
    already reached by a path with no more legs than `partial`, departing no
    earlier and arriving no later than `partial` already has, every
    completion would be dropped by drop_needless_connections.
    """
    departure = partial[0].departure_time
    arrival = partial[-1].arrival_time
    return not any(
        c[0].departure_time >= departure
        and c[-1].arrival_time <= arrival
        and len(c) <= len(partial)
        for c in complete
    )


class _LegLoader:
    """
    Per-search memo of schedule store reads.

    Each (airport, destination, hop) combination is read from the store at
    most once per search. Store errors propagate unchanged.
    """

    def __init__(
        self,
        store: ScheduleStore,
        criteria: SearchCriteria,
        seat_class: SeatClass,
        connection_range: DateRange,
    ) -> None:
        self._store = store
        self._criteria = criteria
        self._seat_class = seat_class
        self._connection_range = connection_range
        self._memo: Dict[Tuple[str, Optional[str], bool], List[FlightLeg]] = {}
        self.store_calls = 0

    def legs_from(
        self, airport: str, destination: Optional[str], first_hop: bool
    ) -> List[FlightLeg]:
        key = (airport, destination, first_hop)
        if key not in self._memo:
            date_range = self._criteria.date_range if first_hop else self._connection_range
            self.store_calls += 1
            legs = self._store.find_legs(
                airport,
                destination,
                date_range,
                self._seat_class,
                min_seats=self._criteria.min_seats,
            )
            airlines = self._criteria.airlines
            self._memo[key] = [
                leg
                for leg in legs
                if leg.has_seats(self._seat_class, self._criteria.min_seats)
                and (not airlines or leg.airline_id in airlines)
            ]
        return self._memo[key]


class ConnectionResolver:
    """
    Domain service resolving itineraries from the schedule store.

    Pruning rules applied while extending a partial path:
    (a) the next leg must depart the airport the path currently ends at;
    (b) the layover must lie within [min_connection_time, max_layover];
    (c) a path never exceeds max_connections + 1 legs;
    (d) a leg may not revisit an airport already on the path, and a partial
        path is dropped once a path with no more legs reached the
        destination departing no earlier and arriving no later.

    Every complete itinerary is returned, except a connecting one for which
    a path with fewer legs departs no earlier and arrives no later.

    Attributes:
        _store: Schedule store (read-only).
        _config: Connection-time limits.
        _ingestion_status: Optional ingestion status provider.
    """

    def __init__(
        self,
        store: ScheduleStore,
        config: Optional[SearchConfig] = None,
        ingestion_status: Optional[IngestionStatusProvider] = None,
    ) -> None:
        self._store = store
        self._config = config or SearchConfig()
        self._ingestion_status = ingestion_status

    def resolve(
        self,
        criteria: SearchCriteria,
        max_connections: int = 1,
    ) -> List[Itinerary]:
        """
        Find itineraries from criteria.origin to criteria.destination.

        Args:
            criteria: Validated search criteria.
            max_connections: Maximum number of connections (0 = direct only).

        Returns:
            Itineraries ordered by elapsed time, leg count, then departure.
            An empty list means no schedule satisfies the constraints.

        Raises:
            ValueError: If max_connections is negative or the seat class is
                not recognized (both rejected earlier by the validator).
            ScheduleStoreError: If the schedule store cannot be read.
        """
        if max_connections < 0:
            raise ValueError(f"max_connections must be >= 0, got {max_connections}")
        seat_class = SeatClass.parse(criteria.seat_class)
        if seat_class is None:
            raise ValueError(f"Unrecognized seat class: {criteria.seat_class!r}")

        start_time = time.perf_counter()
        max_legs = max_connections + 1
        loader = _LegLoader(
            self._store,
            criteria,
            seat_class,
            self.connection_window(criteria.date_range, max_connections),
        )

        try:
            complete, pruned = self._search(criteria, loader, max_legs)
        except ScheduleStoreError:
            logger.error(
                "Schedule store failed while resolving %s -> %s (%s)",
                criteria.origin,
                criteria.destination,
                criteria.date_range,
            )
            raise

        itineraries = [Itinerary.from_legs(path) for path in drop_needless_connections(complete)]
        itineraries.sort(key=lambda itinerary: itinerary.sort_key)

        logger.info(
            "Resolved %s -> %s: %d itineraries (%d candidates, %d pruned) "
            "with %d store reads in %.3fms",
            criteria.origin,
            criteria.destination,
            len(itineraries),
            len(complete),
            pruned,
            loader.store_calls,
            (time.perf_counter() - start_time) * 1000,
        )

        return itineraries

    def resolve_return(
        self,
        criteria: SearchCriteria,
        max_connections: int = 1,
    ) -> List[Itinerary]:
        """Resolve the return itineraries of a round trip (reversed route)."""
        return self.resolve(criteria.reversed_for_return(), max_connections)

    def is_authoritative(self, criteria: SearchCriteria) -> bool:
        """
        Check whether schedule data for the searched dates is fully ingested.

        Without an ingestion status provider every result is authoritative.
        """
        if self._ingestion_status is None:
            return True

        ranges = [criteria.date_range]
        if criteria.is_round_trip and criteria.return_date is not None:
            ranges.append(DateRange.single(criteria.return_date))

        airlines = sorted(criteria.airlines) or [None]
        return all(
            self._ingestion_status.is_ingested(date_range, airline)
            for date_range in ranges
            for airline in airlines
        )

    def _search(
        self,
        criteria: SearchCriteria,
        loader: _LegLoader,
        max_legs: int,
    ) -> Tuple[List[Path], int]:
        """Level-by-level expansion; returns complete paths and prune count."""
        origin, destination = criteria.origin, criteria.destination
        min_connection = self._config.min_connection_time
        max_layover = self._config.max_layover

        complete: List[Path] = []
        frontier: List[Path] = []
        pruned = 0

        first_target = destination if max_legs == 1 else None
        for leg in loader.legs_from(origin, first_target, first_hop=True):
            if leg.origin != origin:
                continue
            if leg.destination == destination:
                complete.append((leg,))
            elif max_legs > 1 and leg.destination != origin:
                frontier.append((leg,))

        for depth in range(2, max_legs + 1):
            last_level = depth == max_legs
            next_frontier: List[Path] = []

            for path in frontier:
                if not can_still_improve(path, complete):
                    pruned += 1
                    continue

                current = path[-1]
                on_path = {path[0].origin}
                on_path.update(leg.destination for leg in path)

                target = destination if last_level else None
                for leg in loader.legs_from(current.destination, target, first_hop=False):
                    if leg.origin != current.destination:
                        continue
                    if leg.destination in on_path:
                        continue
                    layover = leg.departure_time - current.arrival_time
                    if layover < min_connection or layover > max_layover:
                        continue

                    extended = path + (leg,)
                    if leg.destination == destination:
                        complete.append(extended)
                    elif not last_level:
                        next_frontier.append(extended)

            frontier = next_frontier
            if not frontier:
                break

        return complete, pruned

    def connection_window(self, date_range: DateRange, max_connections: int) -> DateRange:
        """
        Dates on which any leg of an itinerary may depart.

        Each connecting leg may start up to one overnight flight plus the
        maximum layover after the previous one.
        """
        if max_connections <= 0:
            return date_range
        layover_days = math.ceil(self._config.max_layover / timedelta(days=1))
        return date_range.extended(max_connections * (1 + layover_days))

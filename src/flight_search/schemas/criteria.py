"""
Search criteria value objects.

Defines the request-side contract of the search engine: airport codes,
date ranges, seat classes and the combined SearchCriteria. These objects
normalize input but never reject it - rejection is the job of
SearchValidator, which reports every problem as a field-attributed error.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import FrozenSet, Iterable, Iterator, Optional, Union

# IATA (3 letters) or ICAO (4 letters)
AIRPORT_CODE_PATTERN = re.compile(r"^[A-Z]{3,4}$")


class SeatClass(str, Enum):
    """Cabin classes recognized by the schedule store."""

    ECONOMY = "ECONOMY"
    BUSINESS = "BUSINESS"
    FIRST = "FIRST"

    @property
    def column(self) -> str:
        """Name of the seat-count column for this class in leg frames."""
        return f"{self.value.lower()}_seats"

    @classmethod
    def parse(cls, raw: Union[str, "SeatClass", None]) -> Optional["SeatClass"]:
        """Return the matching SeatClass, or None for unrecognized values."""
        if isinstance(raw, SeatClass):
            return raw
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class AirportCode:
    """
    Immutable IATA/ICAO airport code.

    Attributes:
        code: Upper-case 3 or 4 letter code.
    """

    code: str

    def __post_init__(self) -> None:
        if not AIRPORT_CODE_PATTERN.match(self.code):
            raise ValueError(
                f"'{self.code}' is not a valid IATA (3 letters) or ICAO (4 letters) code"
            )

    @classmethod
    def parse(cls, raw: Optional[str]) -> "AirportCode":
        """
        Case-fold and validate a raw airport code.

        Raises:
            ValueError: If the code is missing or malformed.
        """
        if raw is None or not str(raw).strip():
            raise ValueError("Airport code is required")
        return cls(normalize_airport_code(raw))

    def __str__(self) -> str:
        return self.code


def normalize_airport_code(raw: Optional[str]) -> str:
    """Strip and upper-case an airport code without validating it."""
    if raw is None:
        return ""
    return str(raw).strip().upper()


def normalize_airline_codes(raw: Optional[Iterable[str]]) -> FrozenSet[str]:
    """Strip and upper-case airline codes, dropping blanks."""
    codes = (str(code).strip().upper() for code in (raw or ()) if code is not None)
    return frozenset(code for code in codes if code)


@dataclass(frozen=True)
class DateRange:
    """
    Inclusive range of calendar dates.

    The range may be constructed inverted (start > end) so that the
    validator can report it; callers should check `is_ordered` first.
    """

    start: date
    end: date

    @classmethod
    def single(cls, day: date) -> "DateRange":
        """Range covering exactly one day."""
        return cls(start=day, end=day)

    @classmethod
    def parse(cls, raw: str) -> "DateRange":
        """
        Parse the 'YYYY-MM-DD/YYYY-MM-DD' wire format.

        Raises:
            ValueError: If the string is not two ISO dates separated by '/'.
        """
        parts = raw.split("/")
        if len(parts) != 2:
            raise ValueError("Date range must be in format YYYY-MM-DD/YYYY-MM-DD")
        return cls(
            start=date.fromisoformat(parts[0].strip()),
            end=date.fromisoformat(parts[1].strip()),
        )

    @property
    def is_ordered(self) -> bool:
        return self.start <= self.end

    @property
    def days(self) -> int:
        """Number of calendar days covered (inclusive)."""
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def overlaps(self, other: "DateRange") -> bool:
        return self.start <= other.end and other.start <= self.end

    def extended(self, days: int) -> "DateRange":
        """Return a copy whose end is pushed `days` later."""
        return DateRange(start=self.start, end=self.end + timedelta(days=days))

    def iter_dates(self) -> Iterator[date]:
        day = self.start
        while day <= self.end:
            yield day
            day += timedelta(days=1)

    def __str__(self) -> str:
        return f"{self.start.isoformat()}/{self.end.isoformat()}"


@dataclass(frozen=True)
class SearchCriteria:
    """
    Immutable flight search request.

    Frozen so a single instance can be shared between the caller, the
    cache coordinator and the background refresh thread.

    Attributes:
        origin: Departure airport code (normalized upper-case).
        destination: Arrival airport code (normalized upper-case).
        date_range: Dates on which the first leg may depart.
        seat_class: SeatClass, or the raw value when unrecognized.
        is_round_trip: Whether a return itinerary is requested.
        return_date: Departure date of the return itinerary.
        airlines: Optional airline filter (empty = any airline).
        min_seats: Seats required in the requested class on every leg.
    """

    origin: str
    destination: str
    date_range: DateRange
    seat_class: Union[SeatClass, str] = SeatClass.ECONOMY
    is_round_trip: bool = False
    return_date: Optional[date] = None
    airlines: FrozenSet[str] = field(default_factory=frozenset)
    min_seats: int = 1

    def __post_init__(self) -> None:
        # Codes are stored the way the schedule store and the fingerprint spell them
        object.__setattr__(self, "origin", normalize_airport_code(self.origin))
        object.__setattr__(self, "destination", normalize_airport_code(self.destination))
        object.__setattr__(self, "airlines", normalize_airline_codes(self.airlines))

    @classmethod
    def create(
        cls,
        origin: str,
        destination: str,
        date_range: DateRange,
        seat_class: Union[SeatClass, str, None] = SeatClass.ECONOMY,
        is_round_trip: bool = False,
        return_date: Optional[date] = None,
        airlines: Optional[Iterable[str]] = None,
        min_seats: int = 1,
    ) -> "SearchCriteria":
        """
        Factory that normalizes raw request values.

        Airport and airline codes are case-folded, seat class is coerced to
        the enum when recognized, and the airline filter is frozen. Invalid
        values are kept as-is for the validator to report.
        """
        parsed_class = SeatClass.parse(seat_class)
        if parsed_class is None:
            parsed_class = seat_class if seat_class is not None else ""

        return cls(
            origin=origin,
            destination=destination,
            date_range=date_range,
            seat_class=parsed_class,
            is_round_trip=bool(is_round_trip),
            return_date=return_date,
            airlines=frozenset(airlines or ()),
            min_seats=min_seats,
        )

    @property
    def departure_date(self) -> date:
        """First date on which the outbound itinerary may depart."""
        return self.date_range.start

    def reversed_for_return(self) -> "SearchCriteria":
        """Criteria for the return leg of a round trip (one-way, on return_date)."""
        if self.return_date is None:
            raise ValueError("Round trip criteria require a return_date")
        return SearchCriteria(
            origin=self.destination,
            destination=self.origin,
            date_range=DateRange.single(self.return_date),
            seat_class=self.seat_class,
            is_round_trip=False,
            return_date=None,
            airlines=self.airlines,
            min_seats=self.min_seats,
        )

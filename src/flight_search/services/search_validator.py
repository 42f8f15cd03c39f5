"""
Search Validator - rejects malformed or impossible requests before lookup.

All checks run on every request and every failure is reported, so a caller
fixing a form sees all problems at once. Nothing is silently corrected.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional

from src.flight_search.schemas.config import SearchConfig
from src.flight_search.schemas.criteria import AirportCode, SearchCriteria, SeatClass
from src.flight_search.schemas.response import FieldError, ValidationResult

logger = logging.getLogger(__name__)

AIRLINE_CODE_PATTERN = re.compile(r"^[A-Z0-9]{2}$")
MIN_SEATS = 1
MAX_SEATS = 9


def _is_calendar_date(value: object) -> bool:
    return isinstance(value, date) and not isinstance(value, datetime)


class SearchValidator:
    """
    Pure validation of SearchCriteria.

    Stateless apart from configuration and the clock used to decide what
    "the past" is; safe to share between threads.

    Attributes:
        _config: Limits (grace window, advance window, range lengths).
        _today: Callable returning the current date.
    """

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._config = config or SearchConfig()
        self._today = today

    def validate(
        self,
        criteria: SearchCriteria,
        max_connections: Optional[int] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> ValidationResult:
        """
        Validate search criteria.

        Args:
            criteria: Request to validate.
            max_connections: Optional per-request connection override.
            page: Optional zero-based result page.
            page_size: Optional itineraries per page.

        Returns:
            ValidationResult listing every field error (empty when valid).
        """
        errors: List[FieldError] = []

        self._check_airports(criteria, errors)
        departure_ok = self._check_date_range(criteria, errors)
        self._check_return(criteria, errors, departure_ok)
        self._check_seat_class(criteria, errors)
        self._check_max_connections(max_connections, errors)
        self._check_airlines(criteria, errors)
        self._check_min_seats(criteria, errors)
        self._check_paging(page, page_size, errors)

        if errors:
            logger.debug(
                "Rejected search %s -> %s: %s",
                criteria.origin,
                criteria.destination,
                [e.code for e in errors],
            )

        return ValidationResult(errors=tuple(errors))

    def _check_airports(self, criteria: SearchCriteria, errors: List[FieldError]) -> None:
        origin = destination = None

        try:
            origin = AirportCode.parse(criteria.origin)
        except ValueError as e:
            errors.append(FieldError("origin", str(e), "INVALID_ORIGIN_FORMAT"))

        try:
            destination = AirportCode.parse(criteria.destination)
        except ValueError as e:
            errors.append(FieldError("destination", str(e), "INVALID_DESTINATION_FORMAT"))

        if origin is not None and origin == destination:
            errors.append(
                FieldError(
                    "destination",
                    "Origin and destination airports must differ",
                    "SAME_ORIGIN_DESTINATION",
                )
            )

    def _check_date_range(self, criteria: SearchCriteria, errors: List[FieldError]) -> bool:
        """Check the departure range; returns True if the start date is usable."""
        date_range = criteria.date_range
        start = getattr(date_range, "start", None)
        end = getattr(date_range, "end", None)

        if not (_is_calendar_date(start) and _is_calendar_date(end)):
            errors.append(
                FieldError(
                    "dateRange",
                    "Date range must have a valid start and end date",
                    "MALFORMED_DATE_RANGE",
                )
            )
            return False

        if start > end:
            errors.append(
                FieldError(
                    "dateRange",
                    f"Start date {start} is after end date {end}",
                    "INVALID_DATE_RANGE",
                )
            )

        today = self._today()
        earliest = today - timedelta(days=self._config.past_grace_days)
        if start < earliest:
            errors.append(
                FieldError(
                    "dateRange",
                    f"Departure date {start} is in the past",
                    "DEPARTURE_IN_PAST",
                )
            )

        latest = today + timedelta(days=self._config.max_days_in_advance)
        if start > latest:
            errors.append(
                FieldError(
                    "dateRange",
                    f"Cannot search flights more than "
                    f"{self._config.max_days_in_advance} days in advance",
                    "FUTURE_DATE_TOO_FAR",
                )
            )

        if start <= end and (end - start).days > self._config.max_date_range_days:
            errors.append(
                FieldError(
                    "dateRange",
                    f"Date range cannot span more than "
                    f"{self._config.max_date_range_days} days",
                    "DATE_RANGE_TOO_LONG",
                )
            )

        return True

    def _check_return(
        self,
        criteria: SearchCriteria,
        errors: List[FieldError],
        departure_ok: bool,
    ) -> None:
        if not criteria.is_round_trip:
            return

        return_date = criteria.return_date
        if return_date is None:
            errors.append(
                FieldError(
                    "returnDate",
                    "Return date is required for round trips",
                    "MISSING_RETURN_DATE",
                )
            )
            return

        if not _is_calendar_date(return_date):
            errors.append(
                FieldError("returnDate", "Return date must be a valid date", "INVALID_RETURN_DATE")
            )
            return

        if not departure_ok:
            return

        departure = criteria.date_range.start
        if return_date < departure:
            errors.append(
                FieldError(
                    "returnDate",
                    f"Return date {return_date} must not be before departure date {departure}",
                    "INVALID_RETURN_DATE",
                )
            )
        elif (return_date - departure).days > self._config.max_trip_days:
            errors.append(
                FieldError(
                    "returnDate",
                    f"Trip duration cannot exceed {self._config.max_trip_days} days",
                    "TRIP_DURATION_TOO_LONG",
                )
            )

    def _check_seat_class(self, criteria: SearchCriteria, errors: List[FieldError]) -> None:
        if SeatClass.parse(criteria.seat_class) is None:
            allowed = ", ".join(c.value for c in SeatClass)
            errors.append(
                FieldError(
                    "seatClass",
                    f"Invalid seat class '{criteria.seat_class}'. Must be one of: {allowed}",
                    "INVALID_SEAT_CLASS",
                )
            )

    def _check_max_connections(
        self, max_connections: Optional[int], errors: List[FieldError]
    ) -> None:
        if max_connections is None:
            return
        limit = self._config.max_connections_limit
        if (
            isinstance(max_connections, bool)
            or not isinstance(max_connections, int)
            or not 0 <= max_connections <= limit
        ):
            errors.append(
                FieldError(
                    "maxConnections",
                    f"Maximum connections must be between 0 and {limit}",
                    "INVALID_MAX_CONNECTIONS",
                )
            )

    def _check_airlines(self, criteria: SearchCriteria, errors: List[FieldError]) -> None:
        invalid = sorted(a for a in criteria.airlines if not AIRLINE_CODE_PATTERN.match(a))
        if invalid:
            errors.append(
                FieldError(
                    "airlines",
                    f"Airline codes must be 2-character IATA codes, got: {', '.join(invalid)}",
                    "INVALID_AIRLINE_CODE",
                )
            )

    def _check_min_seats(self, criteria: SearchCriteria, errors: List[FieldError]) -> None:
        seats = criteria.min_seats
        if isinstance(seats, bool) or not isinstance(seats, int) or not MIN_SEATS <= seats <= MAX_SEATS:
            errors.append(
                FieldError(
                    "minSeats",
                    f"Seat count must be between {MIN_SEATS} and {MAX_SEATS}",
                    "INVALID_SEAT_COUNT",
                )
            )

    def _check_paging(
        self, page: Optional[int], page_size: Optional[int], errors: List[FieldError]
    ) -> None:
        if page is not None and (
            isinstance(page, bool) or not isinstance(page, int) or page < 0
        ):
            errors.append(FieldError("page", "Page number cannot be negative", "INVALID_PAGE"))

        if page_size is None:
            return
        limit = self._config.max_page_size
        if (
            isinstance(page_size, bool)
            or not isinstance(page_size, int)
            or not 1 <= page_size <= limit
        ):
            errors.append(
                FieldError(
                    "pageSize",
                    f"Page size must be between 1 and {limit}",
                    "INVALID_PAGE_SIZE",
                )
            )

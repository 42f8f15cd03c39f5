"""
Shared fixtures for Flight Search tests.

Provides a small, hand-checked schedule around JFK -> LAX on 2024-06-01:

- AA100 JFK-LAX 08:00-11:00           direct
- AA200 JFK-ORD 06:00-08:00
- UA300 ORD-LAX 08:40-10:40           40 min after AA200 (too short)
- UA310 ORD-LAX 09:30-10:50           90 min after AA200 (valid)
- DL400 JFK-ATL 07:00-09:00
- DL410 ATL-LAX 14:00-16:00           300 min after DL400 (too long)
- DL420 ATL-JFK 10:00-12:00           back to origin (loop)
- AA110 LAX-JFK 2024-06-05 09:00-17:00 return flight
"""

from datetime import date, datetime
from typing import Callable, List

import pandas as pd
import pytest

from src.flight_search.adapters.schedule_stores.dataframe_store import (
    DataFrameScheduleStore,
)
from src.flight_search.schemas.config import SearchConfig
from src.flight_search.schemas.criteria import DateRange, SearchCriteria, SeatClass
from src.flight_search.schemas.flight import LEG_COLUMNS, FlightLeg

TODAY = date(2024, 5, 20)
TRAVEL_DAY = date(2024, 6, 1)
RETURN_DAY = date(2024, 6, 5)

SCHEDULE = [
    ("AA100", "AA", "JFK", "LAX", "2024-06-01 08:00", "2024-06-01 11:00"),
    ("AA200", "AA", "JFK", "ORD", "2024-06-01 06:00", "2024-06-01 08:00"),
    ("UA300", "UA", "ORD", "LAX", "2024-06-01 08:40", "2024-06-01 10:40"),
    ("UA310", "UA", "ORD", "LAX", "2024-06-01 09:30", "2024-06-01 10:50"),
    ("DL400", "DL", "JFK", "ATL", "2024-06-01 07:00", "2024-06-01 09:00"),
    ("DL410", "DL", "ATL", "LAX", "2024-06-01 14:00", "2024-06-01 16:00"),
    ("DL420", "DL", "ATL", "JFK", "2024-06-01 10:00", "2024-06-01 12:00"),
    ("AA110", "AA", "LAX", "JFK", "2024-06-05 09:00", "2024-06-05 17:00"),
]


def _leg_row(
    flight_id: str,
    airline_id: str,
    origin: str,
    destination: str,
    departure: str,
    arrival: str,
    economy_seats: int = 50,
    business_seats: int = 8,
    first_seats: int = 2,
) -> dict:
    return {
        "flight_id": flight_id,
        "airline_id": airline_id,
        "flight_number": f"{airline_id} {flight_id[2:]}",
        "origin": origin,
        "destination": destination,
        "departure_time": pd.Timestamp(departure),
        "arrival_time": pd.Timestamp(arrival),
        "economy_seats": economy_seats,
        "business_seats": business_seats,
        "first_seats": first_seats,
    }


@pytest.fixture
def make_leg_frame() -> Callable[..., pd.DataFrame]:
    """Build a FlightLegSchema frame from (id, airline, origin, dest, dep, arr[, seats...]) tuples."""

    def _build(rows) -> pd.DataFrame:
        return pd.DataFrame([_leg_row(*row) for row in rows], columns=LEG_COLUMNS)

    return _build


@pytest.fixture
def make_leg() -> Callable[..., FlightLeg]:
    """Build a single FlightLeg from the same tuple format."""

    def _build(
        flight_id: str,
        airline_id: str,
        origin: str,
        destination: str,
        departure: str,
        arrival: str,
        economy_seats: int = 50,
        business_seats: int = 8,
        first_seats: int = 2,
    ) -> FlightLeg:
        return FlightLeg(
            flight_id=flight_id,
            airline_id=airline_id,
            origin=origin,
            destination=destination,
            departure_time=datetime.fromisoformat(departure),
            arrival_time=datetime.fromisoformat(arrival),
            seat_availability={
                SeatClass.ECONOMY: economy_seats,
                SeatClass.BUSINESS: business_seats,
                SeatClass.FIRST: first_seats,
            },
        )

    return _build


@pytest.fixture
def schedule_rows() -> List[tuple]:
    return list(SCHEDULE)


@pytest.fixture
def schedule_frame(make_leg_frame, schedule_rows) -> pd.DataFrame:
    return make_leg_frame(schedule_rows)


@pytest.fixture
def schedule_store(schedule_frame) -> DataFrameScheduleStore:
    return DataFrameScheduleStore(schedule_frame, name="Test schedule")


@pytest.fixture
def config() -> SearchConfig:
    return SearchConfig()


@pytest.fixture
def make_criteria() -> Callable[..., SearchCriteria]:
    """SearchCriteria.create with JFK -> LAX on TRAVEL_DAY defaults."""

    def _build(
        origin: str = "JFK",
        destination: str = "LAX",
        start: date = TRAVEL_DAY,
        end: date = None,
        **kwargs,
    ) -> SearchCriteria:
        return SearchCriteria.create(
            origin=origin,
            destination=destination,
            date_range=DateRange(start=start, end=end or start),
            **kwargs,
        )

    return _build

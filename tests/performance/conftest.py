"""
Shared fixtures for performance benchmarks.

Key design principle: Build the synthetic schedule and stores once at
module scope, then benchmark only the hot paths.
"""

from datetime import date, timedelta

import numpy as np
import pandas as pd
import pytest

from src.flight_search.adapters.repositories.cache_coordinator import CacheCoordinator
from src.flight_search.adapters.schedule_stores.dataframe_store import (
    DataFrameScheduleStore,
)
from src.flight_search.schemas.criteria import DateRange, SearchCriteria
from src.flight_search.services.connection_resolver import ConnectionResolver

AIRPORTS = [
    "ATL", "BOS", "DEN", "DFW", "DTW", "EWR", "IAH", "JFK", "LAS", "LAX",
    "MCO", "MIA", "MSP", "ORD", "PHL", "PHX", "SEA", "SFO", "SLC", "CLT",
]
AIRLINES = ["AA", "UA", "DL", "B6", "AS", "WN"]
NUM_LEGS = 20_000
NUM_DAYS = 7
FIRST_DAY = date(2024, 6, 1)


def build_synthetic_schedule(num_legs: int = NUM_LEGS, seed: int = 42) -> pd.DataFrame:
    """Random but reproducible schedule over AIRPORTS for NUM_DAYS days."""
    rng = np.random.default_rng(seed)
    n_airports = len(AIRPORTS)

    origin_idx = rng.integers(0, n_airports, num_legs)
    dest_idx = (origin_idx + rng.integers(1, n_airports, num_legs)) % n_airports
    dep_minutes = rng.integers(0, NUM_DAYS * 24 * 60, num_legs)
    durations = rng.integers(60, 6 * 60, num_legs)

    departures = pd.Timestamp(FIRST_DAY) + pd.to_timedelta(dep_minutes, unit="m")
    airports = np.array(AIRPORTS)
    airlines = rng.choice(AIRLINES, num_legs)

    return pd.DataFrame(
        {
            "flight_id": [f"{a}{i:06d}" for i, a in enumerate(airlines)],
            "airline_id": airlines,
            "flight_number": [f"{a} {i % 9000 + 100}" for i, a in enumerate(airlines)],
            "origin": airports[origin_idx],
            "destination": airports[dest_idx],
            "departure_time": departures,
            "arrival_time": departures + pd.to_timedelta(durations, unit="m"),
            "economy_seats": rng.integers(0, 150, num_legs),
            "business_seats": rng.integers(0, 20, num_legs),
            "first_seats": rng.integers(0, 8, num_legs),
        }
    )


@pytest.fixture(scope="module")
def make_schedule():
    """Factory for synthetic schedules of a given size."""
    return build_synthetic_schedule


@pytest.fixture(scope="module")
def synthetic_frame() -> pd.DataFrame:
    return build_synthetic_schedule()


@pytest.fixture(scope="module")
def preloaded_store(synthetic_frame) -> DataFrameScheduleStore:
    """
    Store with the synthetic schedule already validated and indexed.

    The cold start (validation + sort + index build) happens once here.
    """
    return DataFrameScheduleStore(synthetic_frame, name="Synthetic schedule")


@pytest.fixture(scope="module")
def resolver(preloaded_store) -> ConnectionResolver:
    return ConnectionResolver(preloaded_store)


@pytest.fixture
def cache() -> CacheCoordinator:
    return CacheCoordinator(ttl=timedelta(hours=1))


@pytest.fixture(scope="module")
def busy_route() -> SearchCriteria:
    return SearchCriteria.create(
        origin="JFK",
        destination="LAX",
        date_range=DateRange.single(FIRST_DAY + timedelta(days=1)),
    )

"""
Fixtures for FastAPI endpoint tests.

The module-level engine of search_api is swapped for either a real engine
over the shared test schedule or a MagicMock for failure paths.
"""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from src.fastapi.search_api import app
from src.flight_search.application import SearchFlights


@pytest.fixture
def anyio_backend():
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
def engine(schedule_store, config):
    engine = SearchFlights(config=config, store=schedule_store, today=lambda: date(2024, 5, 20))
    yield engine
    engine.shutdown()


@pytest.fixture
def client(engine):
    with patch("src.fastapi.search_api.engine", engine):
        yield TestClient(app)


@pytest.fixture
def mock_engine() -> MagicMock:
    return MagicMock(spec=SearchFlights)


@pytest.fixture
def mock_client(mock_engine):
    with patch("src.fastapi.search_api.engine", mock_engine):
        yield TestClient(app)

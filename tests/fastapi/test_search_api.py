"""
Tests for the search FastAPI endpoints.

Tests cover:
- /search success, cache flag, paging and validation errors
- Error translation (503 with Retry-After, 504)
- /flights/{id} lookup
- Cache administration and ingestion notifications
- /health
"""

import pytest
from fastapi import HTTPException

from src.fastapi.search_api import RETRY_AFTER_SECONDS, SearchRequest, _build_criteria, _run
from src.flight_search.exceptions import ScheduleStoreError, SearchTimeoutError
from src.flight_search.schemas.criteria import DateRange

SEARCH_BODY = {
    "origin": "JFK",
    "destination": "LAX",
    "departureDate": "2024-06-01",
    "maxConnections": 1,
}


def error_codes(response) -> list:
    return [e["code"] for e in response.json()["errors"]]


# =============================================================================
# REQUEST CONVERSION
# =============================================================================


class TestBuildCriteria:
    def test_date_range_string(self) -> None:
        request = SearchRequest(origin="jfk", destination="lax", dateRange="2024-06-01/2024-06-03")

        criteria = _build_criteria(request)

        assert criteria.origin == "JFK"
        assert str(criteria.date_range) == "2024-06-01/2024-06-03"

    def test_departure_date_without_end(self) -> None:
        request = SearchRequest.model_validate(SEARCH_BODY)
        assert str(_build_criteria(request).date_range) == "2024-06-01/2024-06-01"

    def test_unparseable_range_left_for_validator(self) -> None:
        request = SearchRequest(origin="JFK", destination="LAX", dateRange="next week")
        assert _build_criteria(request).date_range == DateRange(start=None, end=None)


class TestRun:
    @pytest.mark.anyio
    async def test_returns_result(self) -> None:
        assert await _run(lambda: 42) == 42

    @pytest.mark.anyio
    async def test_store_error_becomes_503(self) -> None:
        def fail():
            raise ScheduleStoreError("database is locked")

        with pytest.raises(HTTPException) as excinfo:
            await _run(fail)

        assert excinfo.value.status_code == 503
        assert excinfo.value.headers == {"Retry-After": str(RETRY_AFTER_SECONDS)}


# =============================================================================
# SEARCH
# =============================================================================


class TestSearchEndpoint:
    def test_search(self, client) -> None:
        response = client.post("/search", json=SEARCH_BODY)

        assert response.status_code == 200
        body = response.json()
        assert [i["itinerary_id"] for i in body["itineraries"]] == ["AA100", "AA200+UA310"]
        assert body["served_from_cache"] is False
        assert body["is_complete"] is True
        assert len(body["fingerprint"]) == 64

        first = body["itineraries"][0]
        assert first["route_airports"] == ["JFK", "LAX"]
        assert first["num_connections"] == 0
        assert first["elapsed_minutes"] == 180.0
        leg = first["legs"][0]
        assert leg["flight_number"] == "AA 100"
        assert leg["seat_availability"] == {"ECONOMY": 50, "BUSINESS": 8, "FIRST": 2}

    def test_repeat_search_served_from_cache(self, client) -> None:
        client.post("/search", json=SEARCH_BODY)
        response = client.post("/search", json={**SEARCH_BODY, "origin": "jfk"})

        assert response.json()["served_from_cache"] is True

    def test_round_trip(self, client) -> None:
        body = {**SEARCH_BODY, "roundTrip": True, "returnDate": "2024-06-05"}

        response = client.post("/search", json=body)

        assert [i["itinerary_id"] for i in response.json()["return_itineraries"]] == ["AA110"]

    def test_no_flights_is_200_with_empty_list(self, client) -> None:
        response = client.post("/search", json={**SEARCH_BODY, "destination": "SEA"})

        assert response.status_code == 200
        assert response.json()["itineraries"] == []

    def test_validation_errors_are_422(self, client) -> None:
        body = {**SEARCH_BODY, "destination": "JFK", "roundTrip": True, "seatClass": "PREMIUM"}

        response = client.post("/search", json=body)

        assert response.status_code == 422
        errors = response.json()["errors"]
        assert {e["field"] for e in errors} == {"destination", "returnDate", "seatClass"}
        assert all(e["message"] for e in errors)

    def test_malformed_date_range(self, client) -> None:
        body = {"origin": "JFK", "destination": "LAX", "dateRange": "2024-06-01"}

        response = client.post("/search", json=body)

        assert response.status_code == 422
        assert error_codes(response) == ["MALFORMED_DATE_RANGE"]

    def test_missing_dates(self, client) -> None:
        response = client.post("/search", json={"origin": "JFK", "destination": "LAX"})
        assert error_codes(response) == ["MALFORMED_DATE_RANGE"]

    def test_paging(self, client) -> None:
        response = client.post("/search", json={**SEARCH_BODY, "page": 1, "pageSize": 1})

        assert response.status_code == 200
        body = response.json()
        assert [i["itinerary_id"] for i in body["itineraries"]] == ["AA200+UA310"]
        assert body["total_results"] == 2
        assert body["page"] == 1
        assert body["page_size"] == 1
        assert body["total_pages"] == 2

    def test_default_page(self, client) -> None:
        body = client.post("/search", json=SEARCH_BODY).json()

        assert (body["page"], body["page_size"], body["total_pages"]) == (0, 20, 1)

    @pytest.mark.parametrize(
        "paging, code",
        [({"page": -1}, "INVALID_PAGE"), ({"pageSize": 0}, "INVALID_PAGE_SIZE")],
    )
    def test_invalid_paging_is_422(self, client, paging, code) -> None:
        response = client.post("/search", json={**SEARCH_BODY, **paging})

        assert response.status_code == 422
        assert error_codes(response) == [code]

    def test_store_unavailable_is_503(self, mock_client, mock_engine) -> None:
        mock_engine.search_criteria.side_effect = ScheduleStoreError("database is locked")

        response = mock_client.post("/search", json=SEARCH_BODY)

        assert response.status_code == 503
        assert response.headers["Retry-After"] == str(RETRY_AFTER_SECONDS)

    def test_wait_timeout_is_504(self, mock_client, mock_engine) -> None:
        mock_engine.search_criteria.side_effect = SearchTimeoutError("0123456789ab", 30.0)

        response = mock_client.post("/search", json=SEARCH_BODY)

        assert response.status_code == 504
        assert "0123456789ab" in response.json()["detail"]


# =============================================================================
# FLIGHT DETAILS
# =============================================================================


class TestFlightEndpoint:
    def test_get_flight(self, client) -> None:
        response = client.get("/flights/UA310")

        assert response.status_code == 200
        body = response.json()
        assert body["flight_id"] == "UA310"
        assert body["origin"] == "ORD"
        assert body["departure_time"] == "2024-06-01T09:30:00"

    def test_unknown_flight_is_404(self, client) -> None:
        assert client.get("/flights/ZZ999").status_code == 404

    def test_store_error_is_503(self, mock_client, mock_engine) -> None:
        mock_engine.get_flight.side_effect = ScheduleStoreError("connection lost")
        assert mock_client.get("/flights/AA100").status_code == 503


# =============================================================================
# CACHE ADMINISTRATION AND INGESTION
# =============================================================================


class TestAdministrationEndpoints:
    def test_invalidate(self, client) -> None:
        client.post("/search", json=SEARCH_BODY)

        assert client.post("/cache/invalidate", json=SEARCH_BODY).json() == {"invalidated": True}
        assert client.post("/cache/invalidate", json=SEARCH_BODY).json() == {"invalidated": False}

    def test_invalidate_malformed_range(self, client) -> None:
        response = client.post("/cache/invalidate", json={"origin": "JFK", "destination": "LAX"})
        assert response.status_code == 422

    def test_refresh(self, client) -> None:
        client.post("/search", json=SEARCH_BODY)

        response = client.post("/cache/refresh", json=SEARCH_BODY)

        assert response.status_code == 200
        assert response.json()["served_from_cache"] is False
        assert client.post("/search", json=SEARCH_BODY).json()["served_from_cache"] is True

    def test_refresh_validates(self, client) -> None:
        response = client.post("/cache/refresh", json={**SEARCH_BODY, "origin": "X"})
        assert error_codes(response) == ["INVALID_ORIGIN_FORMAT"]

    def test_ingestion_complete_invalidates_overlapping_searches(self, client) -> None:
        client.post("/search", json=SEARCH_BODY)

        response = client.post(
            "/ingestion/complete", json={"dateRange": "2024-06-01/2024-06-01", "airlines": ["AA"]}
        )

        assert response.json() == {"invalidated": 1}
        assert client.post("/search", json=SEARCH_BODY).json()["served_from_cache"] is False

    def test_ingestion_complete_malformed_range(self, client) -> None:
        response = client.post("/ingestion/complete", json={"dateRange": "June"})

        assert response.status_code == 422
        assert error_codes(response) == ["MALFORMED_DATE_RANGE"]

    def test_ingestion_complete_inverted_range(self, client) -> None:
        response = client.post("/ingestion/complete", json={"dateRange": "2024-06-05/2024-06-01"})
        assert error_codes(response) == ["INVALID_DATE_RANGE"]

    def test_health(self, client) -> None:
        client.post("/search", json=SEARCH_BODY)
        client.post("/search", json=SEARCH_BODY)

        body = client.get("/health").json()

        assert body["ready"] is True
        assert body["cache"]["entries"] == 1
        assert body["cache"]["hits"] == 1
        assert body["cache"]["misses"] == 1
        assert body["cache"]["hit_rate"] == 0.5

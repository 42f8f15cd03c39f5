import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

# Load environment variables from .env file
load_dotenv()

from src.flight_search.application import SearchFlights
from src.flight_search.exceptions import ScheduleStoreError, SearchTimeoutError
from src.flight_search.schemas.config import SearchConfig
from src.flight_search.schemas.criteria import DateRange, SearchCriteria, SeatClass
from src.flight_search.schemas.response import FieldError, SearchResponse

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 5

config = SearchConfig.from_env()
engine = SearchFlights(config=config)

app = FastAPI(title="Flight Schedule Search API")

# Enable CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:3001", "http://127.0.0.1:3000", "http://127.0.0.1:3001"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Pydantic Schemas (The JSON Contract) ---
# from_attributes lets the response models read @property fields of the dataclasses.


class FlightLegSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    flight_id: str
    airline_id: str
    flight_number: Optional[str] = None
    origin: str
    destination: str
    departure_time: datetime
    arrival_time: datetime
    duration: timedelta  # @property
    seat_availability: Dict[SeatClass, int] = {}


class ItinerarySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    itinerary_id: str  # @property
    legs: List[FlightLegSchema]
    origin: str
    destination: str
    departure_time: datetime
    arrival_time: datetime
    elapsed_minutes: float
    num_legs: int
    num_connections: int
    route_airports: List[str]
    airlines: List[str]


class FieldErrorSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    field: str
    message: str
    code: str


class SearchResultSchema(BaseModel):
    itineraries: List[ItinerarySchema]
    return_itineraries: List[ItinerarySchema] = []
    served_from_cache: bool
    is_complete: bool
    fingerprint: Optional[str] = None
    total_results: int = 0
    total_return_results: int = 0
    page: int = 0
    page_size: int = 0
    total_pages: int = 0


class SearchRequest(BaseModel):
    """
    Search request body.

    Dates are given either as `dateRange` ("YYYY-MM-DD/YYYY-MM-DD") or as
    `departureDate` with an optional `endDate`.
    """

    model_config = ConfigDict(populate_by_name=True)

    origin: str = ""
    destination: str = ""
    date_range: Optional[str] = Field(default=None, alias="dateRange")
    departure_date: Optional[date] = Field(default=None, alias="departureDate")
    end_date: Optional[date] = Field(default=None, alias="endDate")
    seat_class: str = Field(default="ECONOMY", alias="seatClass")
    round_trip: bool = Field(default=False, alias="roundTrip")
    return_date: Optional[date] = Field(default=None, alias="returnDate")
    max_connections: Optional[int] = Field(default=None, alias="maxConnections")
    airlines: List[str] = []
    min_seats: int = Field(default=1, alias="minSeats")
    page: int = 0
    page_size: Optional[int] = Field(default=None, alias="pageSize")


class IngestionCompleteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date_range: str = Field(alias="dateRange")
    airlines: List[str] = []


# --- Helpers ---


def _build_criteria(request: SearchRequest) -> SearchCriteria:
    """
    Convert the request body to SearchCriteria.

    An unparseable or missing date range is passed on without dates so the
    validator reports it alongside every other problem.
    """
    if request.date_range is not None:
        try:
            date_range = DateRange.parse(request.date_range)
        except ValueError:
            date_range = DateRange(start=None, end=None)
    elif request.departure_date is not None:
        date_range = DateRange(
            start=request.departure_date,
            end=request.end_date or request.departure_date,
        )
    else:
        date_range = DateRange(start=None, end=None)

    return SearchCriteria.create(
        origin=request.origin,
        destination=request.destination,
        date_range=date_range,
        seat_class=request.seat_class,
        is_round_trip=request.round_trip,
        return_date=request.return_date,
        airlines=request.airlines,
        min_seats=request.min_seats,
    )


def _validation_error(errors) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "errors": [FieldErrorSchema.model_validate(e).model_dump() for e in errors]
        },
    )


def _to_result(response: SearchResponse) -> SearchResultSchema:
    return SearchResultSchema(
        itineraries=[ItinerarySchema.model_validate(i) for i in response.itineraries],
        return_itineraries=[
            ItinerarySchema.model_validate(i) for i in response.return_itineraries
        ],
        served_from_cache=response.served_from_cache,
        is_complete=response.is_complete,
        fingerprint=str(response.fingerprint) if response.fingerprint else None,
        total_results=response.total_results,
        total_return_results=response.total_return_results,
        page=response.page,
        page_size=response.page_size,
        total_pages=response.total_pages,
    )


async def _run(fn):
    """Run a blocking engine call in the default executor."""
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, fn)
    except ScheduleStoreError as e:
        logger.error("Schedule store unavailable: %s", e)
        raise HTTPException(
            status_code=503,
            detail=str(e),
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        ) from e
    except SearchTimeoutError as e:
        raise HTTPException(status_code=504, detail=str(e)) from e


# --- API Endpoints ---


@app.post("/search", response_model=SearchResultSchema)
async def search_flights(request: SearchRequest):
    criteria = _build_criteria(request)
    response = await _run(
        lambda: engine.search_criteria(
            criteria, request.max_connections, request.page, request.page_size
        )
    )

    if not response.ok:
        return _validation_error(response.errors)

    return _to_result(response)


@app.get("/flights/{flight_id}", response_model=FlightLegSchema)
async def get_flight(flight_id: str):
    leg = await _run(lambda: engine.get_flight(flight_id))

    if leg is None:
        raise HTTPException(status_code=404, detail=f"Flight {flight_id} not found")

    return FlightLegSchema.model_validate(leg)


@app.post("/cache/invalidate")
async def invalidate_search(request: SearchRequest):
    criteria = _build_criteria(request)
    if criteria.date_range.start is None or criteria.date_range.end is None:
        return _validation_error(
            [FieldError("dateRange", "Date range must have a valid start and end date", "MALFORMED_DATE_RANGE")]
        )
    invalidated = engine.invalidate(criteria, request.max_connections)
    return {"invalidated": invalidated}


@app.post("/cache/refresh", response_model=SearchResultSchema)
async def refresh_search(request: SearchRequest):
    criteria = _build_criteria(request)
    response = await _run(
        lambda: engine.refresh(
            criteria, request.max_connections, request.page, request.page_size
        )
    )

    if not response.ok:
        return _validation_error(response.errors)

    return _to_result(response)


@app.post("/ingestion/complete")
async def ingestion_complete(request: IngestionCompleteRequest):
    try:
        date_range = DateRange.parse(request.date_range)
    except ValueError as e:
        return _validation_error([FieldError("dateRange", str(e), "MALFORMED_DATE_RANGE")])

    if not date_range.is_ordered:
        return _validation_error(
            [FieldError("dateRange", "Start date is after end date", "INVALID_DATE_RANGE")]
        )

    invalidated = await _run(
        lambda: engine.complete_ingestion(date_range, request.airlines)
    )
    return {"invalidated": invalidated}


@app.get("/health")
async def health():
    stats = engine.cache_stats
    return {
        "ready": engine.is_ready,
        "cache": {
            "entries": stats.entries,
            "in_flight": stats.in_flight,
            "hits": stats.hits,
            "misses": stats.misses,
            "shared_waits": stats.shared_waits,
            "evictions": stats.evictions,
            "hit_rate": stats.hit_rate,
        },
    }

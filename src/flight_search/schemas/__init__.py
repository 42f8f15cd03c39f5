"""
Schema definitions for Flight Search.

Frozen dataclasses for requests and results; a Pandera-validated DataFrame
contract for schedule data entering from a ScheduleStore.
"""

from .config import SearchConfig
from .criteria import AirportCode, DateRange, SearchCriteria, SeatClass
from .flight import FlightLeg, FlightLegFrame, FlightLegSchema, frame_to_legs
from .itinerary import Itinerary, ResolvedItineraries
from .response import FieldError, SearchResponse, ValidationResult

__all__ = [
    # Configuration
    "SearchConfig",
    # Criteria
    "AirportCode",
    "DateRange",
    "SearchCriteria",
    "SeatClass",
    # Flight schemas
    "FlightLeg",
    "FlightLegFrame",
    "FlightLegSchema",
    "frame_to_legs",
    # Results
    "Itinerary",
    "ResolvedItineraries",
    "FieldError",
    "SearchResponse",
    "ValidationResult",
]

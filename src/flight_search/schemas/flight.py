"""
Flight leg schemas using Pandera.

Defines the contract for schedule data flowing from a ScheduleStore into
the resolver. Tabular data is validated once at the store boundary with
FlightLegSchema, then converted to immutable FlightLeg objects.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pandas as pd
import pandera as pa
from pandera.typing import DataFrame, Series

from src.flight_search.schemas.criteria import SeatClass

LEG_COLUMNS = [
    "flight_id",
    "airline_id",
    "flight_number",
    "origin",
    "destination",
    "departure_time",
    "arrival_time",
    "economy_seats",
    "business_seats",
    "first_seats",
]


class FlightLegSchema(pa.DataFrameModel):
    """
    Core contract for schedule rows.

    One row per scheduled leg. Seat columns hold the number of seats still
    available in each cabin. Extra columns (e.g. flight_number) are allowed
    and passed through unchanged.
    """

    flight_id: Series[str] = pa.Field(
        nullable=False,
        unique=True,
        description="Unique flight leg identifier",
    )
    airline_id: Series[str] = pa.Field(
        nullable=False,
        description="Operating airline IATA code (e.g., 'AA', 'UA')",
    )
    origin: Series[str] = pa.Field(
        nullable=False,
        str_matches=r"^[A-Z]{3,4}$",
        description="Departure airport code",
    )
    destination: Series[str] = pa.Field(
        nullable=False,
        str_matches=r"^[A-Z]{3,4}$",
        description="Arrival airport code",
    )
    departure_time: Series[pd.Timestamp] = pa.Field(
        nullable=False,
        description="Scheduled departure (local, naive)",
    )
    arrival_time: Series[pd.Timestamp] = pa.Field(
        nullable=False,
        description="Scheduled arrival (local, naive)",
    )
    economy_seats: Series[int] = pa.Field(ge=0, description="Available economy seats")
    business_seats: Series[int] = pa.Field(ge=0, description="Available business seats")
    first_seats: Series[int] = pa.Field(ge=0, description="Available first seats")

    class Config:
        strict = False
        coerce = True
        name = "FlightLegSchema"
        description = "Scheduled flight legs served by a ScheduleStore"

    @pa.dataframe_check
    def arrives_after_departure(cls, df: pd.DataFrame) -> Series[bool]:
        """A leg cannot arrive before it departs."""
        return df["arrival_time"] >= df["departure_time"]


FlightLegFrame = DataFrame[FlightLegSchema]


@dataclass(frozen=True)
class FlightLeg:
    """
    Immutable scheduled flight segment between two airports.

    Attributes:
        flight_id: Unique leg identifier.
        airline_id: Operating airline code.
        origin: Departure airport code.
        destination: Arrival airport code.
        departure_time: Scheduled departure.
        arrival_time: Scheduled arrival.
        seat_availability: Seats left per cabin class.
        flight_number: Optional marketing flight number.
    """

    flight_id: str
    airline_id: str
    origin: str
    destination: str
    departure_time: datetime
    arrival_time: datetime
    seat_availability: Dict[SeatClass, int] = field(
        default_factory=dict, compare=False
    )
    flight_number: Optional[str] = None

    @property
    def duration(self) -> timedelta:
        return self.arrival_time - self.departure_time

    def seats_in(self, seat_class: SeatClass) -> int:
        return self.seat_availability.get(seat_class, 0)

    def has_seats(self, seat_class: SeatClass, count: int = 1) -> bool:
        """Check whether at least `count` seats are left in `seat_class`."""
        return self.seats_in(seat_class) >= count


def empty_leg_frame() -> pd.DataFrame:
    """Empty frame with the leg columns, for stores that found nothing."""
    return pd.DataFrame(columns=LEG_COLUMNS)


def frame_to_legs(df: pd.DataFrame) -> List[FlightLeg]:
    """
    Convert a FlightLegSchema-compliant frame to FlightLeg objects.

    Uses itertuples, which is considerably cheaper than iterrows for the
    per-airport slices the resolver requests.
    """
    if df.empty:
        return []

    has_number = "flight_number" in df.columns
    legs: List[FlightLeg] = []
    for row in df.itertuples(index=False):
        number = getattr(row, "flight_number") if has_number else None
        legs.append(
            FlightLeg(
                flight_id=str(row.flight_id),
                airline_id=str(row.airline_id),
                origin=str(row.origin),
                destination=str(row.destination),
                departure_time=pd.Timestamp(row.departure_time).to_pydatetime(),
                arrival_time=pd.Timestamp(row.arrival_time).to_pydatetime(),
                seat_availability={
                    SeatClass.ECONOMY: int(row.economy_seats),
                    SeatClass.BUSINESS: int(row.business_seats),
                    SeatClass.FIRST: int(row.first_seats),
                },
                flight_number=str(number) if number is not None and not pd.isna(number) else None,
            )
        )
    return legs

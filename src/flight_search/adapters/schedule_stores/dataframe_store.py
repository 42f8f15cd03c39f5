"""
DataFrame Schedule Store - indexed in-memory schedule.

Serves flight legs from a pandas DataFrame with:
- Pandera validation once, at load time
- Zero-copy per-origin slices via OriginIndex
- Numpy-vectorized index building (GIL-free)
- Atomic snapshot swap on reload (readers never see a partial schedule)
"""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional, Set

import numpy as np
import pandas as pd
import pandera as pa

from src.flight_search.exceptions import ScheduleStoreError
from src.flight_search.ports.schedule_store import ScheduleStore
from src.flight_search.schemas.criteria import DateRange, SeatClass
from src.flight_search.schemas.flight import (
    FlightLeg,
    FlightLegSchema,
    empty_leg_frame,
    frame_to_legs,
)

logger = logging.getLogger(__name__)


# =============================================================================
# ORIGIN INDEX: Zero-copy index for O(1) origin-based leg access
# =============================================================================


@dataclass(frozen=True)
class OriginIndex:
    """
    Row range of legs departing one airport in the origin-sorted frame.

    Attributes:
        start: Start row (inclusive).
        end: End row (exclusive).
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"start must be >= 0, got {self.start}")
        if self.end < self.start:
            raise ValueError(f"end ({self.end}) must be >= start ({self.start})")


def build_origin_index(df: pd.DataFrame) -> Dict[str, OriginIndex]:
    """
    Build the origin index from a frame pre-sorted by 'origin'.

    Boundary detection is a vectorized comparison of each origin with its
    predecessor, so the Python loop only runs once per airport.

    Args:
        df: Frame sorted by 'origin' with a reset RangeIndex.

    Returns:
        Dict mapping airport code to its OriginIndex.

    Example:
        >>> df = pd.DataFrame({'origin': ['JFK', 'JFK', 'ORD', 'ORD', 'ORD']})
        >>> build_origin_index(df)['ORD']
        OriginIndex(start=2, end=5)
    """
    if df.empty:
        return {}

    origins = df["origin"].values
    n = len(origins)

    change_mask = np.concatenate([[True], origins[1:] != origins[:-1]])
    change_indices = np.where(change_mask)[0]

    index: Dict[str, OriginIndex] = {}
    num_boundaries = len(change_indices)
    for i in range(num_boundaries):
        start = int(change_indices[i])
        end = int(change_indices[i + 1]) if i + 1 < num_boundaries else n
        index[str(origins[start])] = OriginIndex(start=start, end=end)

    return index


def compute_version(df: pd.DataFrame) -> str:
    """Short content hash used to tell schedule snapshots apart."""
    content = f"{len(df)}:{df.columns.tolist()}"
    if len(df) > 0:
        content += f":{df.iloc[0].to_dict()}:{df.iloc[-1].to_dict()}"
    return hashlib.md5(content.encode()).hexdigest()[:12]


# =============================================================================
# SNAPSHOT: Immutable, fully built schedule
# =============================================================================


@dataclass(frozen=True)
class ScheduleSnapshot:
    """
    One loaded schedule.

    Attributes:
        legs_df: Validated legs sorted by (origin, departure_time).
        origin_index: Row ranges per departure airport.
        row_by_id: Row position per flight_id.
        airports: All airport codes (departures and arrivals).
        built_at: When the snapshot was built.
        version: Content hash.
    """

    legs_df: pd.DataFrame
    origin_index: Dict[str, OriginIndex]
    row_by_id: Dict[str, int]
    airports: FrozenSet[str]
    built_at: datetime
    version: str

    @property
    def row_count(self) -> int:
        return len(self.legs_df)

    def legs_from(self, origin: str) -> pd.DataFrame:
        """Zero-copy view of legs departing `origin` (empty frame if none)."""
        idx = self.origin_index.get(origin)
        if idx is None:
            return self.legs_df.iloc[0:0]
        return self.legs_df.iloc[idx.start : idx.end]


def build_snapshot(frame: pd.DataFrame) -> ScheduleSnapshot:
    """
    Validate and index a schedule frame.

    Raises:
        pandera.errors.SchemaError: If the frame violates FlightLegSchema.
    """
    validated = empty_leg_frame() if frame.empty else FlightLegSchema.validate(frame)

    legs_df = validated.sort_values(["origin", "departure_time"], kind="mergesort")
    legs_df = legs_df.reset_index(drop=True)

    airports = frozenset(legs_df["origin"].unique()) | frozenset(
        legs_df["destination"].unique()
    )

    return ScheduleSnapshot(
        legs_df=legs_df,
        origin_index=build_origin_index(legs_df),
        row_by_id={str(fid): pos for pos, fid in enumerate(legs_df["flight_id"])},
        airports=frozenset(str(a) for a in airports),
        built_at=datetime.now(),
        version=compute_version(legs_df),
    )


# =============================================================================
# DATAFRAME SCHEDULE STORE
# =============================================================================


class DataFrameScheduleStore(ScheduleStore):
    """
    Schedule store over an in-memory DataFrame.

    Reads take the current snapshot reference once and never lock; `load`
    builds a new snapshot off to the side and swaps the reference.

    Usage:
        >>> store = DataFrameScheduleStore(legs_df)
        >>> store.find_legs("JFK", "LAX", DateRange.single(date(2024, 6, 1)), SeatClass.ECONOMY)
    """

    def __init__(self, frame: Optional[pd.DataFrame] = None, name: str = "In-memory schedule") -> None:
        """
        Initialize the store.

        Args:
            frame: Schedule rows satisfying FlightLegSchema (None = empty).
            name: Store name used in logs and errors.

        Raises:
            ScheduleStoreError: If the frame fails schema validation.
        """
        self._name = name
        self._swap_lock = threading.Lock()
        self._snapshot = self._build(frame if frame is not None else empty_leg_frame())

    def load(self, frame: pd.DataFrame) -> ScheduleSnapshot:
        """
        Replace the served schedule.

        Raises:
            ScheduleStoreError: If the frame fails schema validation. The
                previous schedule stays in service.
        """
        snapshot = self._build(frame)
        with self._swap_lock:
            self._snapshot = snapshot
        logger.info(
            "Loaded schedule %s: %d legs, %d airports",
            snapshot.version,
            snapshot.row_count,
            len(snapshot.airports),
        )
        return snapshot

    def find_legs(
        self,
        origin: str,
        destination: Optional[str],
        date_range: DateRange,
        seat_class: SeatClass,
        min_seats: int = 1,
    ) -> List[FlightLeg]:
        snapshot = self._snapshot
        legs_df = snapshot.legs_from(origin)
        if legs_df.empty:
            return []

        window_start = pd.Timestamp(date_range.start)
        window_end = pd.Timestamp(date_range.end) + timedelta(days=1)
        departures = legs_df["departure_time"]

        mask = (
            (departures >= window_start)
            & (departures < window_end)
            & (legs_df[seat_class.column] >= min_seats)
        )
        if destination is not None:
            mask &= legs_df["destination"] == destination

        matches = frame_to_legs(legs_df[mask])
        logger.debug(
            "%s: %d legs %s -> %s on %s",
            self._name,
            len(matches),
            origin,
            destination or "*",
            date_range,
        )
        return matches

    def get_leg(self, flight_id: str) -> Optional[FlightLeg]:
        snapshot = self._snapshot
        pos = snapshot.row_by_id.get(flight_id)
        if pos is None:
            return None
        return frame_to_legs(snapshot.legs_df.iloc[pos : pos + 1])[0]

    def get_airports(self) -> Set[str]:
        return set(self._snapshot.airports)

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> str:
        """Content hash of the schedule currently served."""
        return self._snapshot.version

    @property
    def row_count(self) -> int:
        return self._snapshot.row_count

    def _build(self, frame: pd.DataFrame) -> ScheduleSnapshot:
        try:
            return build_snapshot(frame)
        except (pa.errors.SchemaError, KeyError) as e:
            logger.error("Rejected schedule for %s: %s", self._name, e)
            raise ScheduleStoreError(f"Invalid schedule data: {e}", store=self._name) from e

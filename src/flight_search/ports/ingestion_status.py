"""
Ingestion Status port interface.

Ingestion of airline schedule data happens outside the search engine. This
port lets the engine ask whether the data for a date range is fully loaded,
so an empty search result can be told apart from "still loading".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from src.flight_search.schemas.criteria import DateRange


class IngestionState(Enum):
    """Lifecycle state of one ingestion run."""

    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"


@dataclass(frozen=True)
class IngestionStatus:
    """
    Immutable snapshot of an ingestion run.

    Attributes:
        ingestion_id: Run identifier.
        date_range: Schedule dates covered by the run.
        airline_ids: Airlines covered (empty = all airlines).
        state: Current lifecycle state.
        started_at: When the run started.
        updated_at: Last progress update.
        total_records: Records the run expects to load.
        processed_records: Records loaded so far.
        message: Last status message.
        errors: Error messages collected by the run.
    """

    ingestion_id: str
    date_range: DateRange
    airline_ids: FrozenSet[str]
    state: IngestionState
    started_at: datetime
    updated_at: datetime
    total_records: int = 0
    processed_records: int = 0
    message: str = ""
    errors: Tuple[str, ...] = ()

    @property
    def progress_percentage(self) -> int:
        if self.total_records == 0:
            return 0
        return int(self.processed_records * 100 / self.total_records)

    @property
    def is_finished(self) -> bool:
        return self.state is not IngestionState.IN_PROGRESS

    def covers_airline(self, airline_id: Optional[str]) -> bool:
        return airline_id is None or not self.airline_ids or airline_id in self.airline_ids


class IngestionStatusProvider(ABC):
    """
    Abstract interface for ingestion status lookups.

    Implementations:
    - InMemoryIngestionTracker: Records runs reported by the ingestion job
    """

    @abstractmethod
    def is_ingested(
        self, date_range: DateRange, airline_id: Optional[str] = None
    ) -> bool:
        """
        Check whether schedule data for `date_range` is fully loaded.

        Args:
            date_range: Schedule dates of interest.
            airline_id: Restrict the check to one airline (None = any).

        Returns:
            False while any run overlapping the range is still in progress.
        """
        ...

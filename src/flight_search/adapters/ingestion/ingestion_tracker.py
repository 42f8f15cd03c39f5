"""
In-memory ingestion tracker.

Records ingestion runs reported by the (external) schedule ingestion job
and answers IngestionStatusProvider queries. Subscribers are notified when
a run finishes, which is how cached searches learn that newer schedule
data is available.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from src.flight_search.ports.ingestion_status import (
    IngestionState,
    IngestionStatus,
    IngestionStatusProvider,
)
from src.flight_search.schemas.criteria import DateRange

logger = logging.getLogger(__name__)

IngestionListener = Callable[[IngestionStatus], None]

DEFAULT_HISTORY_SIZE = 100


class InMemoryIngestionTracker(IngestionStatusProvider):
    """
    Thread-safe registry of ingestion runs.

    A date range counts as ingested unless a run overlapping it (for the
    airline in question) is still IN_PROGRESS. Ranges no run ever touched
    are assumed to be served from previously loaded data.

    Only running runs are scanned by is_ingested. Finished runs are kept
    for get_status, up to `history_size` of them, oldest dropped first.

    Attributes:
        _active: IN_PROGRESS runs by ingestion_id.
        _finished: Finished runs by ingestion_id, most recent last.
        _listeners: Callbacks invoked with the final status of each run.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ) -> None:
        if history_size < 0:
            raise ValueError(f"history_size must be >= 0, got {history_size}")
        self._active: Dict[str, IngestionStatus] = {}
        self._finished: "OrderedDict[str, IngestionStatus]" = OrderedDict()
        self._history_size = history_size
        self._listeners: List[IngestionListener] = []
        self._lock = threading.Lock()
        self._clock = clock

    def start(
        self,
        date_range: DateRange,
        airline_ids: Optional[Iterable[str]] = None,
        total_records: int = 0,
        ingestion_id: Optional[str] = None,
    ) -> IngestionStatus:
        """Register a new IN_PROGRESS run."""
        now = self._clock()
        status = IngestionStatus(
            ingestion_id=ingestion_id or uuid.uuid4().hex,
            date_range=date_range,
            airline_ids=frozenset(a.upper() for a in (airline_ids or ())),
            state=IngestionState.IN_PROGRESS,
            started_at=now,
            updated_at=now,
            total_records=total_records,
            message="Ingestion started",
        )
        with self._lock:
            if status.ingestion_id in self._active or status.ingestion_id in self._finished:
                raise ValueError(f"Ingestion {status.ingestion_id} already exists")
            self._active[status.ingestion_id] = status

        logger.info("Ingestion %s started for %s", status.ingestion_id, date_range)
        return status

    def update_progress(
        self, ingestion_id: str, processed_records: int, message: str = ""
    ) -> IngestionStatus:
        """Record progress of a running ingestion."""
        with self._lock:
            current = self._require_active(ingestion_id)
            status = replace(
                current,
                processed_records=processed_records,
                message=message or current.message,
                updated_at=self._clock(),
            )
            self._active[ingestion_id] = status

        logger.debug(
            "Ingestion %s at %d%%", ingestion_id, status.progress_percentage
        )
        return status

    def mark_complete(
        self,
        ingestion_id: str,
        errors: Iterable[str] = (),
        notify: bool = True,
    ) -> IngestionStatus:
        """
        Finish a run successfully.

        A run that collected errors ends as PARTIAL_SUCCESS. With
        `notify=False` subscribers are not called and the caller is
        responsible for acting on the returned status.
        """
        errors = tuple(errors)
        state = IngestionState.PARTIAL_SUCCESS if errors else IngestionState.SUCCESS
        message = (
            f"Completed with {len(errors)} errors" if errors else "Ingestion completed successfully"
        )
        return self._finish(ingestion_id, state, message, errors, notify)

    def mark_failed(self, ingestion_id: str, error: str) -> IngestionStatus:
        """Finish a run as FAILED."""
        return self._finish(ingestion_id, IngestionState.FAILED, error, (error,))

    def get_status(self, ingestion_id: str) -> Optional[IngestionStatus]:
        with self._lock:
            status = self._active.get(ingestion_id)
            if status is None:
                status = self._finished.get(ingestion_id)
            return status

    def active_runs(self) -> List[IngestionStatus]:
        with self._lock:
            return list(self._active.values())

    def finished_runs(self) -> List[IngestionStatus]:
        """Retained finished runs, oldest first."""
        with self._lock:
            return list(self._finished.values())

    def subscribe(self, listener: IngestionListener) -> None:
        """Call `listener` with the final status whenever a run finishes."""
        with self._lock:
            self._listeners.append(listener)

    def is_ingested(
        self, date_range: DateRange, airline_id: Optional[str] = None
    ) -> bool:
        with self._lock:
            return not any(
                run.date_range.overlaps(date_range)
                and run.covers_airline(airline_id)
                for run in self._active.values()
            )

    def _finish(
        self,
        ingestion_id: str,
        state: IngestionState,
        message: str,
        errors: tuple,
        notify: bool = True,
    ) -> IngestionStatus:
        with self._lock:
            current = self._require_active(ingestion_id)
            status = replace(
                current,
                state=state,
                message=message,
                errors=current.errors + errors,
                processed_records=(
                    max(current.total_records, current.processed_records)
                    if state is IngestionState.SUCCESS
                    else current.processed_records
                ),
                updated_at=self._clock(),
            )
            del self._active[ingestion_id]
            self._remember(status)
            listeners = list(self._listeners) if notify else []

        if state is IngestionState.FAILED:
            logger.warning("Ingestion %s failed: %s", ingestion_id, message)
        else:
            logger.info("Ingestion %s finished: %s", ingestion_id, state.value)

        for listener in listeners:
            listener(status)
        return status

    def _require_active(self, ingestion_id: str) -> IngestionStatus:
        """Lock held."""
        status = self._active.get(ingestion_id)
        if status is not None:
            return status
        if ingestion_id in self._finished:
            raise ValueError(f"Ingestion {ingestion_id} already finished")
        raise KeyError(f"Unknown ingestion: {ingestion_id}")

    def _remember(self, status: IngestionStatus) -> None:
        """Append to the finished history and trim it. Lock held."""
        self._finished[status.ingestion_id] = status
        while len(self._finished) > self._history_size:
            dropped, _ = self._finished.popitem(last=False)
            logger.debug("Dropped finished ingestion %s from history", dropped)

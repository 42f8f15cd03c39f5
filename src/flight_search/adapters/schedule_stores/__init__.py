"""
Schedule store adapters (in-memory DataFrame and SQLite).
"""

from src.flight_search.adapters.schedule_stores.dataframe_store import (
    DataFrameScheduleStore,
    OriginIndex,
    ScheduleSnapshot,
    build_origin_index,
)
from src.flight_search.adapters.schedule_stores.sqlite_store import SQLiteScheduleStore

__all__ = [
    "DataFrameScheduleStore",
    "OriginIndex",
    "SQLiteScheduleStore",
    "ScheduleSnapshot",
    "build_origin_index",
]

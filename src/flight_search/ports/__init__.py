"""
Port interfaces for Flight Search.

Ports define the abstract interfaces (ABCs and Protocols) that the domain
layer uses to communicate with external systems, following the Ports and
Adapters (Hexagonal) architecture pattern.
"""

from src.flight_search.ports.ingestion_status import (
    IngestionState,
    IngestionStatus,
    IngestionStatusProvider,
)
from src.flight_search.ports.schedule_store import ScheduleStore
from src.flight_search.ports.search_cache import (
    CacheEntry,
    CacheStats,
    EntryState,
    SearchCache,
)

__all__ = [
    "CacheEntry",
    "CacheStats",
    "EntryState",
    "IngestionState",
    "IngestionStatus",
    "IngestionStatusProvider",
    "ScheduleStore",
    "SearchCache",
]

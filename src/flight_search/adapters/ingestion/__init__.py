"""
Ingestion status adapters.
"""

from src.flight_search.adapters.ingestion.ingestion_tracker import (
    InMemoryIngestionTracker,
)

__all__ = ["InMemoryIngestionTracker"]

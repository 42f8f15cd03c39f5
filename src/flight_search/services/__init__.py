"""
Domain services for Flight Search.

Services hold the search logic (validation, connection resolution,
fingerprinting) and orchestrate it against the ports (schedule store,
ingestion status, search cache).
"""

from src.flight_search.services.connection_resolver import ConnectionResolver
from src.flight_search.services.search_coordinator import SearchCoordinator
from src.flight_search.services.search_fingerprint import (
    SearchFingerprint,
    compute_fingerprint,
)
from src.flight_search.services.search_validator import SearchValidator

__all__ = [
    "ConnectionResolver",
    "SearchCoordinator",
    "SearchFingerprint",
    "SearchValidator",
    "compute_fingerprint",
]

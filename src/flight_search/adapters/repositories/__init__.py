"""
Repository adapters for search result caching.
"""

from src.flight_search.adapters.repositories.cache_coordinator import CacheCoordinator

__all__ = ["CacheCoordinator"]

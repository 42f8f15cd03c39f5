"""
Application layer for Flight Search.

This layer provides the public API for the search engine. It acts as a
facade, handling dependency initialization and providing a simple
interface for consumers.
"""

from src.flight_search.application.search_flights import SearchFlights

__all__ = ["SearchFlights"]

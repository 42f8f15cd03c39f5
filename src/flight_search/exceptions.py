"""
Custom exceptions for the flight search engine.

Only infrastructure failures are exceptions. Validation failures travel as
FieldError data and missing flights as None, so an exception always means
"the engine could not answer", never "there is no answer".
"""

from typing import Optional


class FlightSearchError(Exception):
    """Base exception for all flight search errors."""

    pass


class InfrastructureError(FlightSearchError):
    """
    Base exception for failures of collaborators the engine depends on.

    Infrastructure errors are retryable by the caller (with backoff); the
    engine itself never retries and never caches them.
    """

    retryable = True


class ScheduleStoreError(InfrastructureError):
    """Raised when the schedule store is unavailable or a read fails."""

    def __init__(self, message: str, store: Optional[str] = None) -> None:
        self.store = store
        if store:
            message = f"{store}: {message}"
        super().__init__(message)


class SearchTimeoutError(InfrastructureError):
    """Raised when a caller gives up waiting on a shared in-flight search."""

    def __init__(self, fingerprint: str, timeout: float) -> None:
        self.fingerprint = fingerprint
        self.timeout = timeout
        message = (
            f"Timed out after {timeout:.1f}s waiting for in-flight search {fingerprint}"
        )
        super().__init__(message)

"""
Validation and search response schemas.

Validation failures are data, not exceptions: they travel inside
ValidationResult and SearchResponse so callers always receive a structured
answer that distinguishes "invalid request" from "no matching flights".
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence, Tuple, TypeVar

if TYPE_CHECKING:
    from src.flight_search.schemas.criteria import SearchCriteria
    from src.flight_search.schemas.itinerary import Itinerary
    from src.flight_search.services.search_fingerprint import SearchFingerprint

T = TypeVar("T")


@dataclass(frozen=True)
class FieldError:
    """
    Field-attributed validation failure.

    Attributes:
        field: Request field name in wire spelling (e.g. 'returnDate').
        message: Human-readable explanation.
        code: Stable machine-readable error code.
    """

    field: str
    message: str
    code: str


@dataclass(frozen=True)
class ValidationResult:
    """Aggregate of all validation failures for one request."""

    errors: Tuple[FieldError, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def for_field(self, field: str) -> Tuple[FieldError, ...]:
        return tuple(e for e in self.errors if e.field == field)

    @property
    def fields(self) -> frozenset[str]:
        return frozenset(e.field for e in self.errors)


@dataclass(frozen=True)
class SearchResponse:
    """
    Result of one search request.

    Attributes:
        criteria: Echo of the request criteria.
        itineraries: Ordered outbound itineraries on this page.
        return_itineraries: Ordered return itineraries on this page
            (round trips only).
        served_from_cache: True when this request did not run the search.
        errors: Validation errors; non-empty means no search was made.
        is_complete: False when schedule data was still being ingested.
        fingerprint: Cache key of the request (None when invalid).
        total_results: Outbound itineraries found, across all pages.
        total_return_results: Return itineraries found, across all pages.
        page: Zero-based page the itinerary lists hold.
        page_size: Itineraries per page (0 when invalid).
    """

    criteria: SearchCriteria
    itineraries: Tuple[Itinerary, ...] = ()
    return_itineraries: Tuple[Itinerary, ...] = ()
    served_from_cache: bool = False
    errors: Tuple[FieldError, ...] = ()
    is_complete: bool = True
    fingerprint: Optional[SearchFingerprint] = None
    total_results: int = 0
    total_return_results: int = 0
    page: int = 0
    page_size: int = 0

    @classmethod
    def invalid(
        cls, criteria: SearchCriteria, errors: Tuple[FieldError, ...]
    ) -> "SearchResponse":
        """Response for a request rejected by validation."""
        return cls(criteria=criteria, errors=tuple(errors))

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def total_pages(self) -> int:
        """Pages needed for the longer of the two itinerary lists."""
        if self.page_size <= 0:
            return 0
        return math.ceil(max(self.total_results, self.total_return_results) / self.page_size)

    @property
    def has_more(self) -> bool:
        return self.page + 1 < self.total_pages


def page_slice(items: Sequence[T], page: int, page_size: int) -> Tuple[T, ...]:
    """Items on the zero-based `page`; empty past the last page."""
    start = page * page_size
    return tuple(items[start : start + page_size])

"""
Search fingerprinting.

Turns SearchCriteria into a deterministic cache key. Requests that differ
only in spelling (case, whitespace, airline order, an ignored return date
on a one-way trip) map to the same fingerprint.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict

from src.flight_search.schemas.criteria import (
    SearchCriteria,
    SeatClass,
    normalize_airport_code,
)


@dataclass(frozen=True)
class SearchFingerprint:
    """
    Hex SHA-256 digest of normalized search criteria.

    Attributes:
        digest: 64-character hexadecimal digest.
    """

    digest: str

    @property
    def short(self) -> str:
        """Abbreviated digest for log lines."""
        return self.digest[:12]

    def __str__(self) -> str:
        return self.digest


def normalize_criteria(criteria: SearchCriteria, max_connections: int) -> Dict[str, Any]:
    """
    Canonical, JSON-serializable form of a search.

    Args:
        criteria: Search criteria (validated).
        max_connections: Effective connection limit for the search.

    Returns:
        Dict with case-folded codes, ISO dates and sorted airline filter.
    """
    seat_class = SeatClass.parse(criteria.seat_class)
    return {
        "origin": normalize_airport_code(criteria.origin),
        "destination": normalize_airport_code(criteria.destination),
        "date_range": [
            criteria.date_range.start.isoformat(),
            criteria.date_range.end.isoformat(),
        ],
        "seat_class": seat_class.value if seat_class else str(criteria.seat_class),
        "round_trip": criteria.is_round_trip,
        "return_date": (
            criteria.return_date.isoformat()
            if criteria.is_round_trip and criteria.return_date is not None
            else None
        ),
        "airlines": sorted(a.upper() for a in criteria.airlines),
        "min_seats": criteria.min_seats,
        "max_connections": max_connections,
    }


def compute_fingerprint(criteria: SearchCriteria, max_connections: int) -> SearchFingerprint:
    """Compute the cache key for a search."""
    canonical = json.dumps(
        normalize_criteria(criteria, max_connections),
        sort_keys=True,
        separators=(",", ":"),
    )
    return SearchFingerprint(hashlib.sha256(canonical.encode("utf-8")).hexdigest())

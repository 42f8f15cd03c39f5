"""
Tests for search fingerprinting.
"""

from datetime import date

from src.flight_search.schemas.criteria import SeatClass
from src.flight_search.services.search_fingerprint import (
    SearchFingerprint,
    compute_fingerprint,
    normalize_criteria,
)


class TestComputeFingerprint:
    """Equivalent requests share a key, different requests do not."""

    def test_deterministic(self, make_criteria) -> None:
        assert compute_fingerprint(make_criteria(), 1) == compute_fingerprint(make_criteria(), 1)

    def test_sha256_hex_digest(self, make_criteria) -> None:
        fp = compute_fingerprint(make_criteria(), 1)

        assert len(fp.digest) == 64
        int(fp.digest, 16)
        assert fp.short == fp.digest[:12]
        assert str(fp) == fp.digest

    def test_case_and_whitespace_do_not_matter(self, make_criteria) -> None:
        a = make_criteria(origin=" jfk", destination="Lax", seat_class="economy")
        b = make_criteria(origin="JFK", destination="LAX", seat_class=SeatClass.ECONOMY)

        assert compute_fingerprint(a, 1) == compute_fingerprint(b, 1)

    def test_airline_order_does_not_matter(self, make_criteria) -> None:
        a = make_criteria(airlines=["UA", "AA"])
        b = make_criteria(airlines=["aa", "ua"])

        assert compute_fingerprint(a, 1) == compute_fingerprint(b, 1)

    def test_return_date_ignored_on_one_way(self, make_criteria) -> None:
        a = make_criteria(return_date=date(2024, 6, 5))
        b = make_criteria()

        assert compute_fingerprint(a, 1) == compute_fingerprint(b, 1)

    def test_every_search_parameter_changes_the_key(self, make_criteria) -> None:
        base = compute_fingerprint(make_criteria(), 1)
        variants = [
            compute_fingerprint(make_criteria(destination="SFO"), 1),
            compute_fingerprint(make_criteria(end=date(2024, 6, 2)), 1),
            compute_fingerprint(make_criteria(seat_class="BUSINESS"), 1),
            compute_fingerprint(
                make_criteria(is_round_trip=True, return_date=date(2024, 6, 5)), 1
            ),
            compute_fingerprint(make_criteria(airlines=["AA"]), 1),
            compute_fingerprint(make_criteria(min_seats=2), 1),
            compute_fingerprint(make_criteria(), 2),
        ]

        assert base not in variants
        assert len(set(variants)) == len(variants)

    def test_fingerprint_is_hashable_key(self, make_criteria) -> None:
        cache = {compute_fingerprint(make_criteria(), 1): "entry"}
        assert cache[SearchFingerprint(compute_fingerprint(make_criteria(), 1).digest)] == "entry"


class TestNormalizeCriteria:
    def test_canonical_form(self, make_criteria) -> None:
        criteria = make_criteria(
            origin="jfk",
            seat_class="first",
            is_round_trip=True,
            return_date=date(2024, 6, 5),
            airlines=["UA", "AA"],
        )

        assert normalize_criteria(criteria, 0) == {
            "origin": "JFK",
            "destination": "LAX",
            "date_range": ["2024-06-01", "2024-06-01"],
            "seat_class": "FIRST",
            "round_trip": True,
            "return_date": "2024-06-05",
            "airlines": ["AA", "UA"],
            "min_seats": 1,
            "max_connections": 0,
        }

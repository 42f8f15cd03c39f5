"""
Configuration for the search engine.

A single frozen dataclass holds every tunable of the validator, resolver
and cache. Defaults match the connection rules of the schedule data
(45 minute minimum connection, 4 hour maximum layover).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from datetime import timedelta
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "FLIGHT_SEARCH_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class SearchConfig:
    """
    Search engine configuration.

    Attributes:
        min_connection_minutes: Shortest allowed layover.
        max_layover_minutes: Longest allowed layover.
        default_max_connections: Connections allowed when a request does
            not override it.
        max_connections_limit: Largest override a request may ask for.
        past_grace_days: How many days in the past a search may start.
        max_days_in_advance: How far ahead a search may start.
        max_date_range_days: Longest departure date range per request.
        max_trip_days: Longest gap between departure and return.
        default_page_size: Itineraries per page when a request does not
            ask for a page size.
        max_page_size: Largest page size a request may ask for.
        cache_ttl_seconds: Freshness window of cached results.
        partial_cache_ttl_seconds: Freshness window for results computed
            while schedule ingestion was still running.
        cache_max_entries: LRU bound on cached results (0 = unbounded).
        wait_timeout_seconds: How long a caller waits on another caller's
            in-flight computation before giving up (0 = forever).
        store_timeout_seconds: Busy timeout of the SQLite schedule store.
        db_path: Location of the SQLite schedule database.
        refresh_on_ingestion: Recompute (instead of just dropping) cached
            searches when an ingestion run covering their dates completes.
    """

    min_connection_minutes: int = 45
    max_layover_minutes: int = 240
    default_max_connections: int = 1
    max_connections_limit: int = 2
    past_grace_days: int = 0
    max_days_in_advance: int = 365
    max_date_range_days: int = 30
    max_trip_days: int = 365
    default_page_size: int = 20
    max_page_size: int = 100
    cache_ttl_seconds: float = 600.0
    partial_cache_ttl_seconds: float = 60.0
    cache_max_entries: int = 1024
    wait_timeout_seconds: float = 30.0
    store_timeout_seconds: float = 5.0
    db_path: str = "data/schedules.db"
    refresh_on_ingestion: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.min_connection_minutes < 0:
            raise ValueError(
                f"min_connection_minutes must be >= 0, got {self.min_connection_minutes}"
            )
        if self.max_layover_minutes < self.min_connection_minutes:
            raise ValueError(
                f"max_layover_minutes ({self.max_layover_minutes}) must be >= "
                f"min_connection_minutes ({self.min_connection_minutes})"
            )
        if self.max_connections_limit < 0:
            raise ValueError(
                f"max_connections_limit must be >= 0, got {self.max_connections_limit}"
            )
        if not 0 <= self.default_max_connections <= self.max_connections_limit:
            raise ValueError(
                f"default_max_connections must be within 0..{self.max_connections_limit}, "
                f"got {self.default_max_connections}"
            )
        if not 1 <= self.default_page_size <= self.max_page_size:
            raise ValueError(
                f"default_page_size must be within 1..{self.max_page_size}, "
                f"got {self.default_page_size}"
            )
        if self.cache_ttl_seconds <= 0 or self.partial_cache_ttl_seconds <= 0:
            raise ValueError("cache TTLs must be > 0")
        for name in (
            "past_grace_days",
            "max_days_in_advance",
            "max_date_range_days",
            "max_trip_days",
            "cache_max_entries",
            "wait_timeout_seconds",
            "store_timeout_seconds",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")

    @property
    def min_connection_time(self) -> timedelta:
        return timedelta(minutes=self.min_connection_minutes)

    @property
    def max_layover(self) -> timedelta:
        return timedelta(minutes=self.max_layover_minutes)

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.cache_ttl_seconds)

    @property
    def partial_cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.partial_cache_ttl_seconds)

    @property
    def wait_timeout(self) -> Optional[float]:
        """Waiter timeout in seconds, or None to wait indefinitely."""
        return self.wait_timeout_seconds or None

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        prefix: str = ENV_PREFIX,
    ) -> "SearchConfig":
        """
        Build configuration from environment variables.

        Each field maps to `<prefix><FIELD_NAME>` (e.g.
        FLIGHT_SEARCH_CACHE_TTL_SECONDS). Unset variables keep defaults.

        Args:
            environ: Mapping to read from. Defaults to os.environ.
            prefix: Variable name prefix.

        Raises:
            ValueError: If a variable cannot be parsed or the resulting
                configuration is invalid.
        """
        environ = os.environ if environ is None else environ
        overrides = {}

        for f in fields(cls):
            raw = environ.get(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            overrides[f.name] = _parse_value(f.name, raw, f.default)

        if overrides:
            logger.debug("Configuration overrides from environment: %s", sorted(overrides))

        return cls(**overrides)


def _parse_value(name: str, raw: str, default: object) -> object:
    """Cast an environment string to the type of the field default."""
    value = raw.strip()
    if isinstance(default, bool):
        lowered = value.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"{name}: expected a boolean, got '{raw}'")
    if isinstance(default, int):
        try:
            return int(value)
        except ValueError as e:
            raise ValueError(f"{name}: expected an integer, got '{raw}'") from e
    if isinstance(default, float):
        try:
            return float(value)
        except ValueError as e:
            raise ValueError(f"{name}: expected a number, got '{raw}'") from e
    return value

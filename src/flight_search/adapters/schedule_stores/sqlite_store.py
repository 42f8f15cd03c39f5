"""
SQLite Schedule Store - SQL to DataFrame adapter.

Reads flight legs from the `flight_legs` table of a SQLite database and
validates them against FlightLegSchema before handing them to the engine.
"""

import logging
import sqlite3
import threading
from datetime import timedelta
from pathlib import Path
from typing import List, Optional, Set

import pandas as pd
import pandera as pa

from src.flight_search.exceptions import ScheduleStoreError
from src.flight_search.ports.schedule_store import ScheduleStore
from src.flight_search.schemas.criteria import DateRange, SeatClass
from src.flight_search.schemas.flight import (
    LEG_COLUMNS,
    FlightLeg,
    FlightLegSchema,
    frame_to_legs,
)

logger = logging.getLogger(__name__)

TABLE_NAME = "flight_legs"

_CREATE_TABLE = f"""
    CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
        flight_id       TEXT PRIMARY KEY,
        airline_id      TEXT NOT NULL,
        flight_number   TEXT,
        origin          TEXT NOT NULL,
        destination     TEXT NOT NULL,
        departure_time  TEXT NOT NULL,
        arrival_time    TEXT NOT NULL,
        economy_seats   INTEGER NOT NULL DEFAULT 0,
        business_seats  INTEGER NOT NULL DEFAULT 0,
        first_seats     INTEGER NOT NULL DEFAULT 0
    )
"""

_CREATE_INDEX = f"""
    CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_origin_departure
    ON {TABLE_NAME} (origin, departure_time)
"""

_SELECT_COLUMNS = ", ".join(LEG_COLUMNS)

_DATE_COLUMNS = ["departure_time", "arrival_time"]

# Timestamps are stored as ISO text, so string comparison orders them.
_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class SQLiteScheduleStore(ScheduleStore):
    """
    Schedule store backed by a SQLite database.

    One lazily opened connection is shared by all threads and serialized
    with a lock; the busy timeout bounds how long a read waits on a writer.

    Attributes:
        _db_path: Path to the SQLite database file.
        _timeout: Busy timeout in seconds.
        _conn: SQLite connection (lazy initialized).
    """

    def __init__(self, db_path: str = "data/schedules.db", timeout: float = 5.0) -> None:
        """
        Initialize the SQLite schedule store.

        Args:
            db_path: Path to SQLite database file.
            timeout: Seconds to wait for a locked database.
        """
        self._db_path = Path(db_path)
        self._timeout = timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def _get_connection(self, create: bool = False) -> sqlite3.Connection:
        """Get or create database connection. Caller holds the lock."""
        if self._conn is None:
            if not create and not self._db_path.exists():
                raise ScheduleStoreError(f"Database not found: {self._db_path}", store=self.name)
            if create:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                str(self._db_path),
                timeout=self._timeout,
                check_same_thread=False,
            )
        return self._conn

    def _read_frame(self, query: str, params: list) -> pd.DataFrame:
        logger.debug("Executing query: %s with params: %s", query, params)
        try:
            with self._lock:
                conn = self._get_connection()
                df = pd.read_sql(query, conn, params=params, parse_dates=_DATE_COLUMNS)
            if df.empty:
                return df
            return FlightLegSchema.validate(df)
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            logger.error("Query against %s failed: %s", self._db_path, e)
            raise ScheduleStoreError(f"Query failed: {e}", store=self.name) from e
        except pa.errors.SchemaError as e:
            logger.error("Invalid schedule rows in %s: %s", self._db_path, e)
            raise ScheduleStoreError(f"Invalid schedule data: {e}", store=self.name) from e

    def find_legs(
        self,
        origin: str,
        destination: Optional[str],
        date_range: DateRange,
        seat_class: SeatClass,
        min_seats: int = 1,
    ) -> List[FlightLeg]:
        query = f"""
            SELECT {_SELECT_COLUMNS}
            FROM {TABLE_NAME}
            WHERE origin = ?
              AND departure_time >= ?
              AND departure_time < ?
              AND {seat_class.column} >= ?
        """
        params: list = [
            origin,
            date_range.start.isoformat(),
            (date_range.end + timedelta(days=1)).isoformat(),
            min_seats,
        ]

        if destination is not None:
            query += " AND destination = ?"
            params.append(destination)

        query += " ORDER BY departure_time"

        return frame_to_legs(self._read_frame(query, params))

    def get_leg(self, flight_id: str) -> Optional[FlightLeg]:
        query = f"SELECT {_SELECT_COLUMNS} FROM {TABLE_NAME} WHERE flight_id = ?"
        legs = frame_to_legs(self._read_frame(query, [flight_id]))
        return legs[0] if legs else None

    def get_airports(self) -> Set[str]:
        """
        Get all airport codes in the database.

        Returns:
            Set of airport codes (departures and arrivals).
        """
        query = f"""
            SELECT DISTINCT origin FROM {TABLE_NAME}
            UNION
            SELECT DISTINCT destination FROM {TABLE_NAME}
        """
        try:
            with self._lock:
                df = pd.read_sql(query, self._get_connection())
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            raise ScheduleStoreError(f"Query failed: {e}", store=self.name) from e

        airports = set(df.iloc[:, 0].dropna().unique())
        logger.debug("Found %d airports in database", len(airports))
        return airports

    def initialize(self, frame: Optional[pd.DataFrame] = None) -> int:
        """
        Create the schedule table (if missing) and append rows.

        Used to seed development databases and test fixtures; the engine
        itself only reads.

        Args:
            frame: Rows satisfying FlightLegSchema.

        Returns:
            Number of rows written.
        """
        rows = 0
        try:
            if frame is not None and not frame.empty:
                validated = FlightLegSchema.validate(frame)
                to_write = validated.reindex(columns=LEG_COLUMNS)
                for column in _DATE_COLUMNS:
                    to_write[column] = to_write[column].dt.strftime(_TIMESTAMP_FORMAT)
                rows = len(to_write)
            else:
                to_write = None

            with self._lock:
                conn = self._get_connection(create=True)
                conn.execute(_CREATE_TABLE)
                conn.execute(_CREATE_INDEX)
                if to_write is not None:
                    to_write.to_sql(TABLE_NAME, conn, if_exists="append", index=False)
                conn.commit()
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            raise ScheduleStoreError(f"Initialization failed: {e}", store=self.name) from e
        except pa.errors.SchemaError as e:
            raise ScheduleStoreError(f"Invalid schedule data: {e}", store=self.name) from e

        logger.info("Initialized %s with %d legs", self._db_path, rows)
        return rows

    @property
    def name(self) -> str:
        """Human-readable store name."""
        return "SQLite schedules"

    @property
    def is_available(self) -> bool:
        """Check if database is accessible."""
        return self._db_path.exists()

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("Database connection closed")

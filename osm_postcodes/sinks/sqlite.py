"""SQLite sink."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from osm_postcodes.common.constants import OUTPUT_COLUMNS
from osm_postcodes.common.errors import SinkWriteError
from osm_postcodes.common.models import AddressRecord


class SqliteSink:
    """Writes rows with ``executemany`` once per batch, one transaction per batch."""

    backend_errors = (sqlite3.Error,)

    def __init__(self, location: str, table: str):
        self._location = location
        self._table = table
        self._rows: list[tuple] = []
        self._conn: sqlite3.Connection | None = None
        try:
            if location != ":memory:":
                Path(location).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(location)
        except (OSError, sqlite3.Error) as exc:
            raise SinkWriteError(f"cannot open sqlite database {location!r}: {exc}") from exc

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError("sink is closed")
        return self._conn

    def create_schema(self, fresh: bool) -> None:
        conn = self.connection
        if fresh:
            conn.execute(f"DROP TABLE IF EXISTS {self._table}")
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                lat REAL NOT NULL,
                lon REAL NOT NULL,
                city TEXT,
                country TEXT NOT NULL,
                postcode TEXT NOT NULL,
                province TEXT,
                street TEXT,
                house_number TEXT
            )
            """
        )
        conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{self._table}_postcode "
            f"ON {self._table} (postcode, house_number)"
        )
        conn.commit()

    def begin_batch(self) -> None:
        self._rows = []

    def insert_row(self, record: AddressRecord) -> None:
        self._rows.append(record.to_row())

    def commit_batch(self) -> int:
        placeholders = ", ".join("?" for _ in OUTPUT_COLUMNS)
        conn = self.connection
        conn.executemany(
            f"INSERT INTO {self._table} ({', '.join(OUTPUT_COLUMNS)}) VALUES ({placeholders})",
            self._rows,
        )
        conn.commit()
        count = len(self._rows)
        self._rows = []
        return count

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

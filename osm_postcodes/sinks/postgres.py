"""PostgreSQL sink."""

from __future__ import annotations

import psycopg2
from psycopg2.extras import execute_values
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from osm_postcodes.common.constants import OUTPUT_COLUMNS
from osm_postcodes.common.errors import SinkWriteError
from osm_postcodes.common.models import AddressRecord


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential_jitter(initial=1.0, max=10.0, jitter=1.0),
    retry=retry_if_exception_type(psycopg2.OperationalError),
    reraise=True,
)
def _connect(dsn: str):
    return psycopg2.connect(dsn)


class PostgresSink:
    """Writes each batch with ``execute_values`` inside its own transaction."""

    backend_errors = (psycopg2.Error,)

    def __init__(self, dsn: str, table: str, page_size: int = 1000):
        self._table = table
        self._page_size = page_size
        self._rows: list[tuple] = []
        try:
            self._conn = _connect(dsn)
        except psycopg2.Error as exc:
            raise SinkWriteError(f"cannot connect to postgresql: {exc}") from exc

    def create_schema(self, fresh: bool) -> None:
        with self._conn.cursor() as cur:
            if fresh:
                cur.execute(f"DROP TABLE IF EXISTS {self._table}")
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    lat DOUBLE PRECISION NOT NULL,
                    lon DOUBLE PRECISION NOT NULL,
                    city TEXT,
                    country TEXT NOT NULL,
                    postcode TEXT NOT NULL,
                    province TEXT,
                    street TEXT,
                    house_number TEXT
                )
                """
            )
            cur.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{self._table}_postcode "
                f"ON {self._table} (postcode, house_number)"
            )
        self._conn.commit()

    def begin_batch(self) -> None:
        self._rows = []

    def insert_row(self, record: AddressRecord) -> None:
        self._rows.append(record.to_row())

    def commit_batch(self) -> int:
        with self._conn.cursor() as cur:
            execute_values(
                cur,
                f"INSERT INTO {self._table} ({', '.join(OUTPUT_COLUMNS)}) VALUES %s",
                self._rows,
                page_size=self._page_size,
            )
        self._conn.commit()
        count = len(self._rows)
        self._rows = []
        return count

    def close(self) -> None:
        self._conn.close()

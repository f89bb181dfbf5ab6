"""Batched persistence of aggregated records through a relational sink."""

from __future__ import annotations

import logging
from typing import Iterable

from osm_postcodes.common.constants import DEFAULT_BATCH_SIZE
from osm_postcodes.common.errors import SinkWriteError
from osm_postcodes.common.logging import get_logger, log_event
from osm_postcodes.common.models import AddressRecord
from osm_postcodes.sinks.base import RelationalSink


def _span(batch: list[AddressRecord]) -> str | None:
    first, last = batch[0].source, batch[-1].source
    if first is None or last is None:
        return None
    return first if first == last else f"{first}..{last}"


class PersistenceWriter:
    """At-least-once batch writer.

    A failed batch is not rolled back or retried; rows from batches that
    committed before it stay in the table.
    """

    def __init__(
        self,
        sink: RelationalSink,
        batch_size: int = DEFAULT_BATCH_SIZE,
        logger: logging.Logger | None = None,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.sink = sink
        self.batch_size = batch_size
        self.logger = logger or get_logger()
        self.rows_written = 0
        self.batches_committed = 0

    def prepare(self, mode: str) -> None:
        try:
            self.sink.create_schema(fresh=mode == "fresh")
        except self.sink.backend_errors as exc:
            raise SinkWriteError(f"schema setup failed: {exc}") from exc

    def _flush(self, batch: list[AddressRecord]) -> None:
        batch_number = self.batches_committed + 1
        current: AddressRecord | None = None
        try:
            self.sink.begin_batch()
            for current in batch:
                self.sink.insert_row(current)
            current = None
            self.rows_written += self.sink.commit_batch()
        except self.sink.backend_errors as exc:
            # Rows are sent at commit, so a commit failure can only name the batch's span.
            entity = current.source if current is not None else _span(batch)
            raise SinkWriteError(
                f"batch insert failed: {exc}",
                batch=batch_number,
                rows_committed=self.rows_written,
                entity=entity,
            ) from exc
        self.batches_committed = batch_number
        log_event(
            self.logger,
            "batch committed",
            level=logging.DEBUG,
            stage="write",
            event="BATCH_COMMIT",
            status="ok",
            rows_in=len(batch),
            rows_out=self.rows_written,
        )

    def write(self, records: Iterable[AddressRecord]) -> int:
        batch: list[AddressRecord] = []
        for record in records:
            batch.append(record)
            if len(batch) >= self.batch_size:
                self._flush(batch)
                batch = []
        if batch:
            self._flush(batch)
        return self.rows_written

"""Ingestion pipeline orchestration.

A reader thread tokenizes the input and pushes entities through a bounded
queue. The consuming thread builds the entity store from points and ways
(phase 1). The first relation is the phase barrier: the store is sealed
before any relation is looked at, and boundaries and addresses are only
resolved once the whole stream has been consumed (phase 2).
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import BinaryIO, Iterator

from osm_postcodes.common.config_loader import RunConfig
from osm_postcodes.common.constants import ENTITY_UNRECOGNIZED
from osm_postcodes.common.errors import PipelineError, StructuralParseError
from osm_postcodes.common.ids import generate_run_id
from osm_postcodes.common.logging import get_logger, log_event
from osm_postcodes.common.models import PointEntity, RelationEntity, WayEntity
from osm_postcodes.ingest.entities import Entity, iter_entities
from osm_postcodes.ingest.spool import SpoolingReader
from osm_postcodes.ingest.store import EntityStore
from osm_postcodes.ingest.tokenizer import OsmTokenizer
from osm_postcodes.pipeline.addresses import AddressResolver
from osm_postcodes.pipeline.aggregate import RecordAggregator
from osm_postcodes.pipeline.boundaries import BoundaryResolver
from osm_postcodes.pipeline.writer import PersistenceWriter
from osm_postcodes.sinks.base import RelationalSink, open_sink

_END = object()
_PUT_TIMEOUT = 0.5


@dataclass
class _Failure:
    exc: BaseException


@dataclass
class RunResult:
    run_id: str
    country: str
    mode: str
    passes: int
    rows_written: int = 0
    rows_skipped: int = 0
    province_unresolved: int = 0
    province_outside: int = 0
    batches_committed: int = 0
    counts: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def status(self) -> str:
        return "partial" if self.province_unresolved else "success"

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["status"] = self.status
        return payload


class EntityReader:
    """Runs tokenizing on a worker thread and hands entities over a bounded queue."""

    def __init__(self, stream: BinaryIO, chunk_size: int, queue_size: int):
        self.tokenizer = OsmTokenizer(stream, chunk_size=chunk_size)
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._produce, name="osm-reader", daemon=True)

    def _put(self, item: object) -> bool:
        while not self._stop.is_set():
            try:
                self._queue.put(item, timeout=_PUT_TIMEOUT)
                return True
            except queue.Full:
                continue
        return False

    def _produce(self) -> None:
        try:
            for entity in iter_entities(self.tokenizer):
                if not self._put(entity):
                    return
        except BaseException as exc:  # forwarded to the consumer and re-raised there
            self._put(_Failure(exc))
            return
        self._put(_END)

    def close(self) -> None:
        self._stop.set()
        if self._thread.is_alive():
            self._thread.join()

    def __iter__(self) -> Iterator[Entity]:
        self._thread.start()
        try:
            while True:
                item = self._queue.get()
                if item is _END:
                    return
                if isinstance(item, _Failure):
                    raise item.exc
                yield item
        finally:
            self._stop.set()
            self._thread.join()


def scan_relations(
    stream: BinaryIO,
    boundaries: BoundaryResolver,
    addresses: AddressResolver,
    chunk_size: int,
) -> set[int]:
    """First pass: ids of ways that a boundary or address relation refers to."""
    retained: set[int] = set()
    for entity in iter_entities(OsmTokenizer(stream, chunk_size=chunk_size)):
        if not isinstance(entity, RelationEntity):
            continue
        if boundaries.classify(entity) is not None:
            retained.update(boundaries.member_way_ids(entity))
        retained.update(addresses.area_way_ids(entity))
    return retained


def _ingest(
    entities: Iterator[Entity],
    store: EntityStore,
    boundaries: BoundaryResolver,
    addresses: AddressResolver,
    counts: dict[str, int],
    logger: logging.Logger,
) -> None:
    for entity in entities:
        if isinstance(entity, PointEntity):
            store.record_point(entity.id, entity.lat, entity.lon, entity.tags)
            addresses.observe_point(entity)
            counts["points"] += 1
        elif isinstance(entity, WayEntity):
            if store.sealed:
                raise StructuralParseError("way after relations started", entity=entity.ref)
            addresses.observe_way(entity, store)
            store.record_way(entity.id, entity.refs, entity.tags)
            counts["ways"] += 1
        else:
            if not store.sealed:
                store.seal()
                log_event(
                    logger,
                    "points and ways complete",
                    stage="ingest",
                    event="PHASE_BARRIER",
                    status="ok",
                    rows_in=counts["points"] + counts["ways"],
                )
            boundaries.add_relation(entity)
            addresses.observe_relation(entity)
            counts["relations"] += 1
    if not store.sealed:
        store.seal()


def run_pipeline(
    stream: BinaryIO,
    config: RunConfig,
    *,
    country: str,
    sink: RelationalSink | None = None,
    run_id: str | None = None,
    logger: logging.Logger | None = None,
) -> RunResult:
    """Ingest one OSM XML stream into the configured sink.

    ``sink`` defaults to the backend named by ``config.sink_uri``; a sink
    opened here is closed here. The target table is prepared before any
    input is read, so a fresh run that dies midway leaves a partial table.
    """
    run_id = run_id or generate_run_id()
    logger = logger or get_logger()
    started = time.monotonic()
    result = RunResult(run_id=run_id, country=country, mode=config.mode, passes=config.passes)
    counts = {"points": 0, "ways": 0, "relations": 0}
    fields = {"run_id": run_id, "country": country}

    owns_sink = sink is None

    boundaries = BoundaryResolver(levels=config.province_levels, logger=logger)
    addresses = AddressResolver(country=country, logger=logger)
    aggregator = RecordAggregator()
    writer: PersistenceWriter | None = None
    spool: SpoolingReader | None = None
    reader: EntityReader | None = None

    try:
        if sink is None:
            sink = open_sink(config.sink_uri, config.table)
        writer = PersistenceWriter(sink, batch_size=config.batch_size, logger=logger)
        writer.prepare(config.mode)
        log_event(logger, "ingest start", stage="ingest", event="STAGE_START", status="ok", **fields)

        retain_way = None
        source = stream
        if config.passes == 2:
            spool = SpoolingReader(stream)
            retained = scan_relations(spool, boundaries, addresses, config.chunk_size)
            retain_way = retained.__contains__
            source = spool.replay()
            log_event(
                logger,
                "relation scan complete",
                stage="scan",
                event="STAGE_END",
                status="ok",
                rows_out=len(retained),
                **fields,
            )

        store = EntityStore(retain_way=retain_way)
        reader = EntityReader(source, chunk_size=config.chunk_size, queue_size=config.queue_size)
        _ingest(iter(reader), store, boundaries, addresses, counts, logger)
        counts["ways_dropped"] = store.ways_dropped
        counts["unrecognized_entities"] = reader.tokenizer.unrecognized
        if reader.tokenizer.unrecognized:
            log_event(
                logger,
                f"skipped unrecognized elements: {sorted(reader.tokenizer.unrecognized_kinds)}",
                level=logging.WARNING,
                stage="ingest",
                event=ENTITY_UNRECOGNIZED,
                status="warning",
                rows_in=reader.tokenizer.unrecognized,
                **fields,
            )

        boundaries.build(store)
        writer.write(aggregator.filter(addresses.resolve(boundaries, store)))
        store.release()
    except PipelineError as exc:
        log_event(
            logger,
            f"run failed: {exc}",
            level=logging.ERROR,
            stage="ingest",
            event="STAGE_FAIL",
            status="error",
            error_code=exc.error_code,
            offset=getattr(exc, "offset", None),
            entity=getattr(exc, "entity", None),
            rows_out=writer.rows_written if writer is not None else 0,
            **fields,
        )
        raise
    finally:
        if reader is not None:
            reader.close()
        if spool is not None:
            spool.close()
        if owns_sink and sink is not None:
            sink.close()

    address_stats = addresses.stats
    counts.update({f"addresses_{key}": value for key, value in address_stats.items()})
    counts["regions"] = len(boundaries.regions)
    counts["regions_open"] = len(boundaries.broken_regions)
    counts["duplicates"] = aggregator.duplicates

    result.rows_written = writer.rows_written
    result.batches_committed = writer.batches_committed
    result.rows_skipped = (
        address_stats["skipped_no_postcode"]
        + address_stats["skipped_incomplete"]
        + address_stats["skipped_no_coordinate"]
        + aggregator.duplicates
    )
    result.province_unresolved = address_stats["province_unresolved"]
    result.province_outside = address_stats["province_outside"]
    result.counts = counts
    result.duration_ms = int((time.monotonic() - started) * 1000)

    log_event(
        logger,
        f"ingest complete: {result.rows_written} written, {result.rows_skipped} skipped, "
        f"{result.province_unresolved} province unresolved",
        stage="ingest",
        event="STAGE_END",
        status=result.status,
        rows_in=address_stats["candidates"],
        rows_out=result.rows_written,
        **fields,
    )
    return result

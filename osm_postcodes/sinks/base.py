"""Relational sink contract and backend selection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from osm_postcodes.common.errors import ConfigError
from osm_postcodes.common.models import AddressRecord


class RelationalSink(Protocol):
    """One implementation per backend; the pipeline only talks to this surface."""

    backend_errors: tuple[type[BaseException], ...]

    def create_schema(self, fresh: bool) -> None: ...

    def begin_batch(self) -> None: ...

    def insert_row(self, record: AddressRecord) -> None: ...

    def commit_batch(self) -> int: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class SinkTarget:
    scheme: str
    location: str


def parse_sink_uri(uri: str) -> SinkTarget:
    """Split ``scheme://rest``. ``sqlite://out.db`` is relative, ``sqlite:///abs/out.db`` absolute."""
    scheme, sep, rest = uri.partition("://")
    if not sep or not rest:
        raise ConfigError(f"Unsupported sink URI: {uri!r}")
    scheme = scheme.lower()
    if scheme == "sqlite":
        return SinkTarget("sqlite", rest)
    if scheme in {"postgres", "postgresql"} or scheme.startswith("postgresql+"):
        return SinkTarget("postgresql", f"postgresql://{rest}")
    raise ConfigError(f"Unsupported sink backend: {scheme!r}")


def open_sink(uri: str, table: str) -> RelationalSink:
    target = parse_sink_uri(uri)
    if target.scheme == "sqlite":
        from osm_postcodes.sinks.sqlite import SqliteSink

        return SqliteSink(target.location, table)

    from osm_postcodes.sinks.postgres import PostgresSink

    return PostgresSink(target.location, table)

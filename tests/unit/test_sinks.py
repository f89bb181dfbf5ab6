from pathlib import Path

import pytest

from osm_postcodes.common.errors import ConfigError, SinkWriteError
from osm_postcodes.common.models import AddressRecord
from osm_postcodes.sinks.base import open_sink, parse_sink_uri
from osm_postcodes.sinks.sqlite import SqliteSink


def _record(house_number: str | None) -> AddressRecord:
    return AddressRecord(
        lat=51.56,
        lon=5.07,
        city="Tilburg",
        country="NL",
        postcode="5038LX",
        province="Noord-Brabant",
        street="Talent Square",
        house_number=house_number,
    )


def _insert(sink: SqliteSink, *records: AddressRecord) -> int:
    sink.begin_batch()
    for record in records:
        sink.insert_row(record)
    return sink.commit_batch()


@pytest.mark.parametrize(
    ("uri", "scheme", "location"),
    [
        ("sqlite://output.db", "sqlite", "output.db"),
        ("sqlite:///tmp/out.db", "sqlite", "/tmp/out.db"),
        ("postgresql://user:pw@db/osm", "postgresql", "postgresql://user:pw@db/osm"),
        ("postgres://db/osm", "postgresql", "postgresql://db/osm"),
        ("postgresql+psycopg2://db/osm", "postgresql", "postgresql://db/osm"),
    ],
)
def test_parse_sink_uri(uri, scheme, location):
    target = parse_sink_uri(uri)
    assert (target.scheme, target.location) == (scheme, location)


@pytest.mark.parametrize("uri", ["mysql://db/osm", "output.db", "sqlite://"])
def test_parse_sink_uri_rejects_unsupported(uri):
    with pytest.raises(ConfigError):
        parse_sink_uri(uri)


def test_sqlite_sink_round_trip_and_null_house_number(tmp_path: Path):
    sink = open_sink(f"sqlite://{tmp_path}/out.db", "postcodes")
    try:
        sink.create_schema(fresh=True)
        assert _insert(sink, _record("13"), _record(None)) == 2
        rows = sink.connection.execute(
            "SELECT lat, lon, city, country, postcode, province, street, house_number FROM postcodes ORDER BY rowid"
        ).fetchall()
    finally:
        sink.close()

    assert rows == [
        (51.56, 5.07, "Tilburg", "NL", "5038LX", "Noord-Brabant", "Talent Square", "13"),
        (51.56, 5.07, "Tilburg", "NL", "5038LX", "Noord-Brabant", "Talent Square", None),
    ]


def test_sqlite_sink_fresh_drops_and_append_keeps(tmp_path: Path):
    location = str(tmp_path / "nested" / "out.db")
    sink = SqliteSink(location, "postcodes")
    sink.create_schema(fresh=True)
    _insert(sink, _record("1"))
    sink.close()

    sink = SqliteSink(location, "postcodes")
    sink.create_schema(fresh=False)
    _insert(sink, _record("2"))
    assert sink.connection.execute("SELECT COUNT(*) FROM postcodes").fetchone() == (2,)
    sink.create_schema(fresh=True)
    assert sink.connection.execute("SELECT COUNT(*) FROM postcodes").fetchone() == (0,)
    indexes = [row[1] for row in sink.connection.execute("PRAGMA index_list(postcodes)")]
    sink.close()

    assert "idx_postcodes_postcode" in indexes


def test_sqlite_sink_open_failure_is_a_sink_error(tmp_path: Path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(SinkWriteError, match="cannot open sqlite database"):
        open_sink(f"sqlite://{blocker}/out.db", "postcodes")

import bz2
import gzip
import json
import logging
from pathlib import Path

from osm_postcodes.common.fs import open_input, write_json
from osm_postcodes.common.ids import generate_run_id
from osm_postcodes.common.logging import build_logger, log_event


def test_run_id_shape():
    run_id = generate_run_id()
    assert run_id.startswith("run-")
    assert run_id.endswith("Z")


def test_write_json_creates_parents(tmp_path: Path):
    path = tmp_path / "nested" / "report.json"
    write_json(path, {"b": 1, "a": "ü"})
    assert json.loads(path.read_text(encoding="utf-8")) == {"a": "ü", "b": 1}


def test_open_input_decompresses_by_suffix(tmp_path: Path):
    payload = b"<osm></osm>"
    plain = tmp_path / "nl.osm"
    plain.write_bytes(payload)
    packed_bz2 = tmp_path / "nl.osm.bz2"
    packed_bz2.write_bytes(bz2.compress(payload))
    packed_gz = tmp_path / "nl.osm.gz"
    packed_gz.write_bytes(gzip.compress(payload))

    for path in (plain, packed_bz2, packed_gz):
        with open_input(str(path)) as stream:
            assert stream.read() == payload


def test_logger_writes_json_lines(tmp_path: Path):
    logger = build_logger("run-test", data_dir=tmp_path, level="DEBUG")
    log_event(logger, "batch committed", level=logging.DEBUG, stage="write", event="BATCH_COMMIT", offset=42)
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / "run_meta" / "run-test.log.jsonl").read_text(encoding="utf-8").splitlines()
    record = json.loads(lines[-1])
    assert record["message"] == "batch committed"
    assert record["event"] == "BATCH_COMMIT"
    assert record["offset"] == 42

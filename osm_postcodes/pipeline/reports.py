"""Run report output."""

from __future__ import annotations

from pathlib import Path

from osm_postcodes.common.fs import write_json
from osm_postcodes.common.time_utils import utc_timestamp_iso
from osm_postcodes.pipeline.runner import RunResult


def write_run_report(data_dir: Path, result: RunResult, *, input_path: str | None = None) -> Path:
    report_path = data_dir / "reports" / f"{result.run_id}.json"
    payload = result.to_dict()
    payload["input_path"] = input_path
    payload["finished_at"] = utc_timestamp_iso()
    write_json(report_path, payload)
    return report_path


def write_failure_report(data_dir: Path, run_id: str, *, error_code: str, message: str, **context) -> Path:
    report_path = data_dir / "reports" / f"{run_id}.json"
    payload = {
        "run_id": run_id,
        "status": "error",
        "error_code": error_code,
        "message": message,
        "finished_at": utc_timestamp_iso(),
    }
    payload.update(context)
    write_json(report_path, payload)
    return report_path

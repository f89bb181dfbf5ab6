"""CLI entrypoint: import postcodes from an OSM XML extract into a relational table."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from osm_postcodes.common.config_loader import RunConfig, apply_overrides, load_run_config, require_country
from osm_postcodes.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from osm_postcodes.common.errors import PipelineError
from osm_postcodes.common.fs import open_input
from osm_postcodes.common.http import HttpClient, download_filename
from osm_postcodes.common.ids import generate_run_id
from osm_postcodes.common.logging import build_logger, log_event
from osm_postcodes.pipeline.reports import write_failure_report, write_run_report
from osm_postcodes.pipeline.runner import run_pipeline

DEFAULT_CONFIG_PATH = Path("config") / "run.yml"


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("input", nargs="?", default=None, help="OSM XML file (.osm, .osm.bz2, .osm.gz) or - for stdin")
    parser.add_argument("--url", default=None, help="download the extract from this URL first")
    parser.add_argument("--config", default=None)
    parser.add_argument("--overlay-config", default=None)
    parser.add_argument("--uri", default=None, help="sink URI, e.g. sqlite://output.db or postgresql://...")
    parser.add_argument("--table", default=None)
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--fresh", dest="mode", action="store_const", const="fresh")
    mode.add_argument("--append", dest="mode", action="store_const", const="append")
    parser.add_argument("--country", default=None)
    parser.add_argument("--batch-size", type=int, default=None)
    parser.add_argument("--passes", type=int, choices=[1, 2], default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    args = parser.parse_args(argv)
    if args.input is None and args.url is None:
        parser.error("an input file or --url is required")
    return args


def resolve_config(args: argparse.Namespace) -> RunConfig:
    overlay = Path(args.overlay_config) if args.overlay_config else None
    if args.config:
        config = load_run_config(Path(args.config), overlay_path=overlay)
    elif DEFAULT_CONFIG_PATH.exists():
        config = load_run_config(DEFAULT_CONFIG_PATH, overlay_path=overlay)
    else:
        config = RunConfig()
    return apply_overrides(
        config,
        sink_uri=args.uri,
        table=args.table,
        mode=args.mode,
        country=args.country,
        batch_size=args.batch_size,
        passes=args.passes,
    )


def fetch_input(url: str, data_dir: Path) -> str:
    target = data_dir / "downloads" / download_filename(url, "extract.osm.bz2")
    with HttpClient() as client:
        client.download(url, target)
    return str(target)


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    data_dir = Path(args.data_dir)
    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)

    try:
        config = resolve_config(args)
        input_path = args.input
        if args.url:
            input_path = fetch_input(args.url, data_dir)
            log_event(logger, "extract downloaded", run_id=run_id, stage="download", event="STAGE_END", status="ok")
        country = require_country(config, input_path)

        stream = open_input(input_path)
        try:
            result = run_pipeline(stream, config, country=country, run_id=run_id, logger=logger)
        finally:
            if input_path != "-":
                stream.close()
    except PipelineError as exc:
        log_event(
            logger,
            str(exc),
            run_id=run_id,
            stage="run",
            event="RUN_FAIL",
            status="error",
            error_code=exc.error_code,
            offset=getattr(exc, "offset", None),
            entity=getattr(exc, "entity", None),
        )
        write_failure_report(
            data_dir,
            run_id,
            error_code=exc.error_code,
            message=str(exc),
            offset=getattr(exc, "offset", None),
            entity=getattr(exc, "entity", None),
        )
        return EXIT_HARD_FAIL

    write_run_report(data_dir, result, input_path=input_path)
    if result.status == "partial":
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except OSError as exc:
        print(f"osm-postcodes: {exc}", file=sys.stderr)
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())

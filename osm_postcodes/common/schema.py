"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

import re

from osm_postcodes.common.constants import RUN_MODES
from osm_postcodes.common.errors import ConfigError

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_int(value: object, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive integer, got {value!r}")


def validate_run_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    if not isinstance(cfg, dict):
        raise ConfigError("run config must be a mapping")

    top_required = {"mode", "sink", "batch_size", "boundaries"}
    top_known = top_required | {"country", "queue_size", "chunk_size", "passes"}
    _assert_required_keys(cfg, top_required, "run config")
    _assert_no_unknown_keys(cfg, top_known, "run config", allow_unknown)

    if cfg["mode"] not in RUN_MODES:
        raise ConfigError(f"mode must be one of {', '.join(RUN_MODES)}, got {cfg['mode']!r}")

    _assert_required_keys(cfg["sink"], {"uri", "table"}, "sink")
    _assert_no_unknown_keys(cfg["sink"], {"uri", "table"}, "sink", allow_unknown)
    if not _IDENTIFIER_RE.fullmatch(str(cfg["sink"]["table"])):
        raise ConfigError(f"sink.table must be a plain identifier, got {cfg['sink']['table']!r}")

    _assert_positive_int(cfg["batch_size"], "batch_size")
    for key in ("queue_size", "chunk_size"):
        if key in cfg:
            _assert_positive_int(cfg[key], key)
    if cfg.get("passes", 1) not in (1, 2):
        raise ConfigError(f"passes must be 1 or 2, got {cfg.get('passes')!r}")

    country = cfg.get("country")
    if country is not None and (not isinstance(country, str) or not country.strip()):
        raise ConfigError("country must be a non-empty string when set")

    _assert_required_keys(cfg["boundaries"], {"province_levels"}, "boundaries")
    levels = cfg["boundaries"]["province_levels"]
    if not isinstance(levels, list) or not levels:
        raise ConfigError("boundaries.province_levels must be a non-empty list")
    for level in levels:
        _assert_positive_int(level, "boundaries.province_levels[]")

    return cfg

"""Configuration loading and validation."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from osm_postcodes.common.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_PROVINCE_LEVELS,
    DEFAULT_QUEUE_SIZE,
    DEFAULT_SINK_URI,
    DEFAULT_TABLE,
)
from osm_postcodes.common.errors import ConfigError
from osm_postcodes.common.fs import read_yaml
from osm_postcodes.common.schema import validate_run_config

_COUNTRY_PREFIX_RE = re.compile(r"^([a-z]{2})(?:[-_.]|$)", re.IGNORECASE)


@dataclass(frozen=True)
class RunConfig:
    country: str | None = None
    mode: str = "fresh"
    sink_uri: str = DEFAULT_SINK_URI
    table: str = DEFAULT_TABLE
    batch_size: int = DEFAULT_BATCH_SIZE
    queue_size: int = DEFAULT_QUEUE_SIZE
    chunk_size: int = DEFAULT_CHUNK_SIZE
    passes: int = 1
    province_levels: tuple[int, ...] = DEFAULT_PROVINCE_LEVELS

def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    return _deep_merge(base, overlay)


def _from_mapping(cfg: dict) -> RunConfig:
    return RunConfig(
        country=cfg.get("country"),
        mode=cfg["mode"],
        sink_uri=cfg["sink"]["uri"],
        table=cfg["sink"]["table"],
        batch_size=cfg["batch_size"],
        queue_size=cfg.get("queue_size", DEFAULT_QUEUE_SIZE),
        chunk_size=cfg.get("chunk_size", DEFAULT_CHUNK_SIZE),
        passes=cfg.get("passes", 1),
        province_levels=tuple(cfg["boundaries"]["province_levels"]),
    )


def load_run_config(
    path: Path,
    *,
    allow_unknown: bool = False,
    overlay_path: Path | None = None,
) -> RunConfig:
    if not path.exists():
        raise ConfigError(f"Run config not found: {path}")
    cfg = _load_yaml_with_overlay(path, overlay_path)
    return _from_mapping(validate_run_config(cfg, allow_unknown=allow_unknown))


def apply_overrides(config: RunConfig, **overrides: Any) -> RunConfig:
    """Return ``config`` with every non-None override applied and re-validated."""
    changes = {key: value for key, value in overrides.items() if value is not None}
    if not changes:
        return config
    updated = replace(config, **changes)
    validate_run_config(
        {
            "country": updated.country,
            "mode": updated.mode,
            "sink": {"uri": updated.sink_uri, "table": updated.table},
            "batch_size": updated.batch_size,
            "queue_size": updated.queue_size,
            "chunk_size": updated.chunk_size,
            "passes": updated.passes,
            "boundaries": {"province_levels": list(updated.province_levels)},
        }
    )
    return updated


def country_from_filename(path: str) -> str | None:
    """``nl-latest.osm.bz2`` -> ``NL``. Longer names are not guessed."""
    match = _COUNTRY_PREFIX_RE.match(Path(path).name)
    if match is None:
        return None
    return match.group(1).upper()


def require_country(config: RunConfig, input_path: str | None) -> str:
    if config.country:
        return config.country.strip().upper()
    if input_path and input_path != "-":
        derived = country_from_filename(input_path)
        if derived:
            return derived
    raise ConfigError("No country configured and none derivable from the input file name")

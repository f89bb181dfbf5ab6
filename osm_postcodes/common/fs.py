"""Filesystem helpers."""

from __future__ import annotations

import bz2
import gzip
import json
import sys
from pathlib import Path
from typing import BinaryIO


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_yaml(path: Path):
    import yaml

    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def write_json(path: Path, payload) -> None:
    ensure_dir(path.parent)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
        f.write("\n")


def open_input(path: str) -> BinaryIO:
    """Open an OSM XML input as a decoded byte stream. ``-`` reads stdin."""
    if path == "-":
        return sys.stdin.buffer
    suffix = Path(path).suffix.lower()
    if suffix == ".bz2":
        return bz2.open(path, "rb")
    if suffix in {".gz", ".gzip"}:
        return gzip.open(path, "rb")
    return open(path, "rb")

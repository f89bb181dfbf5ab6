"""Shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

FIXTURES = Path(__file__).parent / "fixtures" / "osm"


@pytest.fixture()
def tilburg_bytes() -> bytes:
    return (FIXTURES / "tilburg.osm").read_bytes()

from pathlib import Path

import pytest

from osm_postcodes.common.config_loader import (
    RunConfig,
    apply_overrides,
    country_from_filename,
    load_run_config,
    require_country,
)
from osm_postcodes.common.errors import ConfigError

BASE = """mode: fresh
sink:
  uri: sqlite://output.db
  table: postcodes
batch_size: 5000
boundaries:
  province_levels: [4]
"""


def test_load_run_config_from_repo_config_dir():
    config = load_run_config(Path("config") / "run.yml")
    assert config.sink_uri == "sqlite://output.db"
    assert config.table == "postcodes"
    assert config.province_levels == (4,)
    assert config.passes == 1
    assert config.mode == "fresh"


def test_load_run_config_applies_overlay_values(tmp_path: Path):
    base = tmp_path / "run.yml"
    overlay = tmp_path / "overlay.yml"
    base.write_text(BASE, encoding="utf-8")
    overlay.write_text(
        """mode: append
sink:
  table: nl_postcodes
boundaries:
  province_levels: [4, 5]
""",
        encoding="utf-8",
    )

    config = load_run_config(base, overlay_path=overlay)

    assert config.mode == "append"
    assert config.sink_uri == "sqlite://output.db"
    assert config.table == "nl_postcodes"
    assert config.province_levels == (4, 5)


def test_load_run_config_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_run_config(tmp_path / "absent.yml")


def test_apply_overrides_ignores_none_and_revalidates():
    config = apply_overrides(RunConfig(), sink_uri=None, mode="append", batch_size=10)
    assert config.mode == "append"
    assert config.batch_size == 10
    assert config.sink_uri == RunConfig().sink_uri

    with pytest.raises(ConfigError):
        apply_overrides(RunConfig(), batch_size=0)


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("nl-latest.osm.bz2", "NL"),
        ("/data/be_2024.osm", "BE"),
        ("de.osm", "DE"),
        ("netherlands-latest.osm.bz2", None),
        ("-", None),
    ],
)
def test_country_from_filename(path, expected):
    assert country_from_filename(path) == expected


def test_require_country_prefers_configured_value():
    assert require_country(RunConfig(country=" nl "), "be-latest.osm") == "NL"
    assert require_country(RunConfig(), "be-latest.osm") == "BE"
    with pytest.raises(ConfigError):
        require_country(RunConfig(), "-")

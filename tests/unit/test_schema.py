import copy

import pytest

from osm_postcodes.common.errors import ConfigError
from osm_postcodes.common.schema import validate_run_config

VALID = {
    "mode": "fresh",
    "sink": {"uri": "sqlite://output.db", "table": "postcodes"},
    "batch_size": 5000,
    "boundaries": {"province_levels": [4]},
}


def _with(**changes):
    cfg = copy.deepcopy(VALID)
    cfg.update(changes)
    return cfg


def test_valid_run_config_passes():
    assert validate_run_config(copy.deepcopy(VALID)) == VALID


def test_missing_key_is_reported():
    cfg = copy.deepcopy(VALID)
    del cfg["sink"]
    with pytest.raises(ConfigError, match="sink"):
        validate_run_config(cfg)


def test_unknown_key_rejected_unless_allowed():
    cfg = _with(extra=True)
    with pytest.raises(ConfigError, match="Unknown keys"):
        validate_run_config(cfg)
    assert validate_run_config(cfg, allow_unknown=True)["extra"] is True


@pytest.mark.parametrize(
    "changes",
    [
        {"mode": "merge"},
        {"batch_size": 0},
        {"batch_size": True},
        {"passes": 3},
        {"country": ""},
        {"sink": {"uri": "sqlite://x.db", "table": "drop table;"}},
        {"sink": {"uri": "sqlite://x.db", "table": "2024_postcodes"}},
        {"sink": {"uri": "sqlite://x.db", "table": "postcodes_é"}},
        {"sink": {"uri": "sqlite://x.db", "table": "postcodes\n"}},
        {"boundaries": {"province_levels": []}},
        {"boundaries": {"province_levels": [0]}},
    ],
)
def test_invalid_values_rejected(changes):
    with pytest.raises(ConfigError):
        validate_run_config(_with(**changes))

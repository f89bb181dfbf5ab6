from osm_postcodes.cli import parse_args, resolve_config


def test_parse_args_defaults():
    args = parse_args(["nl-latest.osm.bz2"])
    assert args.input == "nl-latest.osm.bz2"
    assert args.mode is None
    assert args.passes is None
    assert args.overlay_config is None
    assert args.data_dir == "./data"


def test_parse_args_mode_flags():
    assert parse_args(["x.osm", "--append"]).mode == "append"
    assert parse_args(["x.osm", "--fresh"]).mode == "fresh"


def test_url_stands_in_for_input():
    args = parse_args(["--url", "https://download.example.com/nl-latest.osm.bz2"])
    assert args.input is None
    assert args.url.endswith("nl-latest.osm.bz2")


def test_resolve_config_applies_flags_over_repo_config():
    args = parse_args(
        ["x.osm", "--uri", "sqlite://:memory:", "--table", "nl_postcodes", "--append", "--batch-size", "7", "--passes", "2"]
    )
    config = resolve_config(args)
    assert config.sink_uri == "sqlite://:memory:"
    assert config.table == "nl_postcodes"
    assert config.mode == "append"
    assert config.batch_size == 7
    assert config.passes == 2
    assert config.province_levels == (4,)

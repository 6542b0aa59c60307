import pytest

from sitescore.config import Config, ScoringPolicy
from sitescore.errors import ConfigError


def test_defaults_are_valid():
    cfg = Config().validate()

    assert cfg.policy is ScoringPolicy.MAX_PAIRWISE
    assert cfg.index_method == "doubling"
    assert cfg.sites == ()


def test_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "concurrency: 3\n"
        "timeout: 7.5\n"
        "policy: Overlap-Ratio\n"
        "allowed_statuses: [404]\n"
        "sites:\n"
        "  - https://example.com/\n"
        "  - https://example.org/\n",
        encoding="utf-8",
    )

    cfg = Config.from_yaml(path)

    assert cfg.concurrency == 3
    assert cfg.timeout == 7.5
    assert cfg.policy is ScoringPolicy.OVERLAP_RATIO
    assert cfg.allowed_statuses == (404,)
    assert cfg.sites == ("https://example.com/", "https://example.org/")


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")

    assert Config.from_yaml(path) == Config()


@pytest.mark.parametrize(
    "data",
    [
        {"policy": "median"},
        {"concurrency": 0},
        {"timeout": 0},
        {"max_attempts": 0},
        {"min_match_length": 0},
        {"evidence_limit": -1},
        {"index_method": "skew"},
        {"output_format": "xml"},
        {"allowed_statuses": [99]},
        {"concurrency": "many"},
        {"no_such_key": 1},
        {"sites": "https://example.com/"},
        {"allowed_statuses": 404},
        {"strip_non_alnum": "false"},
        {"drop_page_chrome": 1},
    ],
)
def test_invalid_values_are_config_errors(data):
    with pytest.raises(ConfigError):
        Config.from_mapping(data)


def test_unreadable_or_malformed_files(tmp_path):
    with pytest.raises(ConfigError):
        Config.from_yaml(tmp_path / "missing.yaml")
    bad = tmp_path / "bad.yaml"
    bad.write_text("sites: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        Config.from_yaml(bad)
    listing = tmp_path / "list.yaml"
    listing.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        Config.from_yaml(listing)


def test_replace_parses_policy_and_validates():
    cfg = Config().replace(policy="mean-pairwise", concurrency=2)

    assert cfg.policy is ScoringPolicy.MEAN_PAIRWISE
    assert cfg.concurrency == 2
    with pytest.raises(ConfigError):
        Config().replace(concurrency=-1)


def test_yaml_booleans_and_null_lists(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("strip_non_alnum: true\ndrop_page_chrome: false\nsites:\nallowed_statuses: null\n", encoding="utf-8")

    cfg = Config.from_yaml(path)

    assert cfg.strip_non_alnum is True
    assert cfg.drop_page_chrome is False
    assert cfg.sites == ()
    assert cfg.allowed_statuses == ()

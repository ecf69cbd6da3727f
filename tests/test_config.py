import json
import math

import pytest

from acsfm.errors import ConfigError
from acsfm.pipeline import TwoViewConfig, get_config, load_config


def test_defaults():
    cfg = TwoViewConfig()
    assert cfg.matching.ratio == 0.8
    assert cfg.ransac.solver == "five_point"
    assert cfg.ransac.nfa_bound == 0.0
    assert math.isinf(cfg.ransac.max_threshold)
    assert cfg.pose.max_test_points == 100


def test_dict_round_trip():
    cfg = get_config("fast")
    again = TwoViewConfig.from_dict(cfg.to_dict())
    assert again == cfg


def test_load_json(tmp_path):
    p = tmp_path / "cfg.json"
    p.write_text(json.dumps({
        "matching": {"ratio": 0.7, "feature": {"method": "orb"}},
        "ransac": {"solver": "eight_point", "max_threshold": None, "seed": 3},
        "verbose": False,
    }))
    cfg = load_config(p)
    assert cfg.matching.ratio == 0.7
    assert cfg.matching.feature.method == "orb"
    assert cfg.ransac.solver == "eight_point"
    assert math.isinf(cfg.ransac.max_threshold)
    assert cfg.ransac.seed == 3
    assert cfg.verbose is False


def test_load_yaml(tmp_path):
    p = tmp_path / "cfg.yaml"
    p.write_text("ransac:\n  max_iterations: 64\n  confidence: 0.95\n")
    cfg = load_config(p)
    assert cfg.ransac.max_iterations == 64
    assert cfg.ransac.confidence == 0.95


def test_bad_config_raises(tmp_path):
    p = tmp_path / "cfg.json"
    p.write_text(json.dumps({"ransac": {"no_such_field": 1}}))
    with pytest.raises(ConfigError):
        load_config(p)
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.json")
    with pytest.raises(ValueError):
        get_config("nope")

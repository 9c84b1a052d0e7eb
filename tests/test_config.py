"""Tests for configuration handling."""

import pytest

from limb_kinematics.config import DEFAULTS, KinematicsConfig, LimbConfig, load_config
from limb_kinematics.errors import ConfigError
from limb_kinematics.solver import DEFAULT_WEIGHTS, SolverSettings


def test_for_feet():
    config = KinematicsConfig.for_feet(["foot_0", "foot_1"], base_link="body")
    assert config.limbs == (
        LimbConfig(end_link="foot_0", base_link="body"),
        LimbConfig(end_link="foot_1", base_link="body"),
    )
    assert config.solver == SolverSettings()
    assert not config.strict_limits


def test_from_dict_defaults():
    config = KinematicsConfig.from_dict({"limbs": ["foot_0"]})
    assert config.limbs == (LimbConfig("foot_0"),)
    assert config.solver.tolerance == DEFAULTS["solver"]["tolerance"]
    assert config.solver.max_iterations == 100
    assert config.solver.epsilon == 1e-15
    assert config.solver.weights == DEFAULT_WEIGHTS


def test_from_dict_overrides():
    config = KinematicsConfig.from_dict({
        "base_link": "body",
        "limbs": ["front", {"end_link": "rear", "base_link": "hip", "name": "back"}],
        "solver": {"max_iterations": 25},
        "strict_limits": True,
    })
    assert config.limbs[0] == LimbConfig("front", "body")
    assert config.limbs[1] == LimbConfig("rear", "hip", "back")
    assert [limb.label for limb in config.limbs] == ["front", "back"]
    assert config.solver.max_iterations == 25
    assert config.solver.tolerance == 1e-5
    assert config.strict_limits


def test_from_dict_does_not_touch_defaults():
    KinematicsConfig.from_dict({"limbs": ["a"], "solver": {"tolerance": 0.5}})
    assert DEFAULTS["solver"]["tolerance"] == 1e-5
    assert DEFAULTS["limbs"] == []


@pytest.mark.parametrize("data, match", [
    (None, "At least one limb"),
    ({"limbs": []}, "At least one limb"),
    ({"limbs": ["a", "a"]}, "unique"),
    ({"limbs": [42]}, "Invalid limb entry"),
    ({"limbs": [{"name": "x"}]}, "Invalid limb entry"),
    ({"limbs": ["a"], "solver": {"gain": 2}}, "Unknown solver settings"),
    ({"limbs": ["a"], "solver": {"tolerance": "small"}}, "Invalid solver settings"),
    ({"limbs": ["a"], "solver": {"tolerance": 0.0}}, "tolerance must be positive"),
    ({"limbs": ["a"], "solver": {"max_iterations": 0}}, "max_iterations must be positive"),
    ({"limbs": ["a"], "solver": {"epsilon": -1.0}}, "epsilon"),
    ({"limbs": ["a"], "solver": {"weights": [1, 1, 1]}}, "weights"),
    ({"limbs": ["a"], "solver": 3}, "must be a mapping"),
    (["a"], "must be a mapping"),
])
def test_from_dict_errors(data, match):
    with pytest.raises(ConfigError, match=match):
        KinematicsConfig.from_dict(data)


def test_to_dict_round_trip():
    config = KinematicsConfig.for_feet(["foot_0", "foot_2"], strict_limits=True)
    assert KinematicsConfig.from_dict(config.to_dict()) == config


def test_load_config(tmp_path):
    path = tmp_path / "kinematics.yaml"
    path.write_text(
        "base_link: base_link\n"
        "limbs:\n"
        "  - foot_0\n"
        "  - {end_link: foot_1, name: middle}\n"
        "solver:\n"
        "  tolerance: 1.0e-6\n"
        "  weights: [1, 1, 1, 0, 0, 0]\n"
    )
    config = load_config(path)
    assert [limb.label for limb in config.limbs] == ["foot_0", "middle"]
    assert config.solver.tolerance == 1e-6
    assert config.solver.weights == (1.0, 1.0, 1.0, 0.0, 0.0, 0.0)


def test_load_config_errors(tmp_path):
    with pytest.raises(ConfigError, match="Failed to load"):
        load_config(tmp_path / "missing.yaml")

    broken = tmp_path / "broken.yaml"
    broken.write_text("limbs: [foot_0\n")
    with pytest.raises(ConfigError, match="Failed to load"):
        load_config(broken)

    empty = tmp_path / "empty.yaml"
    empty.write_text("")
    with pytest.raises(ConfigError, match="At least one limb"):
        load_config(empty)

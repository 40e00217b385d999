import math
from pathlib import Path

import pytest
import yaml

from markovloc.config import LocalizerConfig, load_config
from markovloc.errors import ConfigurationError
from markovloc.motion.config import MotionModelConfig

CONFIGS = Path(__file__).resolve().parents[1] / "configs"


def test_defaults():
    config = LocalizerConfig()
    assert config.num_heading_bins == 72
    assert config.update_min_a == pytest.approx(math.pi / 6)
    assert config.motion.alphas == (0.2, 0.2, 0.2, 0.2)
    assert config.sensor.max_beams == 30


def test_shipped_config_matches_defaults():
    assert load_config(CONFIGS / "default.yaml") == LocalizerConfig()


def test_nested_sections_load_from_yaml(tmp_path):
    data = {
        "angular_resolution_deg": 10.0,
        "resample_interval": 3,
        "motion": {"alpha1": 0.05, "model": "squared"},
        "sensor": {"sigma_hit": 0.1, "sensor_pose": [0.2, 0.0, 0.0]},
    }
    path = tmp_path / "run.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")

    config = load_config(path)
    assert config.num_heading_bins == 36
    assert config.resample_interval == 3
    assert config.motion.model == "squared"
    assert config.motion.alpha1 == 0.05
    assert config.motion.alpha2 == 0.2
    assert config.sensor.sensor_pose == (0.2, 0.0, 0.0)


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == LocalizerConfig()


@pytest.mark.parametrize(
    "data",
    [
        {"angular_resolution": 5.0},
        {"motion": {"alpha5": 0.1}},
        {"sensor": {"sigma": 0.1}},
    ],
)
def test_unknown_keys_are_rejected(data):
    with pytest.raises(ConfigurationError, match="Unknown"):
        LocalizerConfig.from_dict(data)


def test_top_level_must_be_a_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(path)


@pytest.mark.parametrize(
    "overrides",
    [
        {"angular_resolution_deg": 7.0},
        {"floor_weight": 0.0},
        {"cloud_size": 0},
        {"resample_interval": 0},
        {"batch_size": 0},
        {"update_min_d": -1.0},
    ],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ConfigurationError):
        LocalizerConfig(**overrides)


def test_motion_config_validation():
    with pytest.raises(ConfigurationError):
        MotionModelConfig(alpha3=-0.1)
    with pytest.raises(ConfigurationError):
        MotionModelConfig(model="cubic")
    assert isinstance(ConfigurationError("x"), ValueError)

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml

from markovloc.constants import DEFAULT_BATCH_SIZE, DEFAULT_SENSOR_BATCH_SIZE
from markovloc.errors import ConfigurationError
from markovloc.motion.config import MotionModelConfig
from markovloc.sensor.config import LikelihoodFieldConfig
from markovloc.utils.spatial.angles import heading_bin_count


@dataclass(frozen=True)
class LocalizerConfig:
    """Configuration of the grid localizer and its update cycle.

    Prefer overriding via a run config (YAML) rather than editing code.
    """

    # --- Grid ---
    angular_resolution_deg: float = field(default=5.0, metadata={"help": "Heading bin width in degrees."})
    floor_weight: Optional[float] = field(
        default=None,
        metadata={"help": "Minimum sample weight; None uses 1 / (samples * 1024)."},
    )

    # --- Cycle ---
    motion_update: bool = field(default=True, metadata={"help": "Apply the motion update on odometry."})
    update_min_d: float = field(default=0.2, metadata={"help": "Translation (m) that triggers an update."})
    update_min_a: float = field(default=math.pi / 6.0, metadata={"help": "Rotation (rad) that triggers an update."})

    # --- Resampling ---
    cloud_size: int = field(default=10000, metadata={"help": "Particles in the resampled continuous cloud."})
    resample_interval: int = field(default=2, metadata={"help": "Resample every N successful cycles."})

    # --- Scheduling ---
    num_workers: Optional[int] = field(
        default=None,
        metadata={"help": "Workers per phase; None uses the hardware parallelism (8 if unknown)."},
    )
    batch_size: int = field(default=DEFAULT_BATCH_SIZE, metadata={"help": "Samples per motion-update batch."})
    sensor_batch_size: int = field(
        default=DEFAULT_SENSOR_BATCH_SIZE,
        metadata={"help": "Samples per sensor-update batch."},
    )

    # --- Models ---
    motion: MotionModelConfig = field(default_factory=MotionModelConfig)
    sensor: LikelihoodFieldConfig = field(default_factory=LikelihoodFieldConfig)

    def __post_init__(self) -> None:
        heading_bin_count(self.angular_resolution_deg)
        if self.floor_weight is not None and not self.floor_weight > 0.0:
            raise ConfigurationError(f"floor_weight must be > 0, got {self.floor_weight}")
        if self.cloud_size < 1:
            raise ConfigurationError(f"cloud_size must be >= 1, got {self.cloud_size}")
        if self.resample_interval < 1:
            raise ConfigurationError(f"resample_interval must be >= 1, got {self.resample_interval}")
        if self.update_min_d < 0.0 or self.update_min_a < 0.0:
            raise ConfigurationError("update_min_d and update_min_a must be >= 0.")
        if self.batch_size < 1 or self.sensor_batch_size < 1:
            raise ConfigurationError("batch sizes must be >= 1.")

    @property
    def num_heading_bins(self) -> int:
        return heading_bin_count(self.angular_resolution_deg)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "LocalizerConfig":
        """Build a config from a (possibly nested) mapping, rejecting unknown keys."""
        data = dict(data or {})
        motion = _build(MotionModelConfig, data.pop("motion", None))
        sensor_data = dict(data.pop("sensor", None) or {})
        if "sensor_pose" in sensor_data:
            sensor_data["sensor_pose"] = tuple(sensor_data["sensor_pose"])
        sensor = _build(LikelihoodFieldConfig, sensor_data)
        return _build(cls, data, motion=motion, sensor=sensor)


def _build(cls, data: Optional[Mapping[str, Any]], **extra):
    data = dict(data or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown {cls.__name__} option(s): {', '.join(unknown)}")
    data.update(extra)
    return cls(**data)


def load_config(path: Union[str, Path]) -> LocalizerConfig:
    """Load a LocalizerConfig from a YAML run config."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is not None and not isinstance(data, Mapping):
        raise ConfigurationError(f"{path}: top level of a run config must be a mapping.")
    return LocalizerConfig.from_dict(data)

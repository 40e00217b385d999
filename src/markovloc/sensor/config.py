from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from markovloc.errors import ConfigurationError
from markovloc.types import Pose2D


@dataclass(frozen=True)
class LikelihoodFieldConfig:
    """Configuration for the likelihood-field range model.

    Prefer overriding via a run config (YAML) rather than editing code.
    """

    # --- Mixture weights ---
    sigma_hit: float = field(default=0.2, metadata={"help": "Std dev (m) of the Gaussian hit term."})
    z_hit: float = field(default=0.95, metadata={"help": "Weight of the Gaussian hit term."})
    z_rand: float = field(default=0.05, metadata={"help": "Weight of the uniform random-measurement term."})

    # --- Beam selection ---
    max_beams: int = field(default=30, metadata={"help": "Maximum number of beams evaluated per scan."})
    range_max: Optional[float] = field(
        default=None,
        metadata={"help": "Override of the scan's maximum range (m); None uses the scan value."},
    )

    # --- Geometry ---
    sensor_pose: Pose2D = field(
        default=(0.0, 0.0, 0.0),
        metadata={"help": "Sensor mounting pose (x, y, theta) in the robot frame."},
    )

    def __post_init__(self) -> None:
        if not self.sigma_hit > 0.0:
            raise ConfigurationError(f"sigma_hit must be > 0, got {self.sigma_hit}")
        if self.z_hit < 0.0 or self.z_rand < 0.0:
            raise ConfigurationError("z_hit and z_rand must be >= 0.")
        if self.max_beams < 2:
            raise ConfigurationError(f"max_beams must be >= 2, got {self.max_beams}")
        if self.range_max is not None and not self.range_max > 0.0:
            raise ConfigurationError(f"range_max must be > 0, got {self.range_max}")
        if len(self.sensor_pose) != 3:
            raise ConfigurationError("sensor_pose must be (x, y, theta).")
        object.__setattr__(self, "sensor_pose", tuple(float(v) for v in self.sensor_pose))

    def effective_range_max(self, scan_range_max: float) -> float:
        if self.range_max is None:
            return float(scan_range_max)
        return min(float(self.range_max), float(scan_range_max))

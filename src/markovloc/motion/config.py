from __future__ import annotations

from dataclasses import dataclass, field

from markovloc.constants import MOTION_MODELS
from markovloc.errors import ConfigurationError


@dataclass(frozen=True)
class MotionModelConfig:
    """Odometry motion-noise configuration for the transition kernel.

    Prefer overriding via a run config (YAML) rather than editing code.
    """

    # --- Noise coefficients ---
    alpha1: float = field(default=0.2, metadata={"help": "Rotation noise from rotation."})
    alpha2: float = field(default=0.2, metadata={"help": "Rotation noise from translation."})
    alpha3: float = field(default=0.2, metadata={"help": "Translation noise from translation."})
    alpha4: float = field(default=0.2, metadata={"help": "Translation noise from rotation."})

    # --- Kernel construction ---
    model: str = field(
        default="original",
        metadata={"help": "Motion likelihood variant: 'original' (absolute) or 'squared'."},
    )
    radius_multiplier: float = field(
        default=4.0,
        metadata={"help": "Neighbor window radius is trans * (1 + radius_multiplier * alpha3)."},
    )
    quantization_variance: bool = field(
        default=True,
        metadata={"help": "Add the grid quantization variance to every motion-noise variance."},
    )

    def __post_init__(self) -> None:
        for name in ("alpha1", "alpha2", "alpha3", "alpha4"):
            if getattr(self, name) < 0.0:
                raise ConfigurationError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.model not in MOTION_MODELS:
            raise ConfigurationError(f"model must be one of {sorted(MOTION_MODELS)}, got {self.model!r}")
        if self.radius_multiplier < 0.0:
            raise ConfigurationError(f"radius_multiplier must be >= 0, got {self.radius_multiplier}")

    @property
    def alphas(self):
        return (self.alpha1, self.alpha2, self.alpha3, self.alpha4)

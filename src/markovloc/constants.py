"""Global immutable constants for grid-based Markov localization.

These values are intended to be stable across runs. Runtime-configurable
values should live in YAML configs under configs/ or in dataclass configs.
"""

from __future__ import annotations

import math
from typing import Final, FrozenSet

# --- Occupancy cell states ---
CELL_FREE: Final[int] = -1
CELL_UNKNOWN: Final[int] = 0
CELL_OCCUPIED: Final[int] = 1

# --- Odometry decomposition ---
# Below this translation (meters) the first rotation is defined as zero.
MIN_TRANSLATION: Final[float] = 0.01

# --- Belief grid ---
FLOOR_WEIGHT_DIVISOR: Final[int] = 1024
# Normalization divisors at or below this value count as a collapse.
MIN_TOTAL_WEIGHT: Final[float] = 1e-300
HEADING_ORIGIN: Final[float] = -math.pi

# --- Motion model ---
MOTION_MODELS: Final[FrozenSet[str]] = frozenset({"original", "squared"})
# Residuals beyond this many standard deviations score zero in the squared model.
SQUARED_MODEL_SIGMA_CUTOFF: Final[float] = 4.0

# --- Scheduling ---
DEFAULT_NUM_WORKERS: Final[int] = 8
DEFAULT_BATCH_SIZE: Final[int] = 64
DEFAULT_SENSOR_BATCH_SIZE: Final[int] = 1024
# Upper bound on float64 elements in one motion-update worker scratch buffer.
MOTION_SCRATCH_ELEMENTS: Final[int] = 1 << 18

# --- Map defaults ---
DEFAULT_MAX_OBSTACLE_DISTANCE: Final[float] = 2.0  # meters
DEFAULT_FREE_THRESH: Final[float] = 0.196
DEFAULT_OCCUPIED_THRESH: Final[float] = 0.65

__all__ = [
    "CELL_FREE",
    "CELL_OCCUPIED",
    "CELL_UNKNOWN",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_SENSOR_BATCH_SIZE",
    "DEFAULT_FREE_THRESH",
    "DEFAULT_MAX_OBSTACLE_DISTANCE",
    "DEFAULT_NUM_WORKERS",
    "DEFAULT_OCCUPIED_THRESH",
    "FLOOR_WEIGHT_DIVISOR",
    "HEADING_ORIGIN",
    "MIN_TOTAL_WEIGHT",
    "MIN_TRANSLATION",
    "MOTION_MODELS",
    "MOTION_SCRATCH_ELEMENTS",
    "SQUARED_MODEL_SIGMA_CUTOFF",
]

from __future__ import annotations

import math
from typing import Union

import numpy as np

from markovloc.constants import HEADING_ORIGIN
from markovloc.errors import ConfigurationError
from markovloc.types import ArrayLike, PoseLike, ScalarLike


def normalize_angle(angle: ArrayLike) -> Union[float, np.ndarray]:
    """
    Wrap an angle (radians) to the range (-pi, pi].

    Accepts scalars or numpy arrays; scalars come back as float.
    """
    wrapped = np.arctan2(np.sin(angle), np.cos(angle))
    return float(wrapped) if np.ndim(wrapped) == 0 else wrapped


def angle_diff(a: ArrayLike, b: ArrayLike) -> Union[float, np.ndarray]:
    """Signed smallest difference `a - b` between two angles, in (-pi, pi]."""
    return normalize_angle(np.subtract(a, b))


def heading_bin_count(angular_resolution_deg: ScalarLike) -> int:
    """
    Number of heading bins for an angular resolution in degrees.

    Raises:
        ConfigurationError: If the resolution is not positive or does not
            divide 360 degrees evenly.
    """
    res = float(angular_resolution_deg)
    if not res > 0.0 or res > 360.0:
        raise ConfigurationError(f"angular resolution must be in (0, 360], got {res}")
    count = int(round(360.0 / res))
    if not math.isclose(count * res, 360.0, abs_tol=1e-9):
        raise ConfigurationError(f"angular resolution {res} does not divide 360 degrees")
    return count


def bin_to_angle(heading_bin: ArrayLike, num_bins: int) -> Union[float, np.ndarray]:
    """
    Heading angle (radians) of a bin; bins cover [-pi, pi) in order.
    """
    resolution = 2.0 * math.pi / num_bins
    angle = HEADING_ORIGIN + np.asarray(heading_bin, dtype=np.float64) * resolution
    return float(angle) if np.ndim(angle) == 0 else angle


def compose_pose(offset: PoseLike, poses: np.ndarray) -> np.ndarray:
    """
    Apply a robot-frame offset (e.g. a sensor mounting pose) to world poses.

    Args:
        offset: Offset `(x, y, theta)` expressed in the robot frame.
        poses: World poses of shape (N, 3) or (3,).

    Returns:
        World poses of the offset frame, same shape as `poses`.
    """
    off = np.asarray(offset, dtype=np.float64)
    if off.shape != (3,):
        raise ValueError(f"offset must be length 3, got shape {off.shape}")
    p = np.asarray(poses, dtype=np.float64)
    single = p.ndim == 1
    p = np.atleast_2d(p)
    if p.shape[1] != 3:
        raise ValueError(f"poses must have shape (N, 3), got {p.shape}")

    cos_t = np.cos(p[:, 2])
    sin_t = np.sin(p[:, 2])
    out = np.empty_like(p)
    out[:, 0] = p[:, 0] + off[0] * cos_t - off[1] * sin_t
    out[:, 1] = p[:, 1] + off[0] * sin_t + off[1] * cos_t
    out[:, 2] = normalize_angle(p[:, 2] + off[2])
    return out[0] if single else out

"""Odometry decomposition and motion likelihoods (rotate-translate-rotate)."""

from __future__ import annotations

import math
from typing import Callable, Dict, NamedTuple, Sequence, Tuple

import numpy as np

from markovloc.constants import MIN_TRANSLATION, SQUARED_MODEL_SIGMA_CUTOFF
from markovloc.types import ArrayLike, PoseLike
from markovloc.utils.spatial.angles import angle_diff


class OdometryDecomposition(NamedTuple):
    rot1: float
    trans: float
    rot2: float


def decompose_odometry(delta: PoseLike, prior_heading: float = 0.0) -> OdometryDecomposition:
    """
    Split an odometry delta into (rot1, trans, rot2).

    Args:
        delta: Pose change `(dx, dy, dtheta)` in the odometry frame.
        prior_heading: Odometry heading before the move (radians).

    Returns:
        The decomposition. `rot1` is zero when the translation is below
        MIN_TRANSLATION, since the bearing of a near-zero move is noise.
    """
    d = np.asarray(delta, dtype=np.float64)
    if d.shape != (3,):
        raise ValueError(f"delta must be length 3, got shape {d.shape}")
    trans = math.hypot(d[0], d[1])
    if trans < MIN_TRANSLATION:
        rot1 = 0.0
    else:
        rot1 = float(angle_diff(math.atan2(d[1], d[0]), prior_heading))
    rot2 = float(angle_diff(d[2], rot1))
    return OdometryDecomposition(rot1=rot1, trans=trans, rot2=rot2)


def relative_motion(
    old_x: ArrayLike,
    old_y: ArrayLike,
    old_a: ArrayLike,
    new_x: ArrayLike,
    new_y: ArrayLike,
    new_a: ArrayLike,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Vectorized decomposition of the move from `old` to `new` poses."""
    dx = np.subtract(new_x, old_x)
    dy = np.subtract(new_y, old_y)
    da = angle_diff(new_a, old_a)
    trans = np.hypot(dx, dy)
    rot1 = np.where(trans < MIN_TRANSLATION, 0.0, angle_diff(np.arctan2(dy, dx), old_a))
    rot2 = angle_diff(da, rot1)
    return np.asarray(rot1, dtype=np.float64), np.asarray(trans, dtype=np.float64), np.asarray(rot2, dtype=np.float64)


def log_normal_density(a: ArrayLike, variance: ArrayLike) -> np.ndarray:
    """
    Log of the zero-mean Gaussian density of `a` for a given variance.

    Working in log space keeps far tails finite where the density itself
    would underflow to 0. A zero variance is treated as a point mass: log
    density 0 at `a == 0` and -inf elsewhere.
    """
    a = np.asarray(a, dtype=np.float64)
    variance = np.asarray(variance, dtype=np.float64)
    positive = variance > 0.0
    safe_var = np.where(positive, variance, 1.0)
    log_density = -(a * a) / (2.0 * safe_var) - 0.5 * np.log(2.0 * math.pi * safe_var)
    return np.where(positive, log_density, np.where(a == 0.0, 0.0, -np.inf))


def original_motion_log_likelihood(
    observed: OdometryDecomposition,
    rot1_hat: np.ndarray,
    trans_hat: np.ndarray,
    rot2_hat: np.ndarray,
    alphas: Sequence[float],
    *,
    rotation_variance: float = 0.0,
    translation_variance: float = 0.0,
) -> np.ndarray:
    """Odometry motion model with variances linear in the motion magnitudes (log scale)."""
    a1, a2, a3, a4 = alphas
    abs_rot1 = np.abs(rot1_hat)
    abs_rot2 = np.abs(rot2_hat)

    var_rot1 = a1 * abs_rot1 + a2 * trans_hat + rotation_variance
    var_trans = a3 * trans_hat + a4 * abs_rot1 + a4 * abs_rot2 + translation_variance
    var_rot2 = a1 * abs_rot2 + a2 * trans_hat + rotation_variance

    return (
        log_normal_density(angle_diff(observed.rot1, rot1_hat), var_rot1)
        + log_normal_density(observed.trans - trans_hat, var_trans)
        + log_normal_density(angle_diff(observed.rot2, rot2_hat), var_rot2)
    )


def squared_motion_log_likelihood(
    observed: OdometryDecomposition,
    rot1_hat: np.ndarray,
    trans_hat: np.ndarray,
    rot2_hat: np.ndarray,
    alphas: Sequence[float],
    *,
    rotation_variance: float = 0.0,
    translation_variance: float = 0.0,
) -> np.ndarray:
    """
    Odometry motion model with variances quadratic in the motion magnitudes (log scale).

    Residuals beyond SQUARED_MODEL_SIGMA_CUTOFF standard deviations score -inf.
    """
    a1, a2, a3, a4 = alphas
    rot1_sq = rot1_hat * rot1_hat
    rot2_sq = rot2_hat * rot2_hat
    trans_sq = trans_hat * trans_hat

    res_rot1 = angle_diff(observed.rot1, rot1_hat)
    res_trans = observed.trans - trans_hat
    res_rot2 = angle_diff(observed.rot2, rot2_hat)
    var_rot1 = a1 * rot1_sq + a2 * trans_sq + rotation_variance
    var_trans = a3 * trans_sq + a4 * rot1_sq + a4 * rot2_sq + translation_variance
    var_rot2 = a1 * rot2_sq + a2 * trans_sq + rotation_variance

    cutoff_sq = SQUARED_MODEL_SIGMA_CUTOFF * SQUARED_MODEL_SIGMA_CUTOFF
    outside = np.zeros(np.shape(res_trans), dtype=bool)
    for res, var in ((res_rot1, var_rot1), (res_trans, var_trans), (res_rot2, var_rot2)):
        outside |= (var > 0.0) & (res * res >= cutoff_sq * var)

    log_p = (
        log_normal_density(res_rot1, var_rot1)
        + log_normal_density(res_trans, var_trans)
        + log_normal_density(res_rot2, var_rot2)
    )
    return np.where(outside, -np.inf, log_p)


MotionLogLikelihood = Callable[..., np.ndarray]

MOTION_LOG_LIKELIHOODS: Dict[str, MotionLogLikelihood] = {
    "original": original_motion_log_likelihood,
    "squared": squared_motion_log_likelihood,
}

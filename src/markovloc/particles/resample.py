from __future__ import annotations

from typing import Optional

import numpy as np

from markovloc.particles.cloud import ParticleCloud


def low_variance_resample(
    poses: np.ndarray,
    weights: np.ndarray,
    target_size: int,
    rng: Optional[np.random.Generator] = None,
) -> ParticleCloud:
    """
    Systematic (low-variance) resampling into a fixed-size particle cloud.

    One offset `r` is drawn from `[0, 1/N)`; draw `m` selects the first
    source sample whose cumulative weight exceeds `(r + m/N) * total`.
    Should floating-point drift carry a draw past the end of the source
    set, the walk restarts from the first sample instead of reading out of
    bounds.

    Args:
        poses: Source poses, shape (S, 3).
        weights: Source weights, shape (S,); need not be normalized.
        target_size: Number of output particles N.
        rng: Random generator; a fresh default generator when None.

    Returns:
        ParticleCloud of N poses with uniform weights summing to 1.
    """
    poses = np.asarray(poses, dtype=np.float64)
    weights = np.asarray(weights, dtype=np.float64).reshape(-1)
    if poses.shape != (weights.shape[0], 3):
        raise ValueError(f"poses must have shape ({weights.shape[0]}, 3), got {poses.shape}")
    if target_size < 1:
        raise ValueError(f"target_size must be >= 1, got {target_size}")
    if weights.size == 0:
        raise ValueError("Cannot resample from an empty set.")

    cumulative = np.cumsum(weights)
    total = float(cumulative[-1])
    if not np.isfinite(total) or total <= 0.0:
        raise ValueError(f"Cannot resample from a set with total weight {total!r}.")

    rng = rng if rng is not None else np.random.default_rng()
    count_inv = 1.0 / target_size
    r = rng.uniform(0.0, count_inv)
    targets = (r + np.arange(target_size, dtype=np.float64) * count_inv) * total

    picks = np.searchsorted(cumulative, targets, side="right")
    overflow = picks >= weights.size
    if overflow.any():
        # Restart the comb from the first source sample for the leftover draws.
        restart = (r + np.arange(int(overflow.sum()), dtype=np.float64) * count_inv) * total
        picks[overflow] = np.minimum(np.searchsorted(cumulative, restart, side="right"), weights.size - 1)

    cloud = ParticleCloud(poses=poses[picks].copy(), weights=np.full(target_size, count_inv))
    cloud.normalize()
    return cloud

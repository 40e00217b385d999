"""Likelihood-field range model applied to weighted pose samples."""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from markovloc.belief.normalize import normalize_weights
from markovloc.constants import DEFAULT_SENSOR_BATCH_SIZE
from markovloc.errors import ErrorKind, PhaseResult
from markovloc.map.occupancy import OccupancyMap
from markovloc.particles.cloud import ParticleCloud
from markovloc.sensor.config import LikelihoodFieldConfig
from markovloc.sensor.scan import RangeScan, select_beams
from markovloc.utils.parallel import run_partitioned
from markovloc.utils.spatial.angles import compose_pose


def beam_probability(distance: np.ndarray, config: LikelihoodFieldConfig, range_max: float) -> np.ndarray:
    """
    Per-beam probability `z_hit * exp(-d^2 / (2 sigma^2)) + z_rand / range_max`.

    The Gaussian term carries no 1/(sqrt(2 pi) sigma) factor, so with
    `z_hit + z_rand / range_max <= 1` the result lies in [0, 1].
    """
    d = np.asarray(distance, dtype=np.float64)
    denom = 2.0 * config.sigma_hit * config.sigma_hit
    return config.z_hit * np.exp(-(d * d) / denom) + config.z_rand / range_max


def beam_log_likelihoods(
    poses: np.ndarray,
    ranges: np.ndarray,
    bearings: np.ndarray,
    occupancy_map: OccupancyMap,
    config: LikelihoodFieldConfig,
    range_max: float,
) -> Tuple[np.ndarray, int]:
    """
    Sum of per-beam log probabilities for each pose.

    Args:
        poses: Robot poses, shape (K, 3).
        ranges, bearings: Selected beams, shape (B,).

    Returns:
        `(log_weights, out_of_range)` where log_weights has shape (K,) and
        out_of_range counts beam probabilities outside [0, 1].
    """
    if ranges.size == 0:
        return np.zeros(poses.shape[0], dtype=np.float64), 0

    sensor = compose_pose(config.sensor_pose, poses)
    angles = sensor[:, 2, None] + bearings[None, :]
    hit_x = sensor[:, 0, None] + ranges[None, :] * np.cos(angles)
    hit_y = sensor[:, 1, None] + ranges[None, :] * np.sin(angles)

    gx, gy = occupancy_map.to_grid(hit_x, hit_y)
    # Off-map endpoints come back as the maximum distance.
    dist = occupancy_map.obstacle_distance(gx, gy)

    pz = beam_probability(dist, config, range_max)
    out_of_range = int(np.count_nonzero((pz < 0.0) | (pz > 1.0)))
    with np.errstate(divide="ignore"):
        log_pz = np.log(pz)
    return log_pz.sum(axis=1), out_of_range


def sensor_update(
    weights: np.ndarray,
    poses: np.ndarray,
    scan: RangeScan,
    occupancy_map: OccupancyMap,
    config: LikelihoodFieldConfig,
    *,
    log_weights: Optional[np.ndarray] = None,
    num_workers: Optional[int] = None,
    batch_size: int = DEFAULT_SENSOR_BATCH_SIZE,
) -> PhaseResult:
    """
    Reweight every sample in place against a range scan.

    Each sample's weight is multiplied by `exp(sum(log p))` over the
    selected beams. The sample array is split into contiguous ranges, one
    per worker; each worker returns its local weight sum and the phase total
    is their sum after join.

    A beam probability outside [0, 1] means the model parameters are
    misconfigured; it is reported once per phase as SENSOR_MODEL_RANGE and
    the values are used unclamped.

    Args:
        weights: Sample weights, shape (S,), updated in place.
        poses: Sample poses, shape (S, 3).
        scan: The range scan.
        occupancy_map: Map with a nearest-obstacle distance field.
        config: Likelihood-field configuration.
        log_weights: Optional (S,) array receiving each sample's log-weight
            accumulator.
        num_workers: Worker count, None for hardware parallelism.
        batch_size: Samples evaluated per vectorized batch.

    Returns:
        PhaseResult with the total updated weight.
    """
    if poses.shape != (weights.shape[0], 3):
        raise ValueError(f"poses must have shape ({weights.shape[0]}, 3), got {poses.shape}")
    if log_weights is not None and log_weights.shape != weights.shape:
        raise ValueError("log_weights must have the same shape as weights.")
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    range_max = config.effective_range_max(scan.range_max)
    ranges, bearings = select_beams(scan, config.max_beams, range_max)

    def worker(beg: int, end: int) -> Tuple[float, int, int]:
        local_sum = 0.0
        out_of_range = 0
        for b0 in range(beg, end, batch_size):
            b1 = min(b0 + batch_size, end)
            log_w, bad = beam_log_likelihoods(poses[b0:b1], ranges, bearings, occupancy_map, config, range_max)
            if log_weights is not None:
                log_weights[b0:b1] = log_w
            weights[b0:b1] *= np.exp(log_w)
            local_sum += float(weights[b0:b1].sum())
            out_of_range += bad
        return local_sum, end - beg, out_of_range

    outputs = run_partitioned(worker, weights.shape[0], num_workers)

    result = PhaseResult(
        phase="sensor",
        total_weight=float(sum(o[0] for o in outputs)),
        processed=sum(o[1] for o in outputs),
    )
    out_of_range = sum(o[2] for o in outputs)
    if out_of_range:
        result.add(
            ErrorKind.SENSOR_MODEL_RANGE,
            f"{out_of_range} beam probabilities fell outside [0, 1]; check z_hit={config.z_hit}, "
            f"z_rand={config.z_rand}, range_max={range_max}",
            count=out_of_range,
        )
    return result


def reweight_cloud(
    cloud: ParticleCloud,
    scan: RangeScan,
    occupancy_map: OccupancyMap,
    config: LikelihoodFieldConfig,
    *,
    num_workers: Optional[int] = None,
) -> PhaseResult:
    """Apply the likelihood field to a continuous cloud and renormalize it."""
    result = sensor_update(cloud.weights, cloud.poses, scan, occupancy_map, config, num_workers=num_workers)
    norm = normalize_weights(cloud.weights, result.total_weight)
    result.errors.extend(norm.errors)
    return result

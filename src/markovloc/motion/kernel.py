from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
from scipy.special import logsumexp

from markovloc.errors import ErrorKind, PhaseResult
from markovloc.motion.config import MotionModelConfig
from markovloc.motion.model import MOTION_LOG_LIKELIHOODS, OdometryDecomposition, relative_motion
from markovloc.utils.parallel import run_partitioned
from markovloc.utils.spatial.angles import bin_to_angle


@dataclass(frozen=True)
class TransitionKernel:
    """
    Heading-dependent transition probabilities over a square offset window.

    `probabilities[b, s, o]` is the probability that a robot at offset
    `offsets[o]` (relative to a destination cell) with heading bin `s`
    ends up at the destination cell with heading bin `b`. Each source
    heading slice `probabilities[:, s, :]` sums to 1.
    """

    offsets: np.ndarray
    probabilities: np.ndarray
    window_size: int
    radius: float

    @property
    def num_offsets(self) -> int:
        return int(self.offsets.shape[0])

    @property
    def num_heading_bins(self) -> int:
        return int(self.probabilities.shape[0])


def window_radius(trans: float, config: MotionModelConfig) -> float:
    return float(trans) * (1.0 + config.radius_multiplier * config.alpha3)


def neighbor_offsets(radius: float, resolution: float) -> Tuple[np.ndarray, int]:
    """
    Symmetric offset grid covering `[-radius, radius]` at map resolution.

    Returns:
        `(offsets, window_size)` where offsets has shape
        (window_size**2, 2), x-major, and always contains (0, 0).
    """
    if not resolution > 0.0:
        raise ValueError(f"resolution must be > 0, got {resolution}")
    steps = int(math.floor(max(radius, 0.0) / resolution + 1e-9))
    side = np.arange(-steps, steps + 1, dtype=np.float64) * resolution
    xs, ys = np.meshgrid(side, side, indexing="ij")
    offsets = np.stack([xs.ravel(), ys.ravel()], axis=1)
    return offsets, int(side.size)


def build_transition_kernel(
    observed: OdometryDecomposition,
    config: MotionModelConfig,
    num_heading_bins: int,
    resolution: float,
    *,
    num_workers: Optional[int] = None,
) -> Tuple[Optional[TransitionKernel], PhaseResult]:
    """
    Precompute the transition kernel for one odometry update.

    Work is split over destination heading bins. Likelihoods are evaluated
    in log space and each source slice is normalized there before
    exponentiating. Any (destination, source) heading pair for which every
    offset is impossible is reported as a DEGENERATE_TRANSITION_KERNEL
    error and no kernel is returned.

    Args:
        observed: Decomposition of the observed odometry delta.
        config: Motion-noise configuration.
        num_heading_bins: Number of heading bins.
        resolution: Map resolution (meters per cell).
        num_workers: Worker count, None for hardware parallelism.

    Returns:
        `(kernel, result)`; kernel is None when the phase failed.
    """
    radius = window_radius(observed.trans, config)
    offsets, window_size = neighbor_offsets(radius, resolution)
    headings = bin_to_angle(np.arange(num_heading_bins), num_heading_bins)
    log_likelihood = MOTION_LOG_LIKELIHOODS[config.model]

    if config.quantization_variance:
        angular_res = 2.0 * math.pi / num_heading_bins
        rotation_variance = angular_res * angular_res / 12.0
        translation_variance = resolution * resolution / 12.0
    else:
        rotation_variance = translation_variance = 0.0

    log_probs = np.full((num_heading_bins, num_heading_bins, len(offsets)), -np.inf, dtype=np.float64)
    # Source pose grid: (source heading, offset).
    src_a = np.broadcast_to(headings[:, None], (num_heading_bins, len(offsets)))
    src_x = np.broadcast_to(offsets[None, :, 0], src_a.shape)
    src_y = np.broadcast_to(offsets[None, :, 1], src_a.shape)

    def worker(beg: int, end: int) -> Tuple[List[Tuple[int, int]], int]:
        degenerate: List[Tuple[int, int]] = []
        for b in range(beg, end):
            rot1_hat, trans_hat, rot2_hat = relative_motion(src_x, src_y, src_a, 0.0, 0.0, headings[b])
            block = log_likelihood(
                observed,
                rot1_hat,
                trans_hat,
                rot2_hat,
                config.alphas,
                rotation_variance=rotation_variance,
                translation_variance=translation_variance,
            )
            log_probs[b] = block
            # A pair is degenerate only when every offset is impossible.
            with np.errstate(divide="ignore"):
                pair_mass = logsumexp(block, axis=1)
            for s in np.flatnonzero(np.isneginf(pair_mass)):
                degenerate.append((b, int(s)))
        return degenerate, end - beg

    outputs = run_partitioned(worker, num_heading_bins, num_workers)

    result = PhaseResult(phase="kernel", processed=sum(n for _, n in outputs))
    degenerate = [pair for pairs, _ in outputs for pair in pairs]
    if degenerate:
        result.add(
            ErrorKind.DEGENERATE_TRANSITION_KERNEL,
            f"{len(degenerate)} heading pair(s) have zero transition mass "
            f"(rot1={observed.rot1:.4f}, trans={observed.trans:.4f}, rot2={observed.rot2:.4f})",
            count=len(degenerate),
            indices=degenerate,
        )
        return None, result

    # Each source heading distributes exactly its own mass.
    log_source_mass = logsumexp(log_probs, axis=(0, 2))
    probabilities = np.exp(log_probs - log_source_mass[None, :, None])
    result.total_weight = float(probabilities.sum())

    kernel = TransitionKernel(
        offsets=offsets,
        probabilities=probabilities,
        window_size=window_size,
        radius=radius,
    )
    return kernel, result

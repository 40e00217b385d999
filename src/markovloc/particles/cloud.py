from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass
class ParticleCloud:
    """Fixed-size set of continuous poses `(x, y, theta)` with weights.

    This is the hand-off format for the external clustering stage.
    """

    poses: np.ndarray
    weights: np.ndarray

    def __post_init__(self) -> None:
        self.poses = np.asarray(self.poses, dtype=np.float64)
        self.weights = np.asarray(self.weights, dtype=np.float64).reshape(-1)
        if self.poses.ndim != 2 or self.poses.shape[1] != 3:
            raise ValueError(f"poses must have shape (N, 3), got {self.poses.shape}")
        if self.poses.shape[0] != self.weights.shape[0]:
            raise ValueError("poses and weights must have the same length.")

    def __len__(self) -> int:
        return int(self.weights.shape[0])

    def total_weight(self) -> float:
        return float(self.weights.sum())

    def normalize(self) -> float:
        """Normalize weights in place and return the total before scaling."""
        total = self.total_weight()
        if not np.isfinite(total) or total <= 0.0:
            raise ValueError(f"Cannot normalize a particle cloud with total weight {total!r}.")
        self.weights /= total
        return total

    def estimate(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Weighted mean pose and covariance of the cloud.

        The heading mean is the circular mean; the heading variance is the
        circular variance `-2 * log(R)` where R is the mean resultant length.

        Returns:
            `(mean, cov)` with shapes (3,) and (3, 3).
        """
        total = self.total_weight()
        if not np.isfinite(total) or total <= 0.0:
            raise ValueError("Cannot estimate a pose from a cloud without weight.")
        w = self.weights / total
        xy = self.poses[:, :2]
        mean_xy = w @ xy

        cos_sum = float(w @ np.cos(self.poses[:, 2]))
        sin_sum = float(w @ np.sin(self.poses[:, 2]))
        mean = np.array([mean_xy[0], mean_xy[1], math.atan2(sin_sum, cos_sum)])

        centered = xy - mean_xy
        cov = np.zeros((3, 3), dtype=np.float64)
        cov[:2, :2] = (centered * w[:, None]).T @ centered
        resultant = math.hypot(cos_sum, sin_sum)
        cov[2, 2] = -2.0 * math.log(resultant) if resultant > 0.0 else math.inf
        return mean, cov

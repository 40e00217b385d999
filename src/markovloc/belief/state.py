from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from markovloc.belief.normalize import default_floor_weight
from markovloc.map.free_space import FreeSpaceIndex
from markovloc.utils.spatial.angles import bin_to_angle


@dataclass
class BeliefStore:
    """
    Double-buffered discretized belief over (free cell, heading bin).

    Sample `free_index * num_heading_bins + heading_bin` holds the weight of
    that discretized pose. Both generations share one pose table; only the
    weights and log-weight accumulators are per generation. Exactly one
    generation is current at any time and `swap_generations` is the only
    operation that changes which.
    """

    num_free_cells: int
    num_heading_bins: int
    poses: np.ndarray
    weights: np.ndarray
    log_weights: np.ndarray
    floor_weight: float
    active_indices: np.ndarray
    current_set: int = 0

    @classmethod
    def initialize(
        cls,
        free_space: FreeSpaceIndex,
        num_heading_bins: int,
        *,
        floor_weight: Optional[float] = None,
    ) -> "BeliefStore":
        """
        Allocate both generations with a uniform belief.

        Args:
            free_space: Index of the free cells to discretize.
            num_heading_bins: Number of heading bins per cell.
            floor_weight: Minimum weight kept by every sample. Defaults to
                `1 / (total_samples * 1024)`.
        """
        num_free = len(free_space)
        if num_free == 0:
            raise ValueError("The map has no free cells to localize in.")
        if num_heading_bins < 1:
            raise ValueError(f"num_heading_bins must be >= 1, got {num_heading_bins}")

        total = num_free * num_heading_bins
        positions = free_space.world_positions
        headings = bin_to_angle(np.arange(num_heading_bins), num_heading_bins)

        poses = np.empty((total, 3), dtype=np.float64)
        poses[:, 0] = np.repeat(positions[:, 0], num_heading_bins)
        poses[:, 1] = np.repeat(positions[:, 1], num_heading_bins)
        poses[:, 2] = np.tile(headings, num_free)

        return cls(
            num_free_cells=num_free,
            num_heading_bins=num_heading_bins,
            poses=poses,
            weights=np.full((2, total), 1.0 / total, dtype=np.float64),
            log_weights=np.zeros((2, total), dtype=np.float64),
            floor_weight=float(floor_weight) if floor_weight is not None else default_floor_weight(total),
            active_indices=np.arange(total, dtype=np.int64),
        )

    @property
    def num_samples(self) -> int:
        return self.num_free_cells * self.num_heading_bins

    def sample_index(self, free_index: int, heading_bin: int) -> int:
        if not 0 <= free_index < self.num_free_cells:
            raise IndexError(f"free_index {free_index} out of range")
        if not 0 <= heading_bin < self.num_heading_bins:
            raise IndexError(f"heading_bin {heading_bin} out of range")
        return free_index * self.num_heading_bins + heading_bin

    def current(self) -> np.ndarray:
        return self.weights[self.current_set]

    def previous(self) -> np.ndarray:
        return self.weights[(self.current_set + 1) % 2]

    def current_log_weights(self) -> np.ndarray:
        return self.log_weights[self.current_set]

    def swap_generations(self) -> None:
        self.current_set = (self.current_set + 1) % 2

    def carry_forward(self) -> None:
        """Seed the current generation with the previous one (no motion)."""
        np.copyto(self.current(), self.previous())

    def histogram(self, generation: str = "current") -> np.ndarray:
        """Weights reshaped to (num_free_cells, num_heading_bins), as a copy."""
        if generation not in {"current", "previous"}:
            raise ValueError("generation must be 'current' or 'previous'.")
        weights = self.current() if generation == "current" else self.previous()
        return weights.reshape(self.num_free_cells, self.num_heading_bins).copy()

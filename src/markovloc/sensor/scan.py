from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np


@dataclass(frozen=True)
class RangeScan:
    """Single planar range scan: one range and one bearing per beam."""

    ranges: np.ndarray
    bearings: np.ndarray
    range_max: float
    range_min: float = 0.0

    def __post_init__(self) -> None:
        ranges = np.asarray(self.ranges, dtype=np.float64).reshape(-1)
        bearings = np.asarray(self.bearings, dtype=np.float64).reshape(-1)
        if ranges.shape != bearings.shape:
            raise ValueError(
                f"ranges and bearings must have the same length, got {ranges.size} and {bearings.size}"
            )
        if not self.range_max > 0.0:
            raise ValueError(f"range_max must be > 0, got {self.range_max}")
        object.__setattr__(self, "ranges", ranges)
        object.__setattr__(self, "bearings", bearings)
        object.__setattr__(self, "range_max", float(self.range_max))
        object.__setattr__(self, "range_min", float(self.range_min))

    def __len__(self) -> int:
        return int(self.ranges.size)

    @classmethod
    def from_angles(
        cls,
        ranges: Union[Sequence[float], np.ndarray],
        angle_min: float,
        angle_increment: float,
        range_max: float,
        range_min: float = 0.0,
    ) -> "RangeScan":
        ranges = np.asarray(ranges, dtype=np.float64).reshape(-1)
        bearings = angle_min + angle_increment * np.arange(ranges.size, dtype=np.float64)
        return cls(ranges=ranges, bearings=bearings, range_max=range_max, range_min=range_min)


def select_beams(scan: RangeScan, max_beams: int, range_max: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pick the beams the likelihood model evaluates.

    The scan is strided with `step = max(1, (count - 1) // (max_beams - 1))`,
    so a few more than `max_beams` beams survive when the division
    truncates. Readings at or beyond `range_max`, NaN readings and
    readings at or below the scan's `range_min` are skipped.

    Returns:
        `(ranges, bearings)` of the kept beams.
    """
    count = len(scan)
    if count == 0:
        return np.empty(0), np.empty(0)
    step = max(1, (count - 1) // (max_beams - 1))
    ranges = scan.ranges[::step]
    bearings = scan.bearings[::step]
    # NaN compares False on both sides, so it drops out here too.
    keep = (ranges < range_max) & (ranges > scan.range_min)
    return ranges[keep], bearings[keep]

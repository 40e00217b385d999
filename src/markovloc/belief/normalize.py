from __future__ import annotations

import numpy as np

from markovloc.constants import FLOOR_WEIGHT_DIVISOR, MIN_TOTAL_WEIGHT
from markovloc.errors import ErrorKind, PhaseResult


def default_floor_weight(total_samples: int) -> float:
    """Floor weight epsilon = 1 / (total_samples * 1024)."""
    if total_samples < 1:
        raise ValueError(f"total_samples must be >= 1, got {total_samples}")
    return 1.0 / (float(total_samples) * FLOOR_WEIGHT_DIVISOR)


def normalize_weights(weights: np.ndarray, total_weight: float) -> PhaseResult:
    """
    Divide every weight by `total_weight` in place.

    A zero, negative or non-finite divisor is a collapse: the weights are
    left untouched and the result carries a TOTAL_WEIGHT_COLLAPSE error.
    """
    result = PhaseResult(phase="normalize", total_weight=float(total_weight), processed=int(weights.size))
    if not np.isfinite(total_weight) or total_weight <= MIN_TOTAL_WEIGHT:
        result.add(
            ErrorKind.TOTAL_WEIGHT_COLLAPSE,
            f"total weight {total_weight!r} cannot be used as a normalization divisor",
        )
        return result
    weights /= total_weight
    return result


def floor_weights(weights: np.ndarray, floor: float) -> int:
    """Raise weights strictly below `floor` up to it; returns how many moved."""
    low = weights < floor
    count = int(np.count_nonzero(low))
    if count:
        weights[low] = floor
    return count


def rebuild_active_set(weights: np.ndarray, floor: float) -> np.ndarray:
    """
    Indices whose weight is strictly above `floor`.

    Every other sample is set to exactly `floor`, so it stays a valid
    motion-update source while being excluded from active-set work.
    """
    active = weights > floor
    weights[~active] = floor
    return np.flatnonzero(active).astype(np.int64)

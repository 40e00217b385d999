"""Shared typing aliases used across the project."""

from __future__ import annotations

from typing import Sequence, Tuple, Union

import numpy as np

ScalarLike = Union[int, float, np.floating]
ArrayLike = Union[ScalarLike, Sequence[float], np.ndarray]
Pose2D = Tuple[float, float, float]
PoseLike = Union[Sequence[float], np.ndarray]
GridCoord = Tuple[int, int]
IndexRange = Tuple[int, int]

__all__ = [
    "ArrayLike",
    "GridCoord",
    "IndexRange",
    "Pose2D",
    "PoseLike",
    "ScalarLike",
]

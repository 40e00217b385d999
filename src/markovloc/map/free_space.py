from __future__ import annotations

from typing import Optional

import numpy as np

from markovloc.map.occupancy import OccupancyMap
from markovloc.types import ArrayLike, GridCoord


class FreeSpaceIndex:
    """
    Dense index over the free cells of an occupancy map.

    Free cells are enumerated once in row-major `(gy, gx)` order, which makes
    the numbering stable for a given map. The inverse lookup table has the
    map's shape and holds -1 for every cell that is not free.
    """

    def __init__(self, occupancy_map: OccupancyMap):
        self.map = occupancy_map
        gy_all, gx_all = np.meshgrid(
            np.arange(occupancy_map.height, dtype=np.int64),
            np.arange(occupancy_map.width, dtype=np.int64),
            indexing="ij",
        )
        free_mask = np.asarray(occupancy_map.is_free(gx_all, gy_all), dtype=bool)
        gy, gx = np.nonzero(free_mask)

        self._coordinates = np.stack([gx, gy], axis=1).astype(np.int64)
        self._lookup = np.full(free_mask.shape, -1, dtype=np.int64)
        self._lookup[gy, gx] = np.arange(len(gx), dtype=np.int64)

        wx, wy = occupancy_map.to_world(gx, gy)
        self._world_positions = np.stack([wx, wy], axis=1).astype(np.float64)

    def __len__(self) -> int:
        return int(self._coordinates.shape[0])

    @property
    def num_free_cells(self) -> int:
        return len(self)

    @property
    def coordinates(self) -> np.ndarray:
        """Grid coordinates `(gx, gy)` of every free cell, shape (N, 2)."""
        return self._coordinates

    @property
    def world_positions(self) -> np.ndarray:
        """World coordinates of every free cell center, shape (N, 2)."""
        return self._world_positions

    def to_index(self, gx: int, gy: int) -> Optional[int]:
        idx = int(self.to_indices(gx, gy))
        return idx if idx >= 0 else None

    def to_indices(self, gx: ArrayLike, gy: ArrayLike) -> np.ndarray:
        """Vectorized lookup; -1 marks off-map or non-free cells."""
        gx = np.asarray(gx, dtype=np.int64)
        gy = np.asarray(gy, dtype=np.int64)
        valid = np.asarray(self.map.is_valid_cell(gx, gy), dtype=bool)
        found = self._lookup[np.where(valid, gy, 0), np.where(valid, gx, 0)]
        return np.where(valid, found, -1)

    def to_coordinate(self, index: int) -> GridCoord:
        if not 0 <= index < len(self):
            raise IndexError(f"free-space index {index} out of range [0, {len(self)})")
        gx, gy = self._coordinates[index]
        return int(gx), int(gy)

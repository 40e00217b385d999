from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, Sequence, Tuple, Union

import numpy as np
import yaml
from PIL import Image
from scipy.ndimage import distance_transform_edt

from markovloc.constants import (
    CELL_FREE,
    CELL_OCCUPIED,
    CELL_UNKNOWN,
    DEFAULT_FREE_THRESH,
    DEFAULT_MAX_OBSTACLE_DISTANCE,
    DEFAULT_OCCUPIED_THRESH,
)
from markovloc.types import ArrayLike


class OccupancyMap(Protocol):
    """Interface the localization core consumes from the map provider.

    Every method is vectorized: scalars and numpy arrays are both accepted
    and the result has the broadcast shape of the inputs.
    """

    width: int
    height: int
    resolution: float
    max_obstacle_distance: float

    def is_valid_cell(self, gx: ArrayLike, gy: ArrayLike) -> np.ndarray: ...

    def to_grid(self, wx: ArrayLike, wy: ArrayLike) -> Tuple[np.ndarray, np.ndarray]: ...

    def to_world(self, gx: ArrayLike, gy: ArrayLike) -> Tuple[np.ndarray, np.ndarray]: ...

    def is_free(self, gx: ArrayLike, gy: ArrayLike) -> np.ndarray: ...

    def obstacle_distance(self, gx: ArrayLike, gy: ArrayLike) -> np.ndarray: ...


@dataclass
class OccupancyGridMap:
    """
    Occupancy grid with a precomputed nearest-obstacle distance field.

    Conventions:
        - `cell_states` has shape (height, width) and is indexed `[gy, gx]`
          with values -1 (free), 0 (unknown), +1 (occupied).
        - `origin` is the world position of the lower-left corner of cell
          (0, 0); `to_world` returns cell centers.
        - Distances are in meters, capped at `max_obstacle_distance`, and
          off-map lookups return that cap.
    """

    cell_states: np.ndarray
    resolution: float
    origin: Tuple[float, float] = (0.0, 0.0)
    max_obstacle_distance: float = DEFAULT_MAX_OBSTACLE_DISTANCE
    distances: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        states = np.asarray(self.cell_states, dtype=np.int8)
        if states.ndim != 2:
            raise ValueError(f"cell_states must be a 2D array, got shape {states.shape}")
        if not np.all(np.isin(states, (CELL_FREE, CELL_UNKNOWN, CELL_OCCUPIED))):
            raise ValueError("cell_states values must be -1 (free), 0 (unknown) or 1 (occupied).")
        if not self.resolution > 0.0:
            raise ValueError(f"resolution must be > 0, got {self.resolution}")
        if not self.max_obstacle_distance > 0.0:
            raise ValueError(f"max_obstacle_distance must be > 0, got {self.max_obstacle_distance}")

        self.cell_states = states
        self.resolution = float(self.resolution)
        self.origin = (float(self.origin[0]), float(self.origin[1]))
        self.max_obstacle_distance = float(self.max_obstacle_distance)
        self.distances = self._compute_distances()

    def _compute_distances(self) -> np.ndarray:
        occupied = self.cell_states == CELL_OCCUPIED
        if not occupied.any():
            return np.full(self.cell_states.shape, self.max_obstacle_distance, dtype=np.float64)
        # EDT measures the distance to the nearest zero, so obstacles must be 0.
        dist = distance_transform_edt(~occupied) * self.resolution
        return np.minimum(dist, self.max_obstacle_distance)

    @property
    def width(self) -> int:
        return int(self.cell_states.shape[1])

    @property
    def height(self) -> int:
        return int(self.cell_states.shape[0])

    def to_grid(self, wx: ArrayLike, wy: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
        gx = np.floor((np.asarray(wx, dtype=np.float64) - self.origin[0]) / self.resolution)
        gy = np.floor((np.asarray(wy, dtype=np.float64) - self.origin[1]) / self.resolution)
        return gx.astype(np.int64), gy.astype(np.int64)

    def to_world(self, gx: ArrayLike, gy: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
        wx = self.origin[0] + (np.asarray(gx, dtype=np.float64) + 0.5) * self.resolution
        wy = self.origin[1] + (np.asarray(gy, dtype=np.float64) + 0.5) * self.resolution
        return wx, wy

    def is_valid_cell(self, gx: ArrayLike, gy: ArrayLike) -> np.ndarray:
        gx = np.asarray(gx)
        gy = np.asarray(gy)
        return (gx >= 0) & (gx < self.width) & (gy >= 0) & (gy < self.height)

    def _lookup(self, table: np.ndarray, gx: ArrayLike, gy: ArrayLike, fill) -> np.ndarray:
        gx = np.asarray(gx, dtype=np.int64)
        gy = np.asarray(gy, dtype=np.int64)
        valid = self.is_valid_cell(gx, gy)
        values = table[np.where(valid, gy, 0), np.where(valid, gx, 0)]
        return np.where(valid, values, fill)

    def is_free(self, gx: ArrayLike, gy: ArrayLike) -> np.ndarray:
        return self._lookup(self.cell_states == CELL_FREE, gx, gy, False)

    def obstacle_distance(self, gx: ArrayLike, gy: ArrayLike) -> np.ndarray:
        return self._lookup(self.distances, gx, gy, self.max_obstacle_distance)

    @classmethod
    def from_occupancy_values(
        cls,
        values: Union[np.ndarray, Sequence[Sequence[int]]],
        resolution: float,
        *,
        origin: Tuple[float, float] = (0.0, 0.0),
        free_thresh: float = DEFAULT_FREE_THRESH,
        occupied_thresh: float = DEFAULT_OCCUPIED_THRESH,
        max_obstacle_distance: float = DEFAULT_MAX_OBSTACLE_DISTANCE,
    ) -> "OccupancyGridMap":
        """
        Build a map from occupancy percentages (0..100, -1 unknown).

        Rows are indexed by `gy`, so row 0 is the bottom of the map.
        """
        occ = np.asarray(values, dtype=np.float64)
        states = np.full(occ.shape, CELL_UNKNOWN, dtype=np.int8)
        known = occ >= 0.0
        states[known & (occ <= free_thresh * 100.0)] = CELL_FREE
        states[known & (occ >= occupied_thresh * 100.0)] = CELL_OCCUPIED
        return cls(
            cell_states=states,
            resolution=resolution,
            origin=origin,
            max_obstacle_distance=max_obstacle_distance,
        )

    @classmethod
    def from_yaml(
        cls,
        map_yaml_path: Union[str, Path],
        *,
        max_obstacle_distance: float = DEFAULT_MAX_OBSTACLE_DISTANCE,
    ) -> "OccupancyGridMap":
        """
        Load a map_server style map (.yaml metadata + image).

        The image is read in trinary mode: darker pixels are more likely
        occupied unless `negate` is set. Image row 0 is the top of the map,
        so rows are flipped to make `gy` grow with world y.

        Args:
            map_yaml_path: Path to the .yaml file.
            max_obstacle_distance: Cap (meters) of the distance field.

        Returns:
            The loaded OccupancyGridMap.
        """
        map_yaml_path = Path(map_yaml_path)
        with open(map_yaml_path, "r", encoding="utf-8") as f:
            metadata = yaml.safe_load(f)

        image_path = Path(metadata["image"])
        if not image_path.is_absolute():
            image_path = map_yaml_path.parent / image_path

        pixels = np.asarray(Image.open(image_path).convert("L"), dtype=np.float64)
        negate = int(metadata.get("negate", 0))
        occupancy = pixels / 255.0 if negate else (255.0 - pixels) / 255.0

        occupied_thresh = float(metadata.get("occupied_thresh", DEFAULT_OCCUPIED_THRESH))
        free_thresh = float(metadata.get("free_thresh", DEFAULT_FREE_THRESH))
        states = np.full(occupancy.shape, CELL_UNKNOWN, dtype=np.int8)
        states[occupancy > occupied_thresh] = CELL_OCCUPIED
        states[occupancy < free_thresh] = CELL_FREE

        origin = metadata.get("origin", [0.0, 0.0, 0.0])
        return cls(
            cell_states=np.flipud(states),
            resolution=float(metadata["resolution"]),
            origin=(float(origin[0]), float(origin[1])),
            max_obstacle_distance=max_obstacle_distance,
        )

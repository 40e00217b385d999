import math

import numpy as np
import pytest

from markovloc.constants import CELL_FREE, CELL_OCCUPIED
from markovloc.map.occupancy import OccupancyGridMap
from markovloc.sensor.scan import RangeScan


def make_open_map(size: int = 10, resolution: float = 0.1) -> OccupancyGridMap:
    return OccupancyGridMap(np.full((size, size), CELL_FREE, dtype=np.int8), resolution=resolution)


def make_room_map(size: int = 20, resolution: float = 0.1) -> OccupancyGridMap:
    """Walled square room with a box off-center so no rotation maps it onto itself."""
    cells = np.full((size, size), CELL_FREE, dtype=np.int8)
    cells[0, :] = cells[-1, :] = CELL_OCCUPIED
    cells[:, 0] = cells[:, -1] = CELL_OCCUPIED
    cells[12:16, 12:16] = CELL_OCCUPIED
    return OccupancyGridMap(cells, resolution=resolution)


def ray_cast_scan(grid_map, pose, num_beams: int = 36, range_max: float = 4.0) -> RangeScan:
    """Scan whose every beam ends inside the first occupied cell it crosses."""
    bearings = np.linspace(-math.pi, math.pi, num_beams, endpoint=False)
    step = grid_map.resolution / 4.0
    ranges = np.full(num_beams, range_max)
    for i, bearing in enumerate(bearings):
        angle = pose[2] + bearing
        for r in np.arange(step, range_max, step):
            gx, gy = grid_map.to_grid(pose[0] + r * math.cos(angle), pose[1] + r * math.sin(angle))
            if not grid_map.is_free(gx, gy):
                ranges[i] = r
                break
    return RangeScan(ranges=ranges, bearings=bearings, range_max=range_max)


@pytest.fixture
def open_map():
    return make_open_map()


@pytest.fixture
def room_map():
    return make_room_map()

import math
import random
from dataclasses import replace
from pathlib import Path

import numpy as np

from markovloc.belief.updater import MarkovLocalizer
from markovloc.config import load_config
from markovloc.constants import CELL_FREE, CELL_OCCUPIED
from markovloc.map.occupancy import OccupancyGridMap
from markovloc.sensor.scan import RangeScan


def make_room(size: int = 40, resolution: float = 0.1) -> OccupancyGridMap:
    """Square room with a wall border and one box near a corner."""
    cells = np.full((size, size), CELL_FREE, dtype=np.int8)
    cells[0, :] = cells[-1, :] = CELL_OCCUPIED
    cells[:, 0] = cells[:, -1] = CELL_OCCUPIED
    cells[8:14, 24:30] = CELL_OCCUPIED
    return OccupancyGridMap(cells, resolution=resolution)


def simulate_scan(grid_map: OccupancyGridMap, pose, num_beams: int = 60, range_max: float = 4.0) -> RangeScan:
    """Ray-march a scan through the grid from a true pose."""
    bearings = np.linspace(-math.pi, math.pi, num_beams, endpoint=False)
    step = grid_map.resolution / 2.0
    ranges = np.full(num_beams, range_max)
    for i, bearing in enumerate(bearings):
        angle = pose[2] + bearing
        for r in np.arange(step, range_max, step):
            gx, gy = grid_map.to_grid(pose[0] + r * math.cos(angle), pose[1] + r * math.sin(angle))
            if not grid_map.is_free(gx, gy):
                ranges[i] = r
                break
    return RangeScan(ranges=ranges, bearings=bearings, range_max=range_max)


def main():
    # Pick a fixed seed (or read from CLI/env)
    seed = 1234 # deterministic seed for testing
    # seed = random.randint(0, 2**32 - 1) # random seed for non-deterministic runs
    random.seed(seed)

    config = load_config(Path("configs/default.yaml"))
    # Coarser headings keep this rollout quick on a laptop
    config = replace(config, angular_resolution_deg=30.0, cloud_size=500, update_min_d=0.1)

    grid_map = make_room()
    localizer = MarkovLocalizer(grid_map, config, seed=seed)
    print("Free cells:", len(localizer.free_space), "Heading bins:", config.num_heading_bins)

    pose = np.array([1.0, 1.0, 0.0])
    odom = pose.copy()

    # Short straight-ish rollout to test
    T = 10
    for i in range(T):
        print(f"\nStep {i+1} / {T}")
        move = np.array([0.15, 0.0, random.uniform(-0.1, 0.1)])
        c, s = math.cos(pose[2]), math.sin(pose[2])
        pose = pose + np.array([c * move[0] - s * move[1], s * move[0] + c * move[1], move[2]])
        odom = odom + np.array([c * move[0] - s * move[1], s * move[0] + c * move[1], move[2]])

        result = localizer.process(odom, simulate_scan(grid_map, pose))
        if result is None:
            print("Skipped: odometry below update thresholds")
            continue

        belief = localizer.histogram()
        best = int(np.argmax(belief.sum(axis=1)))
        print("Success:", result.success, "Active:", result.num_active, "Resampled:", result.resampled)
        print("True position", pose[:2], "best cell", localizer.positions()[best])
        if localizer.cloud is not None:
            mean, cov = localizer.cloud.estimate()
            print("Cloud mean", mean, "xy std", np.sqrt(np.diag(cov)[:2]))
        for error in result.errors:
            print("Error:", error.kind.value, error.message)


if __name__ == "__main__":
    main()

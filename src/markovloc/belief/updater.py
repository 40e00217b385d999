from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from markovloc.belief.normalize import floor_weights, normalize_weights, rebuild_active_set
from markovloc.belief.state import BeliefStore
from markovloc.config import LocalizerConfig
from markovloc.errors import ErrorKind, LocalizationWarning, PhaseError, PhaseResult
from markovloc.map.free_space import FreeSpaceIndex
from markovloc.map.occupancy import OccupancyMap
from markovloc.motion.kernel import build_transition_kernel
from markovloc.motion.model import decompose_odometry
from markovloc.motion.update import motion_update
from markovloc.particles.cloud import ParticleCloud
from markovloc.particles.resample import low_variance_resample
from markovloc.sensor.likelihood_field import sensor_update
from markovloc.sensor.scan import RangeScan
from markovloc.types import PoseLike
from markovloc.utils.spatial.angles import angle_diff


@dataclass
class CycleResult:
    """Outcome of one observation cycle."""

    success: bool
    phases: List[PhaseResult] = field(default_factory=list)
    resampled: bool = False
    num_active: int = 0

    @property
    def errors(self) -> List[PhaseError]:
        return [e for p in self.phases for e in p.errors]

    def count_of(self, kind: ErrorKind) -> int:
        return sum(p.count_of(kind) for p in self.phases)


class MarkovLocalizer:
    """
    Grid-based Markov localization over (free cell, heading bin).

    One cycle runs, in order: transition-kernel build, motion update,
    normalization and flooring, sensor update, normalization and
    active-set rebuild, periodic resampling, and the generation swap. Each
    phase joins all of its workers before the next one starts.

    A fatal phase (degenerate kernel, total-weight collapse) aborts the
    cycle without swapping, so the last good belief stays in the previous
    generation and the next cycle starts from it.
    """

    def __init__(
        self,
        occupancy_map: OccupancyMap,
        config: Optional[LocalizerConfig] = None,
        *,
        seed: Optional[int] = None,
    ):
        self.map = occupancy_map
        self.config = config if config is not None else LocalizerConfig()
        self.free_space = FreeSpaceIndex(occupancy_map)
        self.store = BeliefStore.initialize(
            self.free_space,
            self.config.num_heading_bins,
            floor_weight=self.config.floor_weight,
        )
        self.rng = np.random.default_rng(seed)
        self.cloud: Optional[ParticleCloud] = None

        self._odom_pose: Optional[np.ndarray] = None
        self._force_update = False
        self._resample_count = 0

    # --- Read access ---

    @property
    def num_active(self) -> int:
        return int(self.store.active_indices.size)

    @property
    def total_weight(self) -> float:
        """Total weight of the latest belief."""
        return float(self.store.previous().sum())

    def histogram(self) -> np.ndarray:
        """Latest belief as a (num_free_cells, num_heading_bins) array."""
        return self.store.histogram("previous")

    def positions(self) -> np.ndarray:
        return self.free_space.world_positions.copy()

    def free_cell_indices(self) -> np.ndarray:
        return self.free_space.coordinates.copy()

    # --- Cycle ---

    def force_update(self) -> None:
        """Run a full cycle on the next scan regardless of the odometry gate."""
        self._force_update = True

    def process(self, odom_pose: PoseLike, scan: RangeScan) -> Optional[CycleResult]:
        """
        Feed one odometry pose and its scan.

        The first call only records the odometry reference and runs a
        sensor-only cycle. Later calls run a cycle when the odometry moved
        beyond `update_min_d` / `update_min_a` since the last update (or a
        forced update is pending) and return None otherwise.
        """
        pose = np.asarray(odom_pose, dtype=np.float64)
        if pose.shape != (3,):
            raise ValueError(f"odom_pose must be length 3, got shape {pose.shape}")

        if self._odom_pose is None:
            self._odom_pose = pose
            self._force_update = False
            return self.update(None, scan)

        delta = np.array(
            [
                pose[0] - self._odom_pose[0],
                pose[1] - self._odom_pose[1],
                angle_diff(pose[2], self._odom_pose[2]),
            ]
        )
        moved = (
            abs(delta[0]) > self.config.update_min_d
            or abs(delta[1]) > self.config.update_min_d
            or abs(delta[2]) > self.config.update_min_a
        )
        if not (moved or self._force_update):
            return None
        self._force_update = False

        result = self.update(delta, scan, prior_heading=float(self._odom_pose[2]))
        # A failed cycle kept the old belief, so the next delta must span this motion too.
        if result.success:
            self._odom_pose = pose
        return result

    def update(
        self,
        delta: Optional[PoseLike],
        scan: RangeScan,
        prior_heading: float = 0.0,
    ) -> CycleResult:
        """
        Run one observation cycle.

        Args:
            delta: Odometry change `(dx, dy, dtheta)` since the last cycle,
                or None for a sensor-only cycle.
            scan: Range scan taken at the end of the motion.
            prior_heading: Odometry heading before the motion (radians).

        Returns:
            CycleResult describing every phase that ran.
        """
        cfg = self.config
        store = self.store
        cycle = CycleResult(success=False)

        if delta is not None and cfg.motion_update:
            if not self._motion_phase(delta, prior_heading, cycle):
                return self._finish(cycle)
        else:
            store.carry_forward()
        floor_weights(store.current(), store.floor_weight)

        sensed = sensor_update(
            store.current(),
            store.poses,
            scan,
            self.map,
            cfg.sensor,
            log_weights=store.current_log_weights(),
            num_workers=cfg.num_workers,
            batch_size=cfg.sensor_batch_size,
        )
        cycle.phases.append(sensed)
        normalized = normalize_weights(store.current(), sensed.total_weight)
        cycle.phases.append(normalized)
        if normalized.failed:
            return self._finish(cycle)

        store.active_indices = rebuild_active_set(store.current(), store.floor_weight)
        cycle.num_active = self.num_active

        self._resample_count += 1
        if self._resample_count % cfg.resample_interval == 0:
            self.cloud = low_variance_resample(store.poses, store.current(), cfg.cloud_size, self.rng)
            cycle.resampled = True

        store.swap_generations()
        cycle.success = True
        return self._finish(cycle)

    def _motion_phase(self, delta: PoseLike, prior_heading: float, cycle: CycleResult) -> bool:
        cfg = self.config
        observed = decompose_odometry(delta, prior_heading)
        kernel, built = build_transition_kernel(
            observed,
            cfg.motion,
            self.store.num_heading_bins,
            self.map.resolution,
            num_workers=cfg.num_workers,
        )
        cycle.phases.append(built)
        if kernel is None:
            return False

        moved = motion_update(
            self.store,
            self.free_space,
            self.map,
            kernel,
            num_workers=cfg.num_workers,
            batch_size=cfg.batch_size,
        )
        cycle.phases.append(moved)
        normalized = normalize_weights(self.store.current(), moved.total_weight)
        cycle.phases.append(normalized)
        return not normalized.failed

    def resample(self, target_size: Optional[int] = None) -> ParticleCloud:
        """Draw a continuous particle cloud from the latest belief."""
        size = target_size if target_size is not None else self.config.cloud_size
        self.cloud = low_variance_resample(self.store.poses, self.store.previous(), size, self.rng)
        return self.cloud

    def _finish(self, cycle: CycleResult) -> CycleResult:
        seen = set()
        for error in cycle.errors:
            if error.kind in seen:
                continue
            seen.add(error.kind)
            warnings.warn(f"{error.kind.value}: {error.message}", LocalizationWarning, stacklevel=3)
        if not cycle.success:
            cycle.num_active = self.num_active
        return cycle

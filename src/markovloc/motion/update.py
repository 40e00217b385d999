from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from markovloc.belief.state import BeliefStore
from markovloc.constants import DEFAULT_BATCH_SIZE, MOTION_SCRATCH_ELEMENTS
from markovloc.errors import ErrorKind, PhaseResult
from markovloc.map.free_space import FreeSpaceIndex
from markovloc.map.occupancy import OccupancyMap
from markovloc.motion.kernel import TransitionKernel
from markovloc.utils.parallel import run_partitioned


def motion_update(
    store: BeliefStore,
    free_space: FreeSpaceIndex,
    occupancy_map: OccupancyMap,
    kernel: TransitionKernel,
    *,
    num_workers: Optional[int] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> PhaseResult:
    """
    Convolve the previous generation with the transition kernel.

    Backward gather: each active sample of the current generation pulls
    mass from the free neighbors of its cell in the previous generation,
    so every worker writes only to the samples of its own index range.
    Samples outside the active set are left at zero. Active samples are
    processed in groups sharing a destination heading, and each worker
    gathers into one scratch buffer of at most MOTION_SCRATCH_ELEMENTS
    values (at least one offset per batch).

    Per-sample conditions are reported, not raised: a sample with no free
    neighbor (EMPTY_NEIGHBORHOOD) or with zero gathered mass
    (DEGENERATE_MASS) keeps a zero weight.

    Returns:
        PhaseResult whose `total_weight` is the unnormalized mass written.
    """
    if kernel.num_heading_bins != store.num_heading_bins:
        raise ValueError(
            f"kernel has {kernel.num_heading_bins} heading bins, belief has {store.num_heading_bins}"
        )
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    num_bins = store.num_heading_bins
    num_offsets = kernel.num_offsets
    # Active samples grouped by destination heading; each group shares one kernel slice.
    active_headings = store.active_indices % num_bins
    order = np.argsort(active_headings, kind="stable")
    active = store.active_indices[order]
    active_headings = active_headings[order]
    current = store.current()
    previous = store.previous().reshape(store.num_free_cells, num_bins)
    offsets = kernel.offsets
    offset_chunk = max(1, min(num_offsets, MOTION_SCRATCH_ELEMENTS // (batch_size * num_bins)))

    current.fill(0.0)

    def worker(beg: int, end: int) -> Tuple[float, int, List[int], List[int]]:
        scratch = np.empty(batch_size * offset_chunk * num_bins, dtype=np.float64)
        local_sum = 0.0
        empty: List[int] = []
        degenerate: List[int] = []
        b0 = beg
        while b0 < end:
            heading = int(active_headings[b0])
            group_end = min(end, int(np.searchsorted(active_headings, heading, side="right")))
            b1 = min(b0 + batch_size, group_end)
            idx = active[b0:b1]
            poses = store.poses[idx]
            # (source heading, offset) for this destination heading.
            probs = kernel.probabilities[heading]

            weights = np.zeros(len(idx), dtype=np.float64)
            has_neighbor = np.zeros(len(idx), dtype=bool)
            for o0 in range(0, num_offsets, offset_chunk):
                o1 = min(o0 + offset_chunk, num_offsets)
                gx, gy = occupancy_map.to_grid(
                    poses[:, 0, None] + offsets[None, o0:o1, 0],
                    poses[:, 1, None] + offsets[None, o0:o1, 1],
                )
                ngb = free_space.to_indices(gx, gy)
                valid = ngb >= 0
                has_neighbor |= valid.any(axis=1)

                gathered = scratch[: len(idx) * (o1 - o0) * num_bins].reshape(len(idx), o1 - o0, num_bins)
                np.take(previous, np.where(valid, ngb, 0), axis=0, out=gathered, mode="clip")
                gathered[~valid] = 0.0
                weights += np.einsum("kos,so->k", gathered, probs[:, o0:o1])

            no_neighbor = ~has_neighbor
            weights[no_neighbor] = 0.0
            empty.extend(idx[no_neighbor].tolist())
            degenerate.extend(idx[(weights == 0.0) & has_neighbor].tolist())

            current[idx] = weights
            local_sum += float(weights.sum())
            b0 = b1
        return local_sum, end - beg, empty, degenerate

    outputs = run_partitioned(worker, len(active), num_workers)

    result = PhaseResult(
        phase="motion",
        total_weight=float(sum(o[0] for o in outputs)),
        processed=sum(o[1] for o in outputs),
    )
    empty = sorted(i for o in outputs for i in o[2])
    degenerate = sorted(i for o in outputs for i in o[3])
    if empty:
        result.add(
            ErrorKind.EMPTY_NEIGHBORHOOD,
            f"{len(empty)} active sample(s) have no free neighbor in a window of {kernel.num_offsets} offsets",
            count=len(empty),
            indices=empty,
        )
    if degenerate:
        result.add(
            ErrorKind.DEGENERATE_MASS,
            f"{len(degenerate)} active sample(s) gathered zero mass",
            count=len(degenerate),
            indices=degenerate,
        )
    return result

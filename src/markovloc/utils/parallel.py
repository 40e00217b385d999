"""Bounded worker pool helpers for the numeric update phases.

Each phase spawns a fresh pool, hands every worker one contiguous index
range, and joins all workers before the phase result is consumed.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, TypeVar

from markovloc.constants import DEFAULT_NUM_WORKERS
from markovloc.types import IndexRange

T = TypeVar("T")


def resolve_worker_count(num_workers: Optional[int] = None) -> int:
    if num_workers is not None and num_workers > 0:
        return int(num_workers)
    return int(os.cpu_count() or DEFAULT_NUM_WORKERS)


def partition_range(count: int, num_workers: int) -> List[IndexRange]:
    """
    Split `[0, count)` into contiguous ranges, one per worker.

    Every range but the last has `count // num_workers` items; the last one
    absorbs the remainder. Empty ranges are dropped, so fewer ranges than
    workers come back when `count < num_workers`.
    """
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    if num_workers < 1:
        raise ValueError(f"num_workers must be >= 1, got {num_workers}")

    grain = count // num_workers
    ranges: List[IndexRange] = []
    beg = 0
    for _ in range(num_workers - 1):
        ranges.append((beg, beg + grain))
        beg += grain
    ranges.append((beg, count))
    return [(b, e) for b, e in ranges if e > b]


def run_partitioned(
    worker: Callable[[int, int], T],
    count: int,
    num_workers: Optional[int] = None,
) -> List[T]:
    """
    Run `worker(beg, end)` over a partition of `[0, count)` and join.

    Returns:
        Worker results in partition order. Exceptions raised by a worker
        propagate once every worker has finished.
    """
    ranges = partition_range(count, resolve_worker_count(num_workers))
    if not ranges:
        return []
    if len(ranges) == 1:
        return [worker(*ranges[0])]

    with ThreadPoolExecutor(max_workers=len(ranges)) as executor:
        futures = [executor.submit(worker, beg, end) for beg, end in ranges]
    # Leaving the context manager joins every worker.
    return [f.result() for f in futures]

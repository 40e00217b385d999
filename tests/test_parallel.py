import pytest

from markovloc.utils.parallel import partition_range, resolve_worker_count, run_partitioned


def test_last_range_absorbs_remainder():
    assert partition_range(10, 3) == [(0, 3), (3, 6), (6, 10)]


def test_fewer_items_than_workers_drops_empty_ranges():
    assert partition_range(2, 4) == [(0, 2)]
    assert partition_range(0, 4) == []


def test_resolve_worker_count_defaults_to_hardware():
    assert resolve_worker_count(3) == 3
    assert resolve_worker_count(None) >= 1
    assert resolve_worker_count(0) >= 1


def test_run_partitioned_returns_in_partition_order():
    def worker(beg, end):
        return list(range(beg, end))

    results = run_partitioned(worker, 17, num_workers=4)
    assert [i for chunk in results for i in chunk] == list(range(17))
    assert len(results) == 4


def test_worker_exceptions_propagate():
    def worker(beg, end):
        if beg > 0:
            raise RuntimeError("boom")
        return end - beg

    with pytest.raises(RuntimeError, match="boom"):
        run_partitioned(worker, 8, num_workers=2)

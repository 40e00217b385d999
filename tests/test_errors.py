import pytest

from markovloc.errors import ErrorKind, LocalizationError, PhaseResult


def test_phase_result_merges_counts():
    result = PhaseResult(phase="motion")
    result.add(ErrorKind.DEGENERATE_MASS, "a", count=3, indices=[1, 2, 3])
    result.add(ErrorKind.DEGENERATE_MASS, "b")
    assert result.count_of(ErrorKind.DEGENERATE_MASS) == 4
    assert result.errors[0].indices == (1, 2, 3)
    assert not result.failed
    result.raise_for_errors()


def test_fatal_kinds_raise_with_their_kind():
    result = PhaseResult(phase="normalize")
    result.add(ErrorKind.TOTAL_WEIGHT_COLLAPSE, "total weight 0.0")
    assert result.failed
    with pytest.raises(LocalizationError, match="normalize: total weight") as info:
        result.raise_for_errors()
    assert info.value.kind is ErrorKind.TOTAL_WEIGHT_COLLAPSE

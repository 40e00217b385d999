import math

import numpy as np
import pytest

from markovloc.belief.updater import MarkovLocalizer
from markovloc.config import LocalizerConfig
from markovloc.errors import ErrorKind, LocalizationWarning
from markovloc.sensor.config import LikelihoodFieldConfig
from markovloc.sensor.scan import RangeScan

from conftest import ray_cast_scan


def _config(**overrides):
    settings = dict(angular_resolution_deg=90.0, cloud_size=200, num_workers=2)
    settings.update(overrides)
    return LocalizerConfig(**settings)


def _short_scan(range_max=4.0):
    return RangeScan.from_angles(np.full(8, 0.3), -math.pi, math.pi / 4, range_max=range_max)


def test_sensor_only_cycle_peaks_at_true_pose(room_map):
    localizer = MarkovLocalizer(room_map, _config())
    true_index = localizer.store.sample_index(localizer.free_space.to_index(5, 5), 2)
    truth = localizer.store.poses[true_index]
    assert truth[2] == pytest.approx(0.0)

    result = localizer.update(None, ray_cast_scan(room_map, truth))
    assert result.success
    weights = localizer.store.previous()
    assert weights[true_index] == pytest.approx(weights.max())
    assert localizer.total_weight == pytest.approx(1.0, abs=2e-3)


def test_motion_cycle_keeps_a_floored_distribution(room_map):
    localizer = MarkovLocalizer(room_map, _config())
    result = localizer.update((0.2, 0.0, 0.0), ray_cast_scan(room_map, [1.0, 0.7, 0.0]))
    assert result.success
    assert [p.phase for p in result.phases] == ["kernel", "motion", "normalize", "sensor", "normalize"]

    hist = localizer.histogram()
    assert hist.shape == (len(localizer.free_space), 4)
    assert np.all(hist >= localizer.store.floor_weight)
    assert hist.sum() == pytest.approx(1.0, abs=2e-3)
    assert 0 < result.num_active == localizer.num_active <= hist.size


def test_collapse_keeps_the_previous_belief(open_map):
    hopeless = LikelihoodFieldConfig(sigma_hit=0.01, z_rand=0.0)
    localizer = MarkovLocalizer(open_map, _config(sensor=hopeless))
    before = localizer.histogram()

    with pytest.warns(LocalizationWarning, match="total_weight_collapse"):
        result = localizer.update(None, _short_scan())
    assert not result.success
    assert result.count_of(ErrorKind.TOTAL_WEIGHT_COLLAPSE) == 1
    np.testing.assert_array_equal(localizer.histogram(), before)
    assert localizer.num_active == before.size


def test_recovers_after_a_failed_cycle(open_map):
    localizer = MarkovLocalizer(open_map, _config(sensor=LikelihoodFieldConfig(sigma_hit=0.01, z_rand=0.0)))
    with pytest.warns(LocalizationWarning):
        localizer.update(None, _short_scan())

    localizer.config = _config()
    result = localizer.update(None, _short_scan())
    assert result.success
    hist = localizer.histogram()
    np.testing.assert_allclose(hist, np.full(hist.shape, 1.0 / hist.size))


def test_process_gates_on_odometry(room_map):
    localizer = MarkovLocalizer(room_map, _config(update_min_d=0.2))
    scan = ray_cast_scan(room_map, [1.0, 0.7, 0.0])

    first = localizer.process([0.0, 0.0, 0.0], scan)
    assert first is not None and first.success
    assert first.phases[0].phase == "sensor"

    assert localizer.process([0.1, 0.0, 0.0], scan) is None

    localizer.force_update()
    forced = localizer.process([0.1, 0.0, 0.0], scan)
    assert forced is not None and forced.phases[0].phase == "kernel"

    assert localizer.process([0.15, 0.0, 0.0], scan) is None
    assert localizer.process([0.15, 0.0, 1.0], scan) is not None

    with pytest.raises(ValueError):
        localizer.process([0.0, 0.0], scan)


def test_resamples_every_interval(room_map):
    localizer = MarkovLocalizer(room_map, _config(resample_interval=2), seed=1)
    scan = ray_cast_scan(room_map, [1.0, 0.7, 0.0])

    assert not localizer.update(None, scan).resampled
    assert localizer.cloud is None
    second = localizer.update(None, scan)
    assert second.resampled
    assert len(localizer.cloud) == 200
    assert localizer.cloud.total_weight() == pytest.approx(1.0)

    cloud = localizer.resample(50)
    assert len(cloud) == 50


def test_read_access(room_map):
    localizer = MarkovLocalizer(room_map, _config())
    assert localizer.positions().shape == (len(localizer.free_space), 2)
    np.testing.assert_array_equal(localizer.free_cell_indices(), localizer.free_space.coordinates)
    assert localizer.num_active == localizer.store.num_samples
    assert localizer.total_weight == pytest.approx(1.0)


def test_spinning_in_place_keeps_updating(room_map):
    localizer = MarkovLocalizer(room_map, LocalizerConfig(num_workers=2))
    for k in range(5):
        pose = [1.0, 0.7, 1.1 * k]
        result = localizer.process(pose, ray_cast_scan(room_map, pose))
        assert result is not None
        assert result.success
        if k:
            assert result.phases[0].phase == "kernel"
            assert not result.phases[0].errors

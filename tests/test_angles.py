import math

import numpy as np
import pytest

from markovloc.errors import ConfigurationError
from markovloc.utils.spatial.angles import (
    angle_diff,
    bin_to_angle,
    compose_pose,
    heading_bin_count,
    normalize_angle,
)


def test_normalize_angle_wraps_scalars_and_arrays():
    assert normalize_angle(3.0 * math.pi / 2.0) == pytest.approx(-math.pi / 2.0)
    assert isinstance(normalize_angle(0.5), float)
    wrapped = normalize_angle(np.array([0.0, 2.0 * math.pi + 0.1, -2.0 * math.pi - 0.1]))
    np.testing.assert_allclose(wrapped, [0.0, 0.1, -0.1], atol=1e-12)


def test_angle_diff_takes_short_way_round():
    assert angle_diff(math.pi - 0.1, -math.pi + 0.1) == pytest.approx(-0.2)
    assert angle_diff(-math.pi + 0.1, math.pi - 0.1) == pytest.approx(0.2)


@pytest.mark.parametrize("resolution, expected", [(5.0, 72), (90.0, 4), (360.0, 1), (0.5, 720)])
def test_heading_bin_count(resolution, expected):
    assert heading_bin_count(resolution) == expected


@pytest.mark.parametrize("resolution", [0.0, -5.0, 7.0, 400.0])
def test_heading_bin_count_rejects_bad_resolution(resolution):
    with pytest.raises(ConfigurationError):
        heading_bin_count(resolution)


def test_bins_start_at_minus_pi():
    assert bin_to_angle(0, 4) == pytest.approx(-math.pi)
    np.testing.assert_allclose(bin_to_angle(np.arange(4), 4), [-math.pi, -math.pi / 2, 0.0, math.pi / 2])


def test_compose_pose_rotates_offset_into_world():
    pose = np.array([1.0, 2.0, math.pi / 2])
    out = compose_pose((0.5, 0.0, math.pi / 2), pose)
    np.testing.assert_allclose(out, [1.0, 2.5, math.pi], atol=1e-12)

    batch = compose_pose((0.5, 0.0, 0.0), np.array([[0.0, 0.0, 0.0], [0.0, 0.0, math.pi]]))
    np.testing.assert_allclose(batch[:, :2], [[0.5, 0.0], [-0.5, 0.0]], atol=1e-12)

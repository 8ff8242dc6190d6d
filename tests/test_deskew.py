"""Tests for the global deskew transform."""

import math

import numpy as np
import pytest

from scoredewarp.services.deskew import compute_deskew
from scoredewarp.utils.exceptions import DegenerateGeometryError


def _corners(width, height):
    return np.array([[0, 0], [width, 0], [0, height], [width, height]], dtype=np.float64)


class TestComputeDeskew:
    """Tests for compute_deskew()."""

    def test_zero_slope_is_identity(self):
        t = compute_deskew(0.0, 1000, 1400)
        assert t.angle == 0.0
        assert (t.dx, t.dy) == (0.0, 0.0)
        assert (t.width, t.height) == (1000.0, 1400.0)
        np.testing.assert_array_equal(t.apply(np.array([123.0, 456.0])), [123.0, 456.0])

    def test_positive_slope_angle(self):
        t = compute_deskew(0.1, 1000, 1400)
        assert t.angle == pytest.approx(-math.atan(0.1))
        assert t.angle_degrees == pytest.approx(-5.7106, abs=1e-4)

    def test_positive_slope_extent_matches_rotated_box(self):
        t = compute_deskew(0.1, 1000, 1400)
        c, s = math.cos(math.atan(0.1)), math.sin(math.atan(0.1))
        assert t.width == pytest.approx(1000 * c + 1400 * s)
        assert t.height == pytest.approx(1400 * c + 1000 * s)

    @pytest.mark.parametrize("slope", [0.1, -0.1, 0.35, -0.02])
    def test_bounding_box_at_origin(self, slope):
        t = compute_deskew(slope, 1000, 1400)
        pts = t.apply(_corners(1000, 1400))
        np.testing.assert_allclose(pts.min(axis=0), [0.0, 0.0], atol=1e-9)
        np.testing.assert_allclose(pts.max(axis=0), [t.width, t.height], atol=1e-9)

    def test_negative_slope_uses_clockwise_branch(self):
        t = compute_deskew(-0.1, 1000, 1400)
        assert t.angle > 0
        assert t.dx > 0
        assert t.dy == 0.0

    def test_positive_slope_uses_counter_clockwise_branch(self):
        t = compute_deskew(0.1, 1000, 1400)
        assert t.angle < 0
        assert t.dx == 0.0
        assert t.dy > 0

    def test_straightens_sloped_line(self):
        t = compute_deskew(0.1, 1000, 1400)
        line = np.array([[0.0, 300.0], [500.0, 350.0], [1000.0, 400.0]])
        ys = t.apply(line)[:, 1]
        np.testing.assert_allclose(ys, ys[0], atol=1e-9)

    def test_inverse_round_trip(self):
        t = compute_deskew(-0.07, 800, 600)
        pts = np.array([[0.0, 0.0], [10.5, 20.25], [799.0, 599.0]])
        np.testing.assert_allclose(t.inverse(t.apply(pts)), pts, atol=1e-9)

    def test_inverse_vector_ignores_translation(self):
        t = compute_deskew(0.1, 1000, 1400)
        down = t.inverse_vector(np.array([0.0, 1.0]))
        assert np.linalg.norm(down) == pytest.approx(1.0)
        expected = t.inverse(np.array([0.0, 1.0])) - t.inverse(np.array([0.0, 0.0]))
        np.testing.assert_allclose(down, expected, atol=1e-12)

    def test_matrix_shape(self):
        assert compute_deskew(0.05, 100, 100).matrix.shape == (2, 3)


class TestDeskewErrors:
    """Degenerate inputs."""

    @pytest.mark.parametrize("slope", [float("nan"), float("inf")])
    def test_non_finite_slope(self, slope):
        with pytest.raises(DegenerateGeometryError):
            compute_deskew(slope, 1000, 1400)

    @pytest.mark.parametrize("size", [(0, 100), (100, 0), (-5, 10)])
    def test_empty_sheet(self, size):
        with pytest.raises(DegenerateGeometryError):
            compute_deskew(0.0, *size)

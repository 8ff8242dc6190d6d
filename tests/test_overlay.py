"""Tests for debug overlays."""

import numpy as np

from scoredewarp.services.overlay import render_systems, render_warp_grid
from scoredewarp.services.warp_grid import WarpGrid


class TestRenderWarpGrid:
    def test_grey_becomes_bgr(self, page_image):
        out = render_warp_grid(page_image, WarpGrid.identity(300, 200, 20))
        assert out.shape == (200, 300, 3)
        assert out.dtype == np.uint8

    def test_points_drawn_red(self, page_image):
        out = render_warp_grid(page_image, WarpGrid.identity(300, 200, 20))
        np.testing.assert_array_equal(out[40, 60], [0, 0, 255])
        # Between grid points the page is untouched
        np.testing.assert_array_equal(out[50, 50], [255, 255, 255])

    def test_source_points(self):
        identity = WarpGrid.identity(40, 40, 20)
        moved = WarpGrid(0, 20, 2, 0, 20, 2, identity.dst_points, identity.dst_points + [5, 5])
        canvas = np.full((60, 60), 255, dtype=np.uint8)
        out = render_warp_grid(canvas, moved, use_source=True)
        np.testing.assert_array_equal(out[25, 25], [0, 0, 255])
        np.testing.assert_array_equal(out[20, 20], [255, 255, 255])

    def test_explicit_radius(self, page_image):
        grid = WarpGrid.identity(300, 200, 20)
        small = render_warp_grid(page_image, grid, radius=1)
        np.testing.assert_array_equal(small[40, 63], [255, 255, 255])
        large = render_warp_grid(page_image, grid, radius=6)
        np.testing.assert_array_equal(large[40, 65], [0, 0, 255])

    def test_input_not_modified(self, page_image):
        before = page_image.copy()
        render_warp_grid(page_image, WarpGrid.identity(300, 200, 20))
        np.testing.assert_array_equal(page_image, before)

    def test_uint16_input(self):
        canvas = np.full((30, 30), 65535, dtype=np.uint16)
        out = render_warp_grid(canvas, WarpGrid.identity(30, 30, 10))
        assert out.dtype == np.uint8
        np.testing.assert_array_equal(out[15, 5], [255, 255, 255])


class TestRenderSystems:
    def test_frame_lines(self, single_staff_sheet, page_image):
        out = render_systems(page_image, single_staff_sheet)
        # Left frame runs from (20, 100) to (20, 180), right frame at x = 280
        for x in (20, 280):
            b, g, r = out[130, x]
            assert b < 128 and g > 128 and r > 128
        np.testing.assert_array_equal(out[130, 150], [255, 255, 255])

    def test_colour_input(self, single_staff_sheet, page_image):
        bgra = np.dstack([page_image] * 4)
        out = render_systems(bgra, single_staff_sheet)
        assert out.shape == (200, 300, 3)

"""End-to-end tests for one-page dewarping."""

import math
import threading

import cv2
import numpy as np
import pytest

from scoredewarp.config import DewarpConfig
from scoredewarp.services.target_builder import TargetBuilder
from scoredewarp.utils.exceptions import (
    ProcessingCancelledError,
    StructuralInconsistencyError,
    ValidationError,
)


@pytest.fixture
def skewed_page(sheet_factory, staff_factory):
    """1000×1400 page with two staves drawn along slope 0.1."""
    tops = (300.0, 600.0)
    sheet = sheet_factory(
        [[staff_factory(top, slope=0.1, x0=100.0, x1=900.0, step=25.0)] for top in tops],
        width=1000,
        height=1400,
        slope=0.1,
        page_id="skewed",
    )
    img = np.full((1400, 1000), 255, dtype=np.uint8)
    for top in tops:
        for i in range(5):
            y0 = top + 20 * i
            p0 = (100, int(round(y0 + 10)))
            p1 = (900, int(round(y0 + 90)))
            cv2.line(img, p0, p1, 0, 5)
    return sheet, img


class TestFlatPage:
    """Single system, single staff, 5 lines, interline 20, zero slope."""

    def test_deskew_is_identity(self, single_staff_sheet, page_image):
        result = TargetBuilder(single_staff_sheet, page_image).build_info()
        assert result.deskew.angle == 0.0
        assert (result.deskew.dx, result.deskew.dy) == (0.0, 0.0)

    def test_target_lines(self, single_staff_sheet, page_image):
        result = TargetBuilder(single_staff_sheet, page_image).build_info()
        ys = [line.y for line in result.target_page.lines]
        assert ys == [100.0 + d for d in (0, 20, 40, 60, 80)]

    def test_grid_is_identity(self, single_staff_sheet, page_image):
        result = TargetBuilder(single_staff_sheet, page_image).build_info()
        np.testing.assert_allclose(
            result.warp_grid.src_points, result.warp_grid.dst_points, atol=1e-9
        )

    def test_image_unchanged(self, single_staff_sheet, page_image):
        result = TargetBuilder(single_staff_sheet, page_image).build_info()
        np.testing.assert_array_equal(result.image, page_image)

    def test_threaded_config_same_image(self, single_staff_sheet, page_image):
        config = DewarpConfig(grid_workers=3, resample_workers=3, batch_rows=2, band_height=16)
        result = TargetBuilder(single_staff_sheet, page_image, config).build_info()
        np.testing.assert_array_equal(result.image, page_image)

    def test_grid_step_override(self, single_staff_sheet, page_image):
        config = DewarpConfig(grid_step=10)
        result = TargetBuilder(single_staff_sheet, page_image, config).build_info()
        assert result.warp_grid.x_step == 10
        assert result.warp_grid.x_num_cells == 30


class TestSkewedPage:
    def test_target_size(self, skewed_page):
        sheet, img = skewed_page
        result = TargetBuilder(sheet, img).build_info()
        c, s = math.cos(math.atan(0.1)), math.sin(math.atan(0.1))
        assert result.deskew.angle_degrees == pytest.approx(-5.7106, abs=1e-4)
        assert result.target_page.width == pytest.approx(1000 * c + 1400 * s)
        assert result.target_page.height == pytest.approx(1400 * c + 1000 * s)
        assert result.image.shape == (
            math.ceil(1400 * c + 1000 * s),
            math.ceil(1000 * c + 1400 * s),
        )

    def test_staff_lines_become_horizontal(self, skewed_page):
        sheet, img = skewed_page
        result = TargetBuilder(sheet, img).build_info()
        system = result.target_page.systems[0]
        for line in result.target_page.lines:
            row = int(round(line.y))
            for x in np.linspace(system.left + 40, system.right - 40, 6):
                assert result.image[row, int(x)] < 64

    def test_corners_are_background(self, skewed_page):
        sheet, img = skewed_page
        result = TargetBuilder(sheet, img).build_info()
        assert result.image[0, 0] == 255
        assert result.image[-1, -1] == 255


class TestFailures:
    def test_image_size_mismatch(self, single_staff_sheet):
        with pytest.raises(ValidationError):
            TargetBuilder(single_staff_sheet, np.zeros((10, 10), dtype=np.uint8)).build_info()

    def test_structural_error_aborts_page(self, sheet_factory, page_image):
        sheet = sheet_factory([])
        with pytest.raises(StructuralInconsistencyError):
            TargetBuilder(sheet, page_image).build_info()

    def test_cancelled(self, single_staff_sheet, page_image):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ProcessingCancelledError):
            TargetBuilder(single_staff_sheet, page_image, cancel_event=cancel).build_info()


class TestStoreImage:
    def test_store_dewarp(self, single_staff_sheet, page_image, tmp_path):
        config = DewarpConfig(store_dewarp=True, output_dir=tmp_path / "out")
        result = TargetBuilder(single_staff_sheet, page_image, config).build_info()
        assert result.stored_path == tmp_path / "out" / "single.dewarped.png"
        stored = cv2.imread(str(result.stored_path), cv2.IMREAD_UNCHANGED)
        np.testing.assert_array_equal(stored, page_image)

    def test_not_stored_by_default(self, single_staff_sheet, page_image):
        result = TargetBuilder(single_staff_sheet, page_image).build_info()
        assert result.stored_path is None

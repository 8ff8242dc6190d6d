"""Pytest configuration for scoredewarp tests.

Provides small factories for detected staff geometry: straight (optionally
sloped) staff lines sampled every few pixels, staves and sheets built
from them.
"""

import json

import cv2
import numpy as np
import pytest

from scoredewarp.services.detected_geometry import (
    DetectedLine,
    DetectedSheet,
    DetectedStaff,
    DetectedSystem,
)


def make_line(y0, x0=20.0, x1=280.0, slope=0.0, step=10.0):
    """Straight line y = y0 + slope * x sampled from x0 to x1."""
    xs = np.arange(x0, x1 + step / 2, step, dtype=np.float64)
    return DetectedLine(np.column_stack([xs, y0 + slope * xs]))


def make_staff(top, interline=20.0, n_lines=5, **line_kwargs):
    lines = tuple(make_line(top + i * interline, **line_kwargs) for i in range(n_lines))
    return DetectedStaff(lines, interline)


def make_sheet(systems, width=300, height=200, interline=20, slope=0.0, page_id="test"):
    """Sheet from a list of systems, each a list of DetectedStaff."""
    return DetectedSheet(
        width=width,
        height=height,
        interline=interline,
        global_slope=slope,
        systems=tuple(DetectedSystem(tuple(staves)) for staves in systems),
        page_id=page_id,
    )


@pytest.fixture
def line_factory():
    return make_line


@pytest.fixture
def staff_factory():
    return make_staff


@pytest.fixture
def sheet_factory():
    return make_sheet


@pytest.fixture
def single_staff_sheet():
    """One system, one staff, 5 lines, interline 20, zero slope, 300×200."""
    return make_sheet([[make_staff(100.0)]], page_id="single")


@pytest.fixture
def page_image():
    """300×200 white page with five black staff lines at y = 100..180."""
    img = np.full((200, 300), 255, dtype=np.uint8)
    for i in range(5):
        img[100 + 20 * i, 20:281] = 0
    img[60:95, 140:150] = 90  # a stem-like mark above the staff
    return img


def page_description(sheet, image_name):
    """JSON-ready page description of a sheet, as written by staff detection."""
    return {
        "page_id": sheet.page_id,
        "image": image_name,
        "interline": sheet.interline,
        "global_slope": sheet.global_slope,
        "systems": [
            {
                "staves": [
                    {
                        "interline": staff.interline,
                        "lines": [line.points.tolist() for line in staff.lines],
                    }
                    for staff in system.staves
                ]
            }
            for system in sheet.systems
        ],
    }


@pytest.fixture
def page_file(tmp_path, single_staff_sheet, page_image):
    """single_staff_sheet and page_image written to tmp_path/pages/."""
    pages = tmp_path / "pages"
    pages.mkdir()
    cv2.imwrite(str(pages / "single.png"), page_image)
    path = pages / "single.json"
    path.write_text(json.dumps(page_description(single_staff_sheet, "single.png")))
    return path

"""Debug overlays: system frames and warp grid points."""

from __future__ import annotations

import cv2
import numpy as np

from scoredewarp.constants import GRID_POINT_FRACTION
from scoredewarp.services.detected_geometry import DetectedSheet, HorizontalSide
from scoredewarp.services.warp_grid import WarpGrid

_YELLOW = (0, 255, 255)
_RED = (0, 0, 255)


def _to_bgr(image: np.ndarray) -> np.ndarray:
    if image.dtype != np.uint8:
        image = (image >> 8).astype(np.uint8)
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image.copy()


def render_systems(image: np.ndarray, sheet: DetectedSheet) -> np.ndarray:
    """Draw the left and right frame line of every detected system."""
    canvas = _to_bgr(image)
    for system in sheet.systems:
        for side in HorizontalSide:
            top = system.first_staff.first_line.endpoint(side)
            bottom = system.last_staff.last_line.endpoint(side)
            cv2.line(
                canvas,
                tuple(int(round(v)) for v in top),
                tuple(int(round(v)) for v in bottom),
                _YELLOW,
                1,
                cv2.LINE_AA,
            )
    return canvas


def render_warp_grid(
    image: np.ndarray,
    grid: WarpGrid,
    use_source: bool = False,
    radius: int | None = None,
) -> np.ndarray:
    """Draw the warp grid points.

    Args:
        image: Raster to draw on (source image for source points,
            dewarped image for destination points)
        grid: The warp grid
        use_source: True to draw source points, False for destination points
        radius: Point radius in pixels, default a fifth of the grid step
    """
    canvas = _to_bgr(image)
    points = grid.src_points if use_source else grid.dst_points
    if radius is None:
        radius = max(1, int(round(grid.x_step * GRID_POINT_FRACTION)))
    for x, y in np.rint(points).astype(int):
        cv2.circle(canvas, (int(x), int(y)), radius, _RED, -1)
    return canvas

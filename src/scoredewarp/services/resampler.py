"""Dewarp a raster through a warp grid.

Every destination pixel falls in one grid cell.  Its source position is
the bilinear blend of the four cell-corner source points, weighted by the
fractional column/row position of the pixel inside the cell.  The source
raster is then sampled bilinearly at that position (cv2.remap).

Pixel values are inverted before warping and inverted back afterwards:
samples taken outside the source raster read the constant 0, which after
the second inversion is page background instead of a dark border.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor

import cv2
import numpy as np

from scoredewarp.constants import DEFAULT_BAND_HEIGHT_PX, EXTENT_ROUNDING_EPS, OUT_OF_RANGE_VALUE
from scoredewarp.services.warp_grid import WarpGrid
from scoredewarp.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

# cv2.remap sample types
_SUPPORTED_DTYPES = (np.uint8, np.uint16)


def target_size(width: float, height: float) -> tuple[int, int]:
    """Whole-pixel (width, height) of a target page."""
    return (
        math.ceil(width - EXTENT_ROUNDING_EPS),
        math.ceil(height - EXTENT_ROUNDING_EPS),
    )


def check_raster(image: np.ndarray) -> None:
    """Validate a raster for inversion and remapping.

    Raises:
        ValidationError: If the raster is not a 2-D/3-D uint8 or uint16 array
    """
    if not isinstance(image, np.ndarray) or image.ndim not in (2, 3):
        raise ValidationError("image", reason="expected a 2-D or 3-D numpy array")
    if image.dtype not in _SUPPORTED_DTYPES:
        raise ValidationError("image", str(image.dtype), "expected uint8 or uint16 pixels")
    if image.ndim == 3 and image.shape[2] > 4:
        raise ValidationError("image", str(image.shape), "at most 4 channels are supported")


def invert(image: np.ndarray) -> np.ndarray:
    """Invert pixel polarity (max - value)."""
    check_raster(image)
    return np.iinfo(image.dtype).max - image


def _axis_weights(size: int, start: int, step: int, num_cells: int) -> tuple[np.ndarray, np.ndarray]:
    """Enclosing cell index and fractional position for each pixel on one axis."""
    pos = np.arange(size, dtype=np.float64) - start
    cell = np.clip(np.floor(pos / step).astype(np.intp), 0, num_cells - 1)
    frac = (pos - cell * step) / step
    return cell, frac


class _GridInterpolator:
    """Per-pixel source positions, interpolated from the grid band by band."""

    def __init__(self, grid: WarpGrid, width: int, height: int) -> None:
        src = grid.source_grid()
        cx, fx = _axis_weights(width, grid.x_start, grid.x_step, grid.x_num_cells)
        # Interpolate along x once on every grid row
        left = src[:, cx]
        self._rows = left + fx[None, :, None] * (src[:, cx + 1] - left)
        self._cy, self._fy = _axis_weights(height, grid.y_start, grid.y_step, grid.y_num_cells)

    def maps(self, y0: int, y1: int) -> tuple[np.ndarray, np.ndarray]:
        """(map_x, map_y) float32 arrays for destination rows y0 to y1."""
        cy = self._cy[y0:y1]
        north = self._rows[cy]
        dense = north + self._fy[y0:y1, None, None] * (self._rows[cy + 1] - north)
        return dense[..., 0].astype(np.float32), dense[..., 1].astype(np.float32)


def build_remap(grid: WarpGrid, width: int, height: int) -> tuple[np.ndarray, np.ndarray]:
    """Dense source maps of a whole width × height destination.

    Returns:
        (map_x, map_y) float32 arrays of shape (height, width)
    """
    return _GridInterpolator(grid, width, height).maps(0, height)


def warp_image(
    image: np.ndarray,
    grid: WarpGrid,
    width: int,
    height: int,
    *,
    border_value: int = OUT_OF_RANGE_VALUE,
    workers: int = 1,
    band_height: int = DEFAULT_BAND_HEIGHT_PX,
) -> np.ndarray:
    """Bilinear warp of image through grid into a width × height raster.

    Destination bands are independent and may be remapped on a thread pool.
    """
    check_raster(image)
    interpolator = _GridInterpolator(grid, width, height)
    out = np.empty((height, width) + image.shape[2:], dtype=image.dtype)

    def remap_band(y0: int) -> None:
        y1 = min(y0 + band_height, height)
        map_x, map_y = interpolator.maps(y0, y1)
        band = cv2.remap(
            image,
            map_x,
            map_y,
            cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=(border_value,) * 4,
        )
        out[y0:y1] = band.reshape(out[y0:y1].shape)

    starts = range(0, height, band_height)
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            list(executor.map(remap_band, starts))
    else:
        for y0 in starts:
            remap_band(y0)
    return out


def dewarp_image(
    image: np.ndarray,
    grid: WarpGrid,
    width: int,
    height: int,
    *,
    invert_polarity: bool = True,
    workers: int = 1,
    band_height: int = DEFAULT_BAND_HEIGHT_PX,
) -> np.ndarray:
    """Produce the dewarped raster of a target page.

    Args:
        image: Source raster (grayscale or colour, uint8 or uint16)
        grid: Warp grid of the target page
        width: Destination width in pixels
        height: Destination height in pixels
        invert_polarity: Warp the inverted raster so exposed areas become background
        workers: Threads remapping destination bands
        band_height: Destination rows per band

    Returns:
        The dewarped raster, same dtype and channel count as image
    """
    check_raster(image)
    if invert_polarity:
        warped = warp_image(
            invert(image), grid, width, height, workers=workers, band_height=band_height
        )
        result = invert(warped)
    else:
        result = warp_image(
            image,
            grid,
            width,
            height,
            border_value=int(np.iinfo(image.dtype).max),
            workers=workers,
            band_height=band_height,
        )

    logger.debug(f"Dewarped {image.shape[1]}×{image.shape[0]} → {width}×{height}")
    return result

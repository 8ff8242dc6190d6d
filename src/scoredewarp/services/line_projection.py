"""Projection of idealized points back onto the original image.

For a destination point (x, y) of the target page, the source point is
derived from the two target lines that bracket y vertically.  Each of
them is projected back onto its originally detected (curved) line at
the deskewed abscissa x, and the two projections are blended by the
vertical position of y between the lines.

Above the first line and below the last line, the single nearest line
is used and the vertical distance to it is kept, measured along the
source-space direction of the idealized vertical axis.
"""

from __future__ import annotations

import logging

import numpy as np

from scoredewarp.services.deskew import DeskewTransform
from scoredewarp.services.detected_geometry import DetectedLine, DetectedSheet
from scoredewarp.services.target_model import TargetLine, TargetPage
from scoredewarp.utils.exceptions import DegenerateGeometryError, StructuralInconsistencyError

logger = logging.getLogger(__name__)


class LineProjector:
    """Answers "which source point lies at deskewed abscissa x on this line".

    The detected samples are deskewed once; a query interpolates linearly
    between the two samples whose deskewed abscissas bracket x.  Outside
    the sampled span the nearest end segment is extended linearly.
    """

    def __init__(self, line: DetectedLine, deskew: DeskewTransform) -> None:
        src = line.points
        dsk_x = deskew.apply(src)[:, 0]

        order = np.argsort(dsk_x, kind="stable")
        dsk_x, src = dsk_x[order], src[order]
        dsk_x, keep = np.unique(dsk_x, return_index=True)
        src = src[keep]

        if len(dsk_x) < 2:
            raise DegenerateGeometryError(
                "staff line spans a single deskewed abscissa", float(dsk_x[0])
            )

        self._dsk_x = dsk_x
        self._src = src

    @property
    def span(self) -> tuple[float, float]:
        """Deskewed abscissa range covered by the detected samples."""
        return float(self._dsk_x[0]), float(self._dsk_x[-1])

    def source_of(self, x: float | np.ndarray) -> np.ndarray:
        """Source point(s) on the detected line at deskewed abscissa x.

        Args:
            x: Scalar or 1-D array of deskewed abscissas

        Returns:
            (2,) array for a scalar x, (N, 2) array otherwise
        """
        xs = np.atleast_1d(np.asarray(x, dtype=np.float64))
        hi = np.clip(np.searchsorted(self._dsk_x, xs, side="right"), 1, len(self._dsk_x) - 1)
        lo = hi - 1

        x0 = self._dsk_x[lo]
        t = (xs - x0) / (self._dsk_x[hi] - x0)
        p0 = self._src[lo]
        result = p0 + t[:, None] * (self._src[hi] - p0)
        return result[0] if np.ndim(x) == 0 else result


class SourceLocator:
    """Maps destination points of the target page to source image points."""

    def __init__(self, page: TargetPage, sheet: DetectedSheet, deskew: DeskewTransform) -> None:
        self._lines = page.lines
        if not self._lines:
            raise StructuralInconsistencyError("target page has no line")

        self._ys = np.array([line.y for line in self._lines], dtype=np.float64)
        if np.any(np.diff(self._ys) <= 0):
            raise StructuralInconsistencyError("target lines are not sorted by ascending y")

        self._projectors = [
            LineProjector(sheet.line(*line.detected_id), deskew) for line in self._lines
        ]
        # Source-space direction of a unit step down the idealized page
        self._down = deskew.inverse_vector(np.array([0.0, 1.0]))

    @property
    def lines(self) -> tuple[TargetLine, ...]:
        return self._lines

    def bracket(self, y: float) -> tuple[int | None, int | None]:
        """Indices of the north and south lines, north.y <= y < south.y."""
        south = int(np.searchsorted(self._ys, y, side="right"))
        north = south - 1 if south > 0 else None
        return north, (south if south < len(self._ys) else None)

    def line_source_of(self, index: int, x: float | np.ndarray) -> np.ndarray:
        """Projection of deskewed abscissa x onto target line number index."""
        return self._projectors[index].source_of(x)

    def sources_of(self, xs: np.ndarray, y: float) -> np.ndarray:
        """Source points for a row of destination points sharing the same y.

        Args:
            xs: 1-D array of destination abscissas
            y: Destination ordinate

        Returns:
            (N, 2) float64 array of source points
        """
        xs = np.asarray(xs, dtype=np.float64)
        north, south = self.bracket(y)

        # Image top or bottom: follow the single nearest line
        if north is None or south is None:
            index = south if north is None else north
            offset = (y - self._ys[index]) * self._down
            return self.line_source_of(index, xs) + offset

        src_north = self.line_source_of(north, xs)
        src_south = self.line_source_of(south, xs)
        y_ratio = (y - self._ys[north]) / (self._ys[south] - self._ys[north])
        return (1 - y_ratio) * src_north + y_ratio * src_south

    def source_of(self, x: float, y: float) -> np.ndarray:
        """Source point of a single destination point, as a (2,) array."""
        return self.sources_of(np.array([x]), y)[0]

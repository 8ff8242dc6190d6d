"""Sparse destination → source correspondence grid.

The grid samples the target page on a regular lattice whose step is the
page interline, both horizontally and vertically.  Each node stores its
destination point and the matching source point, flattened row-major.
Bilinear interpolation between nodes is accurate enough because the
mapping follows the smooth staff lines.

Grid rows are independent of each other: every row reads only the
finished, immutable target lines.  Rows are computed in batches, which
may run on a thread pool; a cancellation token is checked between
batches.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from scoredewarp.constants import DEFAULT_GRID_BATCH_ROWS, MIN_GRID_STEP_PX
from scoredewarp.services.line_projection import SourceLocator
from scoredewarp.services.target_model import TargetPage
from scoredewarp.utils.exceptions import DegenerateGeometryError, ProcessingCancelledError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class WarpGrid:
    """Regular warp grid.

    Nodes are (x_start + col * x_step, y_start + row * y_step) for
    0 <= col <= x_num_cells and 0 <= row <= y_num_cells.

    Attributes:
        dst_points: (rows * cols, 2) destination points, row-major.
        src_points: (rows * cols, 2) source points, row-major.
    """

    x_start: int
    x_step: int
    x_num_cells: int
    y_start: int
    y_step: int
    y_num_cells: int
    dst_points: np.ndarray
    src_points: np.ndarray

    @property
    def shape(self) -> tuple[int, int]:
        """(rows, columns) of grid nodes."""
        return self.y_num_cells + 1, self.x_num_cells + 1

    def source_grid(self) -> np.ndarray:
        """Source points as a (rows, columns, 2) array."""
        return self.src_points.reshape(*self.shape, 2)

    def source_at(self, row: int, col: int) -> np.ndarray:
        return self.src_points[row * (self.x_num_cells + 1) + col]

    def positions(self) -> np.ndarray:
        """Interleaved [x0, y0, x1, y1, ...] float32 source positions."""
        return self.src_points.astype(np.float32).ravel()

    @classmethod
    def identity(cls, width: int, height: int, step: int) -> WarpGrid:
        """Grid whose source points equal their destination points."""
        x_cells = math.ceil(width / step)
        y_cells = math.ceil(height / step)
        dst = _node_points(step, x_cells, y_cells)
        return cls(0, step, x_cells, 0, step, y_cells, _frozen(dst), _frozen(dst.copy()))


def _node_points(step: int, x_cells: int, y_cells: int) -> np.ndarray:
    gy, gx = np.mgrid[0 : y_cells + 1, 0 : x_cells + 1]
    return np.column_stack([gx.ravel() * step, gy.ravel() * step]).astype(np.float64)


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


def _row_batches(rows: int, batch_rows: int) -> Iterator[range]:
    for start in range(0, rows, batch_rows):
        yield range(start, min(start + batch_rows, rows))


def build_warp_grid(
    page: TargetPage,
    locator: SourceLocator,
    step: int,
    *,
    workers: int = 1,
    batch_rows: int = DEFAULT_GRID_BATCH_ROWS,
    cancel_event: threading.Event | None = None,
) -> WarpGrid:
    """Sample the target page and locate every node in the source image.

    Args:
        page: The finished target page
        locator: Source locator built on that page
        step: Grid step in pixels (both axes)
        workers: Threads computing row batches (1 = in-thread)
        batch_rows: Rows per batch
        cancel_event: Optional cooperative cancellation token

    Returns:
        The warp grid

    Raises:
        DegenerateGeometryError: If step is too small
        ProcessingCancelledError: If cancel_event gets set
    """
    if step < MIN_GRID_STEP_PX:
        raise DegenerateGeometryError(f"warp grid step below {MIN_GRID_STEP_PX}px", step)

    x_cells = math.ceil(page.width / step)
    y_cells = math.ceil(page.height / step)
    cols = x_cells + 1
    dst = _node_points(step, x_cells, y_cells)
    src = np.empty_like(dst)
    xs = dst[:cols, 0]

    def compute(batch: range) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ProcessingCancelledError("warp grid construction")
        for row in batch:
            src[row * cols : (row + 1) * cols] = locator.sources_of(xs, float(row * step))

    batches = list(_row_batches(y_cells + 1, batch_rows))
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            for future in [executor.submit(compute, batch) for batch in batches]:
                future.result()
    else:
        for batch in batches:
            compute(batch)

    logger.debug(
        f"Warp grid: step={step}px, {cols}×{y_cells + 1} nodes, {len(batches)} batches"
    )
    return WarpGrid(0, step, x_cells, 0, step, y_cells, _frozen(dst), _frozen(src))

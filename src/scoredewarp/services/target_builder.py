"""One-page dewarp orchestration.

Class TargetBuilder is in charge of building a perfect definition of
target systems, staves and lines, the dewarp grid that maps the target
page back onto the original image, and the dewarped image itself.

Stages run strictly in order, each consuming the finished output of the
previous one:

    deskew → target model → warp grid → dewarped image

Any geometric failure aborts the page: no partial image is produced.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from scoredewarp.config import DewarpConfig
from scoredewarp.constants import DEWARPED_SUFFIX
from scoredewarp.services.deskew import DeskewTransform, compute_deskew
from scoredewarp.services.detected_geometry import DetectedSheet
from scoredewarp.services.line_projection import SourceLocator
from scoredewarp.services.resampler import check_raster, dewarp_image, target_size
from scoredewarp.services.target_model import TargetPage, build_target_page
from scoredewarp.services.warp_grid import WarpGrid, build_warp_grid
from scoredewarp.utils.exceptions import ProcessingCancelledError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class DewarpResult:
    """Everything produced for one page."""

    deskew: DeskewTransform
    target_page: TargetPage
    warp_grid: WarpGrid
    image: np.ndarray
    stored_path: Path | None = None


class TargetBuilder:
    """Builds target model, warp grid and dewarped image of one sheet."""

    def __init__(
        self,
        sheet: DetectedSheet,
        image: np.ndarray,
        config: DewarpConfig | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.sheet = sheet
        self.image = image
        self.config = config or DewarpConfig()
        self.cancel_event = cancel_event

    def build_target(self) -> tuple[DeskewTransform, TargetPage]:
        """Compute the deskew and the idealized page."""
        deskew = compute_deskew(self.sheet.global_slope, self.sheet.width, self.sheet.height)
        return deskew, build_target_page(self.sheet, deskew)

    def build_warp_grid(self, deskew: DeskewTransform, page: TargetPage) -> WarpGrid:
        locator = SourceLocator(page, self.sheet, deskew)
        return build_warp_grid(
            page,
            locator,
            self.config.resolve_grid_step(self.sheet.interline),
            workers=self.config.grid_workers,
            batch_rows=self.config.batch_rows,
            cancel_event=self.cancel_event,
        )

    def build_info(self) -> DewarpResult:
        """Run all stages for the page.

        Returns:
            The page dewarp result

        Raises:
            ScoreDewarpError: Any structural, geometric or validation failure
        """
        self._check_image()
        t0 = time.perf_counter()

        deskew, page = self.build_target()
        t_target = time.perf_counter()

        grid = self.build_warp_grid(deskew, page)
        t_grid = time.perf_counter()

        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ProcessingCancelledError("image resampling")

        # Dewarp the initial image
        width, height = target_size(page.width, page.height)
        image = dewarp_image(
            self.image,
            grid,
            width,
            height,
            invert_polarity=self.config.invert_polarity,
            workers=self.config.resample_workers,
            band_height=self.config.band_height,
        )
        t_image = time.perf_counter()

        logger.info(
            f"Page {self.sheet.page_id}: deskew {deskew.angle_degrees:+.2f}°, "
            f"target {width}×{height}, grid {grid.shape[1]}×{grid.shape[0]} "
            f"(model {t_target - t0:.3f}s, grid {t_grid - t_target:.3f}s, "
            f"image {t_image - t_grid:.3f}s)"
        )

        stored = None
        # Store dewarped image on disk
        if self.config.store_dewarp:
            stored = self.store_image(image)

        return DewarpResult(deskew, page, grid, image, stored)

    def store_image(self, image: np.ndarray) -> Path:
        """Write the dewarped image as <output_dir>/<page_id>.dewarped.png.

        Raises:
            OSError: If the image can't be written
        """
        path = self.config.output_dir / f"{self.sheet.page_id}{DEWARPED_SUFFIX}"
        path.parent.mkdir(parents=True, exist_ok=True)
        if not cv2.imwrite(str(path), image):
            raise OSError(f"Could not write {path}")
        logger.info(f"Wrote {path}")
        return path

    def _check_image(self) -> None:
        check_raster(self.image)
        h, w = self.image.shape[:2]
        if (w, h) != (self.sheet.width, self.sheet.height):
            raise ValidationError(
                "image",
                f"{w}x{h}",
                f"does not match sheet size {self.sheet.width}x{self.sheet.height}",
            )

"""
Page-level worker functions for parallel dewarping.

Each page is processed independently: a worker loads the page
description and image, builds its own deskew, target model and warp
grid, and writes the dewarped image.  Nothing mutable is shared between
pages, so pages run in separate processes via ProcessPoolExecutor.
"""

import logging
import os
import signal
from collections.abc import Callable
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from scoredewarp.config import DewarpConfig
from scoredewarp.constants import OVERLAY_SUFFIX, SYSTEMS_OVERLAY_SUFFIX
from scoredewarp.services.overlay import render_systems, render_warp_grid
from scoredewarp.services.sheet_io import load_page
from scoredewarp.services.target_builder import TargetBuilder
from scoredewarp.utils.exceptions import ScoreDewarpError

logger = logging.getLogger(__name__)


@dataclass
class PageOutcome:
    """Picklable summary of one processed page."""

    source: str
    page_id: str = ""
    ok: bool = False
    error: str = ""
    output_path: str = ""
    overlay_path: str = ""
    systems_overlay_path: str = ""
    width: int = 0
    height: int = 0
    angle_degrees: float = 0.0
    num_lines: int = 0


def worker_init() -> None:
    """Initializer for ProcessPoolExecutor worker processes.

    Called once per worker process at startup. Performs:
    - Ignore SIGINT so only the main process handles Ctrl+C
    - Set low CPU priority to avoid impacting the desktop
    - Keep OpenCV from spawning its own thread pool in every worker
    """
    signal.signal(signal.SIGINT, signal.SIG_IGN)

    try:
        os.nice(10)
    except OSError:
        pass  # nice() may fail in some containerised environments

    cv2.setNumThreads(1)


def _write_overlay(path: Path, canvas: np.ndarray) -> str:
    if not cv2.imwrite(str(path), canvas):
        raise OSError(f"Could not write {path}")
    return str(path)


def process_page(page_path: str, config: DewarpConfig, overlay: bool = False) -> PageOutcome:
    """Dewarp one page description and store the result.

    Args:
        page_path: JSON page description
        config: Dewarp configuration (store_dewarp is forced on)
        overlay: Also write the dewarped image with destination grid points
            and the source image with system frames

    Returns:
        Outcome of the page; failures are reported, not raised
    """
    outcome = PageOutcome(source=page_path)
    try:
        sheet, image = load_page(page_path)
        outcome.page_id = sheet.page_id
        builder = TargetBuilder(sheet, image, config.with_overrides(store_dewarp=True))
        result = builder.build_info()

        if overlay:
            outcome.overlay_path = _write_overlay(
                config.output_dir / f"{sheet.page_id}{OVERLAY_SUFFIX}",
                render_warp_grid(result.image, result.warp_grid),
            )
            outcome.systems_overlay_path = _write_overlay(
                config.output_dir / f"{sheet.page_id}{SYSTEMS_OVERLAY_SUFFIX}",
                render_systems(image, sheet),
            )
    except (ScoreDewarpError, OSError) as e:
        logger.error(f"Page {page_path} failed: {e}")
        outcome.error = str(e)
        return outcome

    outcome.ok = True
    outcome.output_path = str(result.stored_path)
    outcome.height, outcome.width = result.image.shape[:2]
    outcome.angle_degrees = result.deskew.angle_degrees
    outcome.num_lines = len(result.target_page.lines)
    return outcome


def dewarp_pages(
    page_paths: list[str | Path],
    config: DewarpConfig,
    overlay: bool = False,
    progress_callback: Callable[[int, int, PageOutcome], None] | None = None,
) -> list[PageOutcome]:
    """Dewarp several pages, in parallel when config.page_workers > 1.

    Returns:
        One outcome per page, in input order
    """
    paths = [str(p) for p in page_paths]
    total = len(paths)
    outcomes: list[PageOutcome] = []

    if config.page_workers > 1 and total > 1:
        workers = min(config.page_workers, total)
        logger.info(f"Dewarping {total} pages with {workers} worker processes")
        with ProcessPoolExecutor(max_workers=workers, initializer=worker_init) as executor:
            futures = [executor.submit(process_page, p, config, overlay) for p in paths]
            for done, future in enumerate(futures, start=1):
                outcomes.append(future.result())
                if progress_callback:
                    progress_callback(done, total, outcomes[-1])
    else:
        for done, path in enumerate(paths, start=1):
            outcomes.append(process_page(path, config, overlay))
            if progress_callback:
                progress_callback(done, total, outcomes[-1])

    failed = sum(1 for o in outcomes if not o.ok)
    if failed:
        logger.warning(f"{failed} of {total} page(s) failed")
    return outcomes

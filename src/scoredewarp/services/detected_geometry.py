"""Detected staff geometry as handed over by line detection.

These types model the output of the staff-line and bar-line detection
stages: systems own staves, staves own lines, and every line is an
ordered polyline in original (skewed, possibly curved) image coordinates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from scoredewarp.utils.exceptions import StructuralInconsistencyError


class HorizontalSide(Enum):
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True, eq=False)
class DetectedLine:
    """One detected staff line.

    Attributes:
        points: (N, 2) float64 samples ordered left to right, N >= 2.
    """

    points: np.ndarray

    def __post_init__(self) -> None:
        pts = np.array(self.points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] != 2 or len(pts) < 2:
            raise StructuralInconsistencyError(
                f"a staff line needs at least 2 (x, y) samples, got shape {pts.shape}"
            )
        pts.setflags(write=False)
        object.__setattr__(self, "points", pts)

    def endpoint(self, side: HorizontalSide) -> np.ndarray:
        """Get the left-most or right-most sample."""
        return self.points[0] if side is HorizontalSide.LEFT else self.points[-1]


@dataclass(frozen=True)
class DetectedStaff:
    """A staff with its locally fitted interline."""

    lines: tuple[DetectedLine, ...]
    interline: float

    @property
    def first_line(self) -> DetectedLine:
        return self.lines[0]

    @property
    def last_line(self) -> DetectedLine:
        return self.lines[-1]


@dataclass(frozen=True)
class DetectedSystem:
    staves: tuple[DetectedStaff, ...]

    @property
    def first_staff(self) -> DetectedStaff:
        return self.staves[0]

    @property
    def last_staff(self) -> DetectedStaff:
        return self.staves[-1]


@dataclass(frozen=True)
class DetectedSheet:
    """Everything known about a page before dewarping.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        interline: Page nominal interline in pixels (warp grid step).
        global_slope: Tangent of the global staff-line angle.
        systems: Systems in reading order.
        page_id: Identifier used to name stored images.
    """

    width: int
    height: int
    interline: int
    global_slope: float
    systems: tuple[DetectedSystem, ...] = field(default_factory=tuple)
    page_id: str = "page"

    def line(self, system: int, staff: int, line: int) -> DetectedLine:
        """Resolve a (system, staff, line) index triple."""
        return self.systems[system].staves[staff].lines[line]

    def validate_structure(self) -> None:
        """Check that no collection in the hierarchy is empty.

        Raises:
            StructuralInconsistencyError: On the first empty collection found
        """
        if not self.systems:
            raise StructuralInconsistencyError("sheet has no system", self.page_id)
        for si, system in enumerate(self.systems):
            if not system.staves:
                raise StructuralInconsistencyError("system has no staff", f"system {si}")
            for sti, staff in enumerate(system.staves):
                if not staff.lines:
                    raise StructuralInconsistencyError(
                        "staff has no line", f"system {si}, staff {sti}"
                    )

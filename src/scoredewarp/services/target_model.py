"""Idealized target page: perfectly straight, evenly spaced staves.

The target model keeps the overall layout of the detected page while
removing skew and local curvature:

- Systems and staves keep the relative offsets measured in deskewed
  space, carried forward from the previously built line so that
  neighbours remain visually contiguous.
- Within a staff, lines are exactly one staff interline apart.

All structures are immutable and refer to their parents and to the
detected geometry by index only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from scoredewarp.services.deskew import DeskewTransform
from scoredewarp.services.detected_geometry import DetectedSheet, HorizontalSide
from scoredewarp.utils.exceptions import DegenerateGeometryError, StructuralInconsistencyError

logger = logging.getLogger(__name__)

LEFT = HorizontalSide.LEFT
RIGHT = HorizontalSide.RIGHT


@dataclass(frozen=True)
class TargetLine:
    """An idealized staff line.

    Attributes:
        y: Idealized ordinate.
        index: Line index within its staff.
        staff_index: Staff index within its system.
        system_index: Index of the owning system.
    """

    y: float
    index: int
    staff_index: int
    system_index: int

    @property
    def detected_id(self) -> tuple[int, int, int]:
        """(system, staff, line) indices of the originally detected line."""
        return self.system_index, self.staff_index, self.index


@dataclass(frozen=True)
class TargetStaff:
    top: float
    interline: float
    index: int
    system_index: int
    lines: tuple[TargetLine, ...]


@dataclass(frozen=True)
class TargetSystem:
    top: float
    left: float
    right: float
    index: int
    staves: tuple[TargetStaff, ...]


@dataclass(frozen=True)
class TargetPage:
    width: float
    height: float
    systems: tuple[TargetSystem, ...]

    @property
    def lines(self) -> tuple[TargetLine, ...]:
        """All target lines in reading order (ascending y)."""
        return tuple(
            line for system in self.systems for staff in system.staves for line in staff.lines
        )

    @property
    def staves(self) -> tuple[TargetStaff, ...]:
        return tuple(staff for system in self.systems for staff in system.staves)


class _CarryForward(NamedTuple):
    """State of the previously built line, threaded through the build pass."""

    line_y: float
    system_right: float
    deskewed_right: np.ndarray


def _shift(point: np.ndarray, carry: _CarryForward | None, *, horizontal: bool) -> np.ndarray:
    """Translate a deskewed point by the drift measured on the previous line."""
    if carry is None:
        return point
    dy = carry.line_y - carry.deskewed_right[1]
    dx = carry.system_right - carry.deskewed_right[0] if horizontal else 0.0
    return point + np.array([dx, dy])


def build_target_page(sheet: DetectedSheet, deskew: DeskewTransform) -> TargetPage:
    """Build the idealized page from detected geometry.

    Args:
        sheet: Detected systems, staves and lines in reading order
        deskew: The sheet deskew transform

    Returns:
        The target page

    Raises:
        StructuralInconsistencyError: On empty collections or lines out of order
        DegenerateGeometryError: On a non-positive staff interline
    """
    sheet.validate_structure()

    carry: _CarryForward | None = None
    systems: list[TargetSystem] = []

    for si, system in enumerate(sheet.systems):
        first_line = system.first_staff.first_line
        dsk_left = _shift(deskew.apply(first_line.endpoint(LEFT)), carry, horizontal=True)
        dsk_right = _shift(deskew.apply(first_line.endpoint(RIGHT)), carry, horizontal=True)
        system_top = float(dsk_right[1])
        system_left = float(dsk_left[0])
        system_right = float(dsk_right[0])

        staves: list[TargetStaff] = []
        for sti, staff in enumerate(system.staves):
            if not staff.interline > 0:
                raise DegenerateGeometryError(
                    f"staff {sti} of system {si} has no positive interline", staff.interline
                )
            # Preserve inter-staff vertical gap
            dsk_right = _shift(
                deskew.apply(staff.first_line.endpoint(RIGHT)), carry, horizontal=False
            )
            staff_top = float(dsk_right[1])

            lines: list[TargetLine] = []
            for li, line in enumerate(staff.lines):
                # Enforce perfect staff interline
                y = staff_top + staff.interline * li
                lines.append(TargetLine(y, li, sti, si))
                carry = _CarryForward(y, system_right, deskew.apply(line.endpoint(RIGHT)))

            staves.append(TargetStaff(staff_top, float(staff.interline), sti, si, tuple(lines)))

        systems.append(TargetSystem(system_top, system_left, system_right, si, tuple(staves)))

    page = TargetPage(deskew.width, deskew.height, tuple(systems))
    _check_reading_order(page)

    logger.info(
        f"Target page {page.width:.0f}×{page.height:.0f}: {len(page.systems)} systems, "
        f"{len(page.staves)} staves, {len(page.lines)} lines"
    )
    return page


def _check_reading_order(page: TargetPage) -> None:
    ys = np.array([line.y for line in page.lines])
    bad = np.flatnonzero(np.diff(ys) <= 0)
    if bad.size:
        line = page.lines[int(bad[0]) + 1]
        raise StructuralInconsistencyError(
            f"target line y={line.y:.2f} does not follow y={ys[bad[0]]:.2f}",
            f"system {line.system_index}, staff {line.staff_index}, line {line.index}",
        )

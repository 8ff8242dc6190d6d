"""Global deskew transform of a sheet.

The deskew is a single rotation, opposite to the measured global staff
line slope, followed by a translation that brings the rotated page back
into non-negative coordinates.  The rotated page bounding box defines
the size of the idealized (target) page.

Both rotation branches are handled explicitly because the corner that
leaves the original bounding box depends on the rotation direction:

    angle <= 0 (counter-clockwise correction): top-right corner moves up
    angle >  0 (clockwise correction):         bottom-left corner moves left
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from scoredewarp.utils.exceptions import DegenerateGeometryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class DeskewTransform:
    """Rotation + translation from original sheet to deskewed coordinates.

    Attributes:
        angle: Rotation angle in radians (= -atan(global slope)).
        dx: Horizontal translation applied after rotation.
        dy: Vertical translation applied after rotation.
        width: Width of the rotated page bounding box.
        height: Height of the rotated page bounding box.
    """

    angle: float
    dx: float
    dy: float
    width: float
    height: float

    @property
    def matrix(self) -> np.ndarray:
        """2×3 affine matrix (rotation then translation)."""
        c, s = math.cos(self.angle), math.sin(self.angle)
        return np.array([[c, -s, self.dx], [s, c, self.dy]], dtype=np.float64)

    @property
    def angle_degrees(self) -> float:
        return math.degrees(self.angle)

    def apply(self, points: np.ndarray) -> np.ndarray:
        """Deskew points.

        Args:
            points: (2,) or (N, 2) array of original coordinates.

        Returns:
            Array of the same shape in deskewed coordinates.
        """
        pts = np.asarray(points, dtype=np.float64)
        m = self.matrix
        return pts @ m[:, :2].T + m[:, 2]

    def inverse(self, points: np.ndarray) -> np.ndarray:
        """Map deskewed points back to original coordinates."""
        pts = np.asarray(points, dtype=np.float64)
        m = self.matrix
        # Rotation part is orthonormal: its inverse is its transpose
        return (pts - m[:, 2]) @ m[:, :2]

    def inverse_vector(self, vector: np.ndarray) -> np.ndarray:
        """Map a deskewed direction vector back to original coordinates."""
        return np.asarray(vector, dtype=np.float64) @ self.matrix[:, :2]


def compute_deskew(global_slope: float, width: int, height: int) -> DeskewTransform:
    """Compute the deskew transform of a width × height sheet.

    Args:
        global_slope: Tangent of the global staff line angle
        width: Original sheet width in pixels
        height: Original sheet height in pixels

    Returns:
        The deskew transform, whose width/height are the extent of the
        rotated page bounding box.

    Raises:
        DegenerateGeometryError: If the input or resulting extent is unusable
    """
    if not math.isfinite(global_slope):
        raise DegenerateGeometryError("global slope is not finite", global_slope)
    if width <= 0 or height <= 0:
        raise DegenerateGeometryError(f"sheet size {width}x{height} is empty")

    angle = -math.atan(global_slope)
    rotation = DeskewTransform(angle, 0.0, 0.0, float(width), float(height))

    top_right, bottom_left, bottom_right = rotation.apply(
        np.array([[width, 0], [0, height], [width, height]], dtype=np.float64)
    )

    dx = 0.0
    dy = 0.0
    if angle <= 0:  # Counter-clockwise deskew
        target_width = bottom_right[0]
        dy = -top_right[1]
        target_height = bottom_left[1] + dy
    else:  # Clockwise deskew
        dx = -bottom_left[0]
        target_width = top_right[0] + dx
        target_height = bottom_right[1]

    target_width = float(target_width)
    target_height = float(target_height)
    for name, extent in (("width", target_width), ("height", target_height)):
        if not math.isfinite(extent) or extent <= 0:
            raise DegenerateGeometryError(f"deskewed {name} collapsed", extent)

    transform = DeskewTransform(angle, float(dx), float(dy), target_width, target_height)
    logger.debug(
        f"Deskew: slope={global_slope:+.5f}, angle={transform.angle_degrees:+.3f}°, "
        f"target {target_width:.1f}×{target_height:.1f}"
    )
    return transform

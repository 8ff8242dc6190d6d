"""
ScoreDewarp - Numeric Constants

Simple numeric constants with ZERO internal imports to avoid circular dependencies.
For configuration objects and file loading, use config.py.
"""

from typing import Final

# ============================================================================
# Warp Grid
# ============================================================================

# Grid rows computed per batch (cancellation is checked between batches)
DEFAULT_GRID_BATCH_ROWS: Final[int] = 16

# Minimum usable grid step in pixels
MIN_GRID_STEP_PX: Final[int] = 2

# ============================================================================
# Resampling
# ============================================================================

# Destination rows remapped per band
DEFAULT_BAND_HEIGHT_PX: Final[int] = 256

# Value written for samples outside the source raster (inverted background)
OUT_OF_RANGE_VALUE: Final[int] = 0

# Tolerance used before rounding target extents up to whole pixels
EXTENT_ROUNDING_EPS: Final[float] = 1e-6

# ============================================================================
# Overlays
# ============================================================================

# Grid point radius as a fraction of the page interline
GRID_POINT_FRACTION: Final[float] = 0.2

# ============================================================================
# Output
# ============================================================================

DEWARPED_SUFFIX: Final[str] = ".dewarped.png"
OVERLAY_SUFFIX: Final[str] = ".grid.png"
SYSTEMS_OVERLAY_SUFFIX: Final[str] = ".systems.png"

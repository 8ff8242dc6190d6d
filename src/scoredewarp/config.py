"""
ScoreDewarp - Configuration Module

Dewarp configuration dataclass and JSON-based overrides.
"""

import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Final

from scoredewarp.constants import (
    DEFAULT_BAND_HEIGHT_PX,
    DEFAULT_GRID_BATCH_ROWS,
    MIN_GRID_STEP_PX,
)
from scoredewarp.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT: Final[str] = "%H:%M:%S"


@dataclass
class DewarpConfig:
    """Configuration for one dewarp run.

    Attributes:
        grid_step: Warp grid step in pixels (0 = page interline)
        invert_polarity: Invert pixel values around the warp so that
            samples outside the source become page background
        grid_workers: Threads computing warp grid rows (1 = in-thread)
        resample_workers: Threads remapping destination bands (1 = in-thread)
        batch_rows: Grid rows per batch; cancellation is checked between batches
        band_height: Destination rows per resampling band
        store_dewarp: Write the dewarped image to output_dir
        output_dir: Directory for stored images
        page_workers: Worker processes for multi-page runs (1 = sequential)
    """

    # === Warp Grid ===
    grid_step: int = 0
    grid_workers: int = 1
    batch_rows: int = DEFAULT_GRID_BATCH_ROWS

    # === Resampling ===
    invert_polarity: bool = True
    resample_workers: int = 1
    band_height: int = DEFAULT_BAND_HEIGHT_PX

    # === Output Options ===
    store_dewarp: bool = False
    output_dir: Path = field(default_factory=Path.cwd)

    # === Execution Options ===
    page_workers: int = 1

    def __post_init__(self) -> None:
        self.output_dir = Path(self.output_dir)
        self.validate()

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigurationError: If a setting has the wrong type or is out of range
        """
        for f in fields(self):
            value = getattr(self, f.name)
            if f.type in (int, bool) and type(value) is not f.type:
                raise ConfigurationError(
                    f.name, f"expected {f.type.__name__}, got {type(value).__name__}"
                )

        if self.grid_step != 0 and self.grid_step < MIN_GRID_STEP_PX:
            raise ConfigurationError(
                "grid_step", f"must be 0 or at least {MIN_GRID_STEP_PX}, got {self.grid_step}"
            )
        for name in ("grid_workers", "resample_workers", "batch_rows", "band_height", "page_workers"):
            if getattr(self, name) < 1:
                raise ConfigurationError(name, f"must be >= 1, got {getattr(self, name)}")

    def resolve_grid_step(self, page_interline: int) -> int:
        """Get the effective grid step for a page."""
        return self.grid_step if self.grid_step else page_interline

    def with_overrides(self, **overrides: Any) -> "DewarpConfig":
        """Return a copy with the non-None overrides applied."""
        return apply_overrides(self, {k: v for k, v in overrides.items() if v is not None})


def apply_overrides(config: DewarpConfig, overrides: dict[str, Any]) -> DewarpConfig:
    """Return a copy of config with overrides applied.

    Raises:
        ConfigurationError: If a key is unknown
    """
    known = {f.name for f in fields(DewarpConfig)}
    for key in overrides:
        if key not in known:
            raise ConfigurationError(key, "unknown setting")
    return replace(config, **overrides)


def load_config(path: str | Path | None = None) -> DewarpConfig:
    """Load a DewarpConfig from a JSON file of overrides.

    Args:
        path: JSON file path, or None for defaults

    Returns:
        The resulting configuration

    Raises:
        ConfigurationError: If the file can't be read or holds bad values
    """
    config = DewarpConfig()
    if path is None:
        return config

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(reason=f"cannot load {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(reason=f"{path} must contain a JSON object")

    logger.debug(f"Loaded {len(data)} config override(s) from {path}")
    return apply_overrides(config, data)

"""Loading page descriptions and their images.

A page description is a JSON document produced by staff detection::

    {
      "page_id": "p1",
      "image": "page1.png",
      "interline": 20,
      "global_slope": 0.0,
      "systems": [
        {"staves": [{"interline": 20.0, "lines": [[[x, y], ...], ...]}]}
      ]
    }

"width" and "height" are optional and default to the image size.  A
relative image path is resolved against the JSON file directory.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import cv2
import numpy as np

from scoredewarp.services.detected_geometry import (
    DetectedLine,
    DetectedSheet,
    DetectedStaff,
    DetectedSystem,
)
from scoredewarp.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)


def _require(data: dict[str, Any], key: str, where: str) -> Any:
    try:
        return data[key]
    except (KeyError, TypeError):
        raise ValidationError(f"{where}.{key}", reason="missing") from None


def _require_list(data: dict[str, Any], key: str, where: str) -> list[Any]:
    value = _require(data, key, where)
    if not isinstance(value, list):
        raise ValidationError(f"{where}.{key}", type(value).__name__, "expected a list")
    return value


def sheet_from_dict(
    data: dict[str, Any],
    width: int | None = None,
    height: int | None = None,
) -> DetectedSheet:
    """Build a DetectedSheet from a decoded page description.

    Args:
        data: Decoded JSON object
        width: Image width, used when the description has none
        height: Image height, used when the description has none

    Raises:
        ValidationError: On missing or malformed fields
        StructuralInconsistencyError: On malformed staff lines
    """
    if not isinstance(data, dict):
        raise ValidationError("page", reason="expected a JSON object")

    systems = []
    for si, system in enumerate(_require_list(data, "systems", "page")):
        staves = []
        for sti, staff in enumerate(_require_list(system, "staves", f"systems[{si}]")):
            where = f"systems[{si}].staves[{sti}]"
            try:
                lines = tuple(
                    DetectedLine(np.asarray(points, dtype=np.float64))
                    for points in _require_list(staff, "lines", where)
                )
                interline = float(_require(staff, "interline", where))
            except (TypeError, ValueError) as e:
                raise ValidationError(where, reason=str(e)) from e
            staves.append(DetectedStaff(lines, interline))
        systems.append(DetectedSystem(tuple(staves)))

    width = data.get("width", width)
    height = data.get("height", height)
    if width is None or height is None:
        raise ValidationError("page.width/height", reason="unknown page size")

    try:
        return DetectedSheet(
            width=int(width),
            height=int(height),
            interline=int(_require(data, "interline", "page")),
            global_slope=float(data.get("global_slope", 0.0)),
            systems=tuple(systems),
            page_id=str(data.get("page_id", "page")),
        )
    except (TypeError, ValueError) as e:
        raise ValidationError("page", reason=str(e)) from e


def load_image(path: str | Path) -> np.ndarray:
    """Read an image from disk, keeping its bit depth and channels.

    Raises:
        ValidationError: If the image can't be decoded
    """
    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ValidationError("image", str(path), "cannot be read")
    return image


def load_page(path: str | Path) -> tuple[DetectedSheet, np.ndarray]:
    """Load a page description and its image.

    Args:
        path: JSON page description

    Returns:
        (sheet, image)

    Raises:
        ValidationError: If the file, its image or its content is invalid
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError("page", str(path), f"cannot load: {e}") from e

    image_path = Path(_require(data, "image", "page"))
    if not image_path.is_absolute():
        image_path = path.parent / image_path
    image = load_image(image_path)

    data.setdefault("page_id", path.stem)
    sheet = sheet_from_dict(data, width=image.shape[1], height=image.shape[0])
    logger.debug(f"Loaded {path.name}: {len(sheet.systems)} systems, image {image_path.name}")
    return sheet, image

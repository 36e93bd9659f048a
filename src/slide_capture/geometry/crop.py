"""
Crop Geometry
=============

Maps a configured CropRegion onto a concrete pixel rectangle for a given
source size, and maps that rectangle onto a display surface for
highlighting.

This module handles:
    - Crop size: floor(source * fraction) on each axis
    - Anchor placement: flush against one of nine compass points
    - Display mapping: scaling the crop by display size / source size

All functions are pure. Identical inputs always yield identical rectangles.

Example:
    from slide_capture.geometry import compute_crop
    from slide_capture.models.geometry import CropRegion

    rect = compute_crop(1280, 720, CropRegion("bottom-right", 0.75, 0.75))
    # Rect(x=320, y=180, width=960, height=540)
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Tuple

from slide_capture.errors import ConfigurationError, SourceUnavailableError
from slide_capture.models.geometry import CropDirection, CropRegion, Rect


logger = logging.getLogger(__name__)


# Horizontal / vertical placement per anchor: 0 = start, 1 = centred, 2 = end
_ANCHOR_PLACEMENT: Dict[CropDirection, Tuple[int, int]] = {
    CropDirection.TOP_LEFT: (0, 0),
    CropDirection.TOP: (1, 0),
    CropDirection.TOP_RIGHT: (2, 0),
    CropDirection.LEFT: (0, 1),
    CropDirection.CENTER: (1, 1),
    CropDirection.RIGHT: (2, 1),
    CropDirection.BOTTOM_LEFT: (0, 2),
    CropDirection.BOTTOM: (1, 2),
    CropDirection.BOTTOM_RIGHT: (2, 2),
}


@dataclass(frozen=True, slots=True)
class DisplayRect:
    """Rectangle on a display surface (may be fractional)."""

    left: float
    top: float
    width: float
    height: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "left": self.left,
            "top": self.top,
            "width": self.width,
            "height": self.height,
        }


def _place(source: int, size: int, placement: int) -> int:
    if placement == 0:
        return 0
    if placement == 1:
        return (source - size) // 2
    return source - size


def compute_crop(source_width: int, source_height: int, region: CropRegion) -> Rect:
    """
    Compute the pixel rectangle a crop region selects.

    Args:
        source_width: Source width in pixels
        source_height: Source height in pixels
        region: Configured crop region

    Returns:
        Rect with 0 <= x, 0 <= y, x + width <= source_width and
        y + height <= source_height

    Raises:
        ConfigurationError: If the region names an unknown anchor
        SourceUnavailableError: If the source has zero area
    """
    if source_width <= 0 or source_height <= 0:
        raise SourceUnavailableError(
            f"Source has no area: {source_width}x{source_height}"
        )

    try:
        direction = CropDirection.parse(region.direction)
        placement_x, placement_y = _ANCHOR_PLACEMENT[direction]
    except KeyError:
        raise ConfigurationError(f"Unknown crop direction: {region.direction!r}") from None

    width = max(1, min(source_width, math.floor(source_width * region.width_fraction)))
    height = max(1, min(source_height, math.floor(source_height * region.height_fraction)))

    return Rect(
        x=_place(source_width, width, placement_x),
        y=_place(source_height, height, placement_y),
        width=width,
        height=height,
    )


def map_to_display(
    crop: Rect,
    source_size: Tuple[int, int],
    display: DisplayRect,
) -> DisplayRect:
    """
    Map a crop rectangle from source pixels onto a display rectangle.

    A crop covering the whole source maps onto the whole display rectangle.

    Args:
        crop: Crop rectangle in source pixels
        source_size: (width, height) of the source
        display: Where the source is drawn on the display surface

    Returns:
        The crop rectangle in display coordinates
    """
    source_width, source_height = source_size
    if source_width <= 0 or source_height <= 0:
        raise SourceUnavailableError(f"Source has no area: {source_width}x{source_height}")

    if crop.x == 0 and crop.y == 0 and crop.width == source_width and crop.height == source_height:
        return display

    scale_x = display.width / source_width
    scale_y = display.height / source_height

    return DisplayRect(
        left=display.left + crop.x * scale_x,
        top=display.top + crop.y * scale_y,
        width=crop.width * scale_x,
        height=crop.height * scale_y,
    )

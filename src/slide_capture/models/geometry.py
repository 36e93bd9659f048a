"""
Geometry Models
===============

Crop regions and pixel rectangles used to restrict sampling to a part of
the source frame.

Design Philosophy:
    A crop region is DECLARED, not discovered. It names one of nine anchor
    points on the source rectangle plus the fraction of width and height to
    keep. The pixel rectangle is derived from it for every source size by
    the crop calculator (see slide_capture.geometry.crop).

Anchors:
    top-left     top      top-right
    left         center   right
    bottom-left  bottom   bottom-right

Note:
    All rectangles are in SOURCE PIXEL SPACE, origin at the top-left corner,
    x increasing rightward and y increasing downward.
"""

import math
from dataclasses import dataclass
from enum import Enum

import numpy as np

from slide_capture.errors import ConfigurationError


# Fractions below this are rejected by the clamping constructor
DEFAULT_MIN_FRACTION = 0.10


class CropDirection(str, Enum):
    """
    Anchor point the crop rectangle is placed flush against.
    """

    TOP_LEFT = "top-left"
    TOP = "top"
    TOP_RIGHT = "top-right"
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM = "bottom"
    BOTTOM_RIGHT = "bottom-right"

    @classmethod
    def parse(cls, value: "str | CropDirection") -> "CropDirection":
        """
        Parse an anchor name.

        Raises:
            ConfigurationError: If the name is not one of the nine anchors
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(d.value for d in cls)
            raise ConfigurationError(
                f"Unknown crop direction {value!r} (expected one of: {valid})"
            ) from None


@dataclass(frozen=True, slots=True)
class CropRegion:
    """
    Configured sub-rectangle of the source frame.

    Attributes:
        direction: Anchor the rectangle is placed against
        width_fraction: Fraction of source width to keep, in (0, 1]
        height_fraction: Fraction of source height to keep, in (0, 1]
    """

    direction: CropDirection = CropDirection.CENTER
    width_fraction: float = 1.0
    height_fraction: float = 1.0

    def __post_init__(self) -> None:
        """Validate invariants."""
        object.__setattr__(self, "direction", CropDirection.parse(self.direction))
        for name in ("width_fraction", "height_fraction"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value) or not 0 < value <= 1:
                raise ConfigurationError(f"{name} must be in (0, 1], got {value}")

    @classmethod
    def full(cls) -> "CropRegion":
        """Identity region (no crop)."""
        return cls(CropDirection.CENTER, 1.0, 1.0)

    @classmethod
    def clamped(
        cls,
        direction: "str | CropDirection",
        width_fraction: float,
        height_fraction: float,
        min_fraction: float = DEFAULT_MIN_FRACTION,
    ) -> "CropRegion":
        """
        Build a region with both fractions clamped into [min_fraction, 1].

        Args:
            direction: Anchor name
            width_fraction: Requested width fraction
            height_fraction: Requested height fraction
            min_fraction: Lower clamp bound, in (0, 1]

        Raises:
            ConfigurationError: On unknown anchors or non-numeric fractions
        """
        if not 0 < min_fraction <= 1:
            raise ConfigurationError(f"min_fraction must be in (0, 1], got {min_fraction}")
        try:
            w = float(width_fraction)
            h = float(height_fraction)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Crop fractions must be numbers, got {width_fraction!r}, {height_fraction!r}"
            ) from None
        if not (math.isfinite(w) and math.isfinite(h)):
            raise ConfigurationError("Crop fractions must be finite")

        return cls(
            direction=CropDirection.parse(direction),
            width_fraction=min(1.0, max(min_fraction, w)),
            height_fraction=min(1.0, max(min_fraction, h)),
        )

    @property
    def is_full(self) -> bool:
        """True when the region keeps the whole source."""
        return self.width_fraction == 1.0 and self.height_fraction == 1.0


@dataclass(frozen=True, slots=True)
class Rect:
    """An axis-aligned rectangle in pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    @property
    def x2(self) -> int:
        return self.x + self.width

    @property
    def y2(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def fits_within(self, width: int, height: int) -> bool:
        """Whether the rectangle is non-empty and inside a width x height source."""
        return (
            self.width > 0
            and self.height > 0
            and self.x >= 0
            and self.y >= 0
            and self.x2 <= width
            and self.y2 <= height
        )

    def crop_from(self, pixels: np.ndarray) -> np.ndarray:
        """Crop this rectangle from a (H, W[, C]) pixel array."""
        return pixels[self.y:self.y2, self.x:self.x2]

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

"""
Crop Highlight
==============

Shows operators which part of the source is being captured.

This module generates PURELY DESCRIPTIVE artifacts. Highlights do NOT
influence capture decisions.

Artifacts:
    - Overlay rectangle: the crop mapped onto a display rectangle
    - Preview: base64 PNG of a frame with a red border around the crop

GATED BY CONFIG FLAG. Zero cost when disabled.
"""

import base64
import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from slide_capture.capture.observers import CaptureObserver
from slide_capture.geometry.crop import DisplayRect, map_to_display
from slide_capture.models.geometry import Rect
from slide_capture.models.output import HighlightInfo


logger = logging.getLogger(__name__)


# BGR
HIGHLIGHT_COLOR: Tuple[int, int, int] = (0, 0, 255)


def overlay_rect(
    crop: Rect,
    source_size: Tuple[int, int],
    display: Optional[DisplayRect] = None,
) -> DisplayRect:
    """
    Crop rectangle on a display surface.

    Without a display rectangle the source is assumed to be drawn at its
    native size at the origin.
    """
    if display is None:
        display = DisplayRect(0.0, 0.0, float(source_size[0]), float(source_size[1]))
    return map_to_display(crop, source_size, display)


def render_crop_preview(
    pixels: np.ndarray,
    crop: Rect,
    thickness: int = 3,
    color: Tuple[int, int, int] = HIGHLIGHT_COLOR,
) -> str:
    """
    Draw the crop border on a copy of the frame.

    Args:
        pixels: (H, W, 3) BGR frame
        crop: Crop rectangle in frame pixels
        thickness: Border width in pixels
        color: BGR border colour

    Returns:
        Base64-encoded PNG
    """
    canvas = np.ascontiguousarray(pixels).copy()
    cv2.rectangle(
        canvas,
        (crop.x, crop.y),
        (crop.x2 - 1, crop.y2 - 1),
        color,
        thickness,
    )
    ok, buffer = cv2.imencode(".png", canvas)
    if not ok:
        raise ValueError("Failed to encode crop preview")
    return base64.b64encode(buffer.tobytes()).decode("ascii")


class CropHighlighter(CaptureObserver):
    """
    Observer that keeps the current crop highlight.

    GATED: Does nothing when disabled.
    """

    def __init__(self, enabled: bool = True, thickness: int = 3) -> None:
        """
        Initialize crop highlighter.

        Args:
            enabled: Whether highlighting is enabled
            thickness: Border width of the preview in pixels
        """
        self.enabled = enabled
        self.thickness = thickness

        self._crop: Optional[Rect] = None
        self._source_size: Optional[Tuple[int, int]] = None
        self._last_pixels: Optional[np.ndarray] = None

        if enabled:
            logger.info(f"CropHighlighter enabled: thickness={thickness}px")
        else:
            logger.info("CropHighlighter disabled (zero cost)")

    @property
    def is_enabled(self) -> bool:
        return self.enabled

    @property
    def crop(self) -> Optional[Rect]:
        return self._crop

    def on_source_acquired(self, source, crop: Rect) -> None:
        if not self.enabled:
            return
        self._crop = crop
        self._source_size = source.dimensions()

    def on_crop_changed(self, crop: Rect, source_size: Tuple[int, int]) -> None:
        if not self.enabled:
            return
        if source_size != self._source_size:
            self._last_pixels = None
        self._crop = crop
        self._source_size = source_size

    def on_source_lost(self) -> None:
        self._crop = None
        self._source_size = None
        self._last_pixels = None

    def on_frame_retained(self, retained, classification, frame) -> None:
        if self.enabled:
            self._last_pixels = frame.pixels
            self._source_size = (frame.width, frame.height)

    def highlight(self, display: Optional[DisplayRect] = None) -> HighlightInfo:
        """
        Current highlight.

        Args:
            display: Where the source is drawn on the display surface

        Returns:
            HighlightInfo (all fields None if disabled or no source)
        """
        if not self.enabled or self._crop is None or self._source_size is None:
            return HighlightInfo()

        overlay = overlay_rect(self._crop, self._source_size, display)

        preview = None
        if self._last_pixels is not None and self._crop.fits_within(
            self._last_pixels.shape[1], self._last_pixels.shape[0]
        ):
            preview = render_crop_preview(self._last_pixels, self._crop, self.thickness)

        return HighlightInfo(
            crop=self._crop.to_dict(),
            overlay=overlay.to_dict(),
            preview=preview,
        )

"""
Observability Module
====================

Metrics and crop highlighting for the capture engine.

This module provides:
    - CaptureMetrics: Engine counters
    - CropHighlighter: Overlay rectangle and preview of the crop (gated)

DESIGN RULES:
    - Does NOT influence capture decisions
    - Zero cost when highlighting is disabled
"""

from slide_capture.observability.metrics import CaptureMetrics
from slide_capture.observability.highlight import (
    CropHighlighter,
    overlay_rect,
    render_crop_preview,
)


__all__ = [
    "CaptureMetrics",
    "CropHighlighter",
    "overlay_rect",
    "render_crop_preview",
]

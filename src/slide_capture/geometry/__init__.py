"""
Geometry Module
===============

Crop region handling: from a declared CropRegion to source pixels and
from source pixels to a display surface.
"""

from slide_capture.geometry.crop import DisplayRect, compute_crop, map_to_display

__all__ = [
    "DisplayRect",
    "compute_crop",
    "map_to_display",
]

"""
Frame Data Model
=================

Frame representations passed between the stream layer and the capture
engine.

Two forms exist:
    - EncodedFrame: a validated wire frame, image still base64-encoded
    - Frame: decoded pixels ready for cropping and reduction

Design Rules:
    - Frames are ephemeral: produced once per tick and discarded unless the
      engine retains them
    - EncodedFrame never decodes its payload; decoding happens in
      slide_capture.stream.image_codec
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass(frozen=True, slots=True)
class EncodedFrame:
    """
    Validated frame from the upstream stream.

    Attributes:
        frame_id: Monotonically increasing frame counter from source
        timestamp: UNIX timestamp when the frame was emitted
        fps: Declared FPS of the stream
        image_b64: Base64-encoded image data (NOT decoded)
    """

    frame_id: int
    timestamp: float
    fps: int
    image_b64: str

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return (
            f"EncodedFrame(frame_id={self.frame_id}, "
            f"timestamp={self.timestamp:.3f}, "
            f"fps={self.fps})"
        )


@dataclass(frozen=True, slots=True)
class Frame:
    """
    Decoded frame.

    Attributes:
        pixels: (H, W, 3) BGR uint8 array (OpenCV channel order)
        timestamp: Time the frame was produced, in seconds
        frame_id: Upstream frame identifier, if the source has one
    """

    pixels: np.ndarray
    timestamp: float = 0.0
    frame_id: Optional[int] = None

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1]) if self.pixels.ndim >= 2 else 0

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0]) if self.pixels.ndim >= 2 else 0

    def __repr__(self) -> str:
        return (
            f"Frame({self.width}x{self.height}, "
            f"timestamp={self.timestamp:.3f}, frame_id={self.frame_id})"
        )

"""
Video Capture Source
====================

FrameSource backed by OpenCV's VideoCapture.

Modes:
    stepped:  each sample advances the playback position by step_sec, so a
              recorded file is sampled as if it were playing in real time
              at one sample per tick (used for offline capture)
    realtime: each sample reads the next frame the device or URL delivers

A file reports ended once the position passes its duration or a read fails.
"""

import logging
from typing import Optional, Tuple, Union

import cv2

from slide_capture.errors import SourceUnavailableError
from slide_capture.stream.frame import Frame


logger = logging.getLogger(__name__)


class VideoCaptureSource:
    """
    OpenCV-backed frame source.

    Attributes:
        target: File path, URL or device index
        step_sec: Seconds to advance per sample (None = realtime mode)
    """

    def __init__(
        self,
        target: Union[str, int],
        step_sec: Optional[float] = None,
    ) -> None:
        """
        Open the video.

        Raises:
            SourceUnavailableError: If OpenCV cannot open the target
        """
        if step_sec is not None and step_sec <= 0:
            raise ValueError("step_sec must be > 0")

        self.target = target
        self.step_sec = step_sec

        self._capture = cv2.VideoCapture(target)
        if not self._capture.isOpened():
            raise SourceUnavailableError(f"Cannot open video: {target}")

        self._position_sec = 0.0
        self._ended = False
        self._frame_index = 0

        fps = self._capture.get(cv2.CAP_PROP_FPS) or 0.0
        frame_count = self._capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0
        self.duration_sec: Optional[float] = (
            frame_count / fps if fps > 0 and frame_count > 0 else None
        )

        width, height = self.dimensions()
        logger.info(
            f"Opened video {target}: {width}x{height}, "
            f"duration={self.duration_sec}, "
            f"mode={'stepped' if step_sec else 'realtime'}"
        )

    def current_frame(self) -> Frame:
        if self._ended:
            raise SourceUnavailableError(f"Video ended: {self.target}")

        if self.step_sec is not None:
            self._capture.set(cv2.CAP_PROP_POS_MSEC, self._position_sec * 1000.0)

        ok, pixels = self._capture.read()
        if not ok or pixels is None:
            self._ended = True
            raise SourceUnavailableError(f"No frame at {self._position_sec:.2f}s in {self.target}")

        timestamp = self._position_sec
        if self.step_sec is not None:
            self._position_sec += self.step_sec
        else:
            timestamp = self._capture.get(cv2.CAP_PROP_POS_MSEC) / 1000.0

        self._frame_index += 1
        return Frame(pixels=pixels, timestamp=timestamp, frame_id=self._frame_index)

    def is_buffering(self) -> bool:
        return False

    def is_paused_or_ended(self) -> bool:
        if self._ended:
            return True
        if self.step_sec is not None and self.duration_sec is not None:
            return self._position_sec >= self.duration_sec
        return False

    def dimensions(self) -> Tuple[int, int]:
        width = int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        return (width, height)

    def release(self) -> None:
        self._capture.release()


class VideoFileLocator:
    """Opens the video on first request and keeps handing out the same source."""

    def __init__(self, target: Union[str, int], step_sec: Optional[float] = None) -> None:
        self.target = target
        self.step_sec = step_sec
        self._source: Optional[VideoCaptureSource] = None

    def locate(self) -> Optional[VideoCaptureSource]:
        if self._source is None:
            try:
                self._source = VideoCaptureSource(self.target, self.step_sec)
            except SourceUnavailableError as e:
                logger.warning(f"Video not available yet: {e}")
                return None
        return self._source

    def release(self) -> None:
        if self._source is not None:
            self._source.release()
            self._source = None

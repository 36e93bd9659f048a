"""
Live Stream Source
==================

FrameSource backed by the websocket consumer's FrameBuffer.

Each tick drains the buffer down to its newest frame, so the engine always
samples what the stream is showing right now and never falls behind.

Source Conditions:
    buffering:       no frame yet, or no fresh frame within stall_timeout_sec
    paused or ended: the consumer has finished and the last frame was sampled
"""

import logging
import time
from typing import Optional, Tuple

from slide_capture.errors import SourceUnavailableError
from slide_capture.stream.buffer import FrameBuffer
from slide_capture.stream.consumer import FrameConsumer
from slide_capture.stream.frame import EncodedFrame, Frame
from slide_capture.stream.image_codec import decode_frame


logger = logging.getLogger(__name__)


class LiveStreamSource:
    """
    Latest-frame view over a FrameBuffer.

    Attributes:
        buffer: Buffer the consumer fills
        consumer: Consumer feeding the buffer (None for a detached buffer)
        stall_timeout_sec: Report buffering after this long without a frame
    """

    def __init__(
        self,
        buffer: FrameBuffer,
        consumer: Optional[FrameConsumer] = None,
        stall_timeout_sec: float = 3.0,
        clock=time.monotonic,
    ) -> None:
        if stall_timeout_sec <= 0:
            raise ValueError("stall_timeout_sec must be > 0")

        self.buffer = buffer
        self.consumer = consumer
        self.stall_timeout_sec = stall_timeout_sec
        self._clock = clock

        self._latest: Optional[EncodedFrame] = None
        self._latest_at: Optional[float] = None
        self._decoded: Optional[Frame] = None
        self._sampled_id: Optional[int] = None

    def _refresh(self) -> None:
        newest = self.buffer.drain_latest()
        if newest is not None:
            self._latest = newest
            self._latest_at = self._clock()
            self._decoded = None

    def _finished(self) -> bool:
        return self.consumer is not None and self.consumer.finished

    def _decoded_latest(self) -> Frame:
        if self._latest is None:
            raise SourceUnavailableError("No frame received from stream yet")
        if self._decoded is None:
            self._decoded = decode_frame(self._latest)
        return self._decoded

    @property
    def has_frame(self) -> bool:
        self._refresh()
        return self._latest is not None

    def current_frame(self) -> Frame:
        self._refresh()
        frame = self._decoded_latest()
        self._sampled_id = frame.frame_id
        return frame

    def is_buffering(self) -> bool:
        self._refresh()
        if self._finished():
            return False
        if self._latest is None or self._latest_at is None:
            return True

        arrival = self._latest_at
        if self.consumer is not None and self.consumer.last_arrival is not None:
            arrival = max(arrival, self.consumer.last_arrival)
        return self._clock() - arrival > self.stall_timeout_sec

    def is_paused_or_ended(self) -> bool:
        self._refresh()
        if not self._finished() or self.buffer.size > 0:
            return False
        return self._latest is None or self._latest.frame_id == self._sampled_id

    def dimensions(self) -> Tuple[int, int]:
        self._refresh()
        if self._latest is None:
            return (0, 0)
        frame = self._decoded_latest()
        return (frame.width, frame.height)


class LiveStreamLocator:
    """Hands out the live source once the stream has produced a frame."""

    def __init__(self, source: LiveStreamSource) -> None:
        self.source = source

    def locate(self) -> Optional[LiveStreamSource]:
        if self.source.has_frame:
            return self.source
        return None

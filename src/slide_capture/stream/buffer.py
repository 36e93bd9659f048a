"""
Frame Buffer
============

Bounded hand-off between the websocket consumer and the live frame source.

The live source only ever samples the newest frame, so the buffer is a
short history rather than a work queue: the consumer appends, the source
drains everything and keeps the last entry.

Design Rules:
    - Fixed maximum size (drops oldest on overflow)
    - Producer and source both run on the event loop thread
    - Does NOT decode or modify frames
"""

import logging
from collections import deque
from typing import Deque, Optional

from slide_capture.stream.frame import EncodedFrame


logger = logging.getLogger(__name__)


class FrameBuffer:
    """
    Bounded frame history with a drop-oldest policy.

    Attributes:
        maxsize: Maximum number of frames held
        dropped_count: Frames discarded because the buffer was full
        drained_count: Frames skipped over by drain_latest()

    Example:
        buffer = FrameBuffer(maxsize=50)
        await buffer.put(frame)         # consumer
        latest = buffer.drain_latest()  # live source, once per tick
    """

    def __init__(self, maxsize: int = 50) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._maxsize = maxsize
        self._frames: Deque[EncodedFrame] = deque()
        self._dropped_count = 0
        self._drained_count = 0
        self._total_put = 0

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def size(self) -> int:
        return len(self._frames)

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    @property
    def drained_count(self) -> int:
        return self._drained_count

    @property
    def total_put(self) -> int:
        return self._total_put

    async def put(self, frame: EncodedFrame) -> bool:
        """
        Append a frame, dropping the oldest if full.

        Returns:
            False if the oldest frame was dropped to make room
        """
        return self.put_nowait(frame)

    def put_nowait(self, frame: EncodedFrame) -> bool:
        """Synchronous form of put()."""
        self._total_put += 1
        dropped = len(self._frames) >= self._maxsize
        if dropped:
            oldest = self._frames.popleft()
            self._dropped_count += 1
            logger.debug(
                f"Buffer full, dropped frame {oldest.frame_id} "
                f"(total dropped: {self._dropped_count})"
            )
        self._frames.append(frame)
        return not dropped

    def peek_latest(self) -> Optional[EncodedFrame]:
        """Newest frame without removing anything."""
        return self._frames[-1] if self._frames else None

    def drain_latest(self) -> Optional[EncodedFrame]:
        """
        Remove every buffered frame and return the newest one.

        Returns:
            Newest frame, or None if the buffer was empty
        """
        if not self._frames:
            return None
        latest = self._frames.pop()
        self._drained_count += len(self._frames)
        self._frames.clear()
        return latest

    def clear(self) -> int:
        """
        Drop all buffered frames.

        Returns:
            Number of frames cleared
        """
        cleared = len(self._frames)
        self._frames.clear()
        return cleared

    def metrics(self) -> dict:
        return {
            "size": self.size,
            "maxsize": self._maxsize,
            "dropped_count": self._dropped_count,
            "drained_count": self._drained_count,
            "total_put": self._total_put,
        }

"""
Frame Consumer
==============

WebSocket client feeding a FrameBuffer from an upstream frame stream.

Responsibilities:
    - Connect to the stream's websocket endpoint
    - Validate each message against FrameMessage
    - Flag out-of-order frame ids, backwards timestamps and FPS changes
    - Reconnect with a fixed backoff
    - Push validated frames into the buffer and stamp their arrival

Design Rules:
    - Does NOT decode image data
    - Sequence violations are counted and logged, the frame is still kept
    - Once run() returns, the consumer reports itself finished so the live
      source can end the capture session after the buffer is drained
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Optional, Union

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, ConnectionClosedOK

from slide_capture.models.input import FrameMessage
from slide_capture.stream.buffer import FrameBuffer
from slide_capture.stream.frame import EncodedFrame


logger = logging.getLogger(__name__)


@dataclass
class FrameConsumerMetrics:
    """Counters of one FrameConsumer."""

    frames_received: int = 0
    reconnect_count: int = 0
    last_frame_id: int = -1
    last_timestamp: float = 0.0
    validation_warnings: int = 0
    parse_errors: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class FrameConsumer:
    """
    WebSocket consumer for upstream frames.

    Attributes:
        url: WebSocket URL to connect to
        buffer: FrameBuffer receiving validated frames
        metrics: Operational counters

    Example:
        buffer = FrameBuffer(maxsize=50)
        consumer = FrameConsumer(url="ws://localhost:8000/ws/stream", buffer=buffer)

        task = asyncio.create_task(consumer.run())
        ...
        await consumer.stop()
        await task
    """

    def __init__(
        self,
        url: str,
        buffer: FrameBuffer,
        reconnect_backoff_ms: int = 500,
        max_reconnect_attempts: int = 0,
        clock=time.monotonic,
    ) -> None:
        """
        Initialize frame consumer.

        Args:
            url: WebSocket URL of the frame stream
            buffer: Buffer validated frames are pushed into
            reconnect_backoff_ms: Pause between reconnect attempts
            max_reconnect_attempts: Give up after this many reconnects (0 = never)
            clock: Monotonic clock used to stamp frame arrivals
        """
        self.url = url
        self.buffer = buffer
        self.reconnect_backoff_ms = reconnect_backoff_ms
        self.max_reconnect_attempts = max_reconnect_attempts
        self._clock = clock

        self.metrics = FrameConsumerMetrics()

        self._websocket: Optional[Any] = None
        self._connected = False
        self._running = False
        self._finished = False
        self._stop_event = asyncio.Event()
        self._last_arrival: Optional[float] = None
        self._declared_fps: Optional[int] = None

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def last_arrival(self) -> Optional[float]:
        """Monotonic time the most recent valid frame arrived."""
        return self._last_arrival

    async def run(self) -> None:
        """Consume frames until stop() is called or reconnects are exhausted."""
        self._running = True
        self._finished = False
        self._stop_event.clear()
        logger.info(f"FrameConsumer starting, connecting to {self.url}")

        try:
            while self._running:
                try:
                    await self._consume()
                except Exception as e:
                    if not self._running:
                        break
                    self._connected = False
                    logger.error(f"Stream connection error: {e}")

                if not self._running or not self._may_reconnect():
                    break
                if await self._backoff():
                    break
        finally:
            self._running = False
            self._finished = True
            logger.info("FrameConsumer stopped")

    async def stop(self) -> None:
        """Ask run() to exit and close the connection."""
        logger.info("FrameConsumer stopping...")
        self._running = False
        self._stop_event.set()

        websocket = self._websocket
        if websocket is not None:
            try:
                await websocket.close()
            except ConnectionClosed:
                pass
        self._connected = False

    def _may_reconnect(self) -> bool:
        limit = self.max_reconnect_attempts
        if limit > 0 and self.metrics.reconnect_count >= limit:
            logger.error(f"Giving up after {limit} reconnect attempt(s)")
            return False
        return True

    async def _backoff(self) -> bool:
        """
        Wait before reconnecting.

        Returns:
            True if stop() was called during the wait
        """
        self.metrics.reconnect_count += 1
        delay = self.reconnect_backoff_ms / 1000.0
        logger.info(f"Reconnecting in {delay:.1f}s (attempt {self.metrics.reconnect_count})")
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    async def _consume(self) -> None:
        """One connection: read messages until the server closes it."""
        async with websockets.connect(
            self.url,
            ping_interval=20,
            ping_timeout=10,
            close_timeout=5,
            max_size=None,
        ) as ws:
            self._websocket = ws
            self._connected = True
            logger.info(f"Connected to frame stream: {self.url}")

            try:
                async for message in ws:
                    if not self._running:
                        break
                    frame = self._parse_and_validate(message)
                    if frame is not None:
                        await self._accept(frame)
            except ConnectionClosedOK:
                logger.info("Stream closed the connection")
            except ConnectionClosedError as e:
                logger.warning(f"Stream connection dropped: {e}")
                raise
            finally:
                self._connected = False
                self._websocket = None

    async def _accept(self, frame: EncodedFrame) -> None:
        await self.buffer.put(frame)
        self._last_arrival = self._clock()
        self.metrics.frames_received += 1
        self.metrics.last_frame_id = frame.frame_id
        self.metrics.last_timestamp = frame.timestamp

    def _parse_and_validate(self, raw: Union[str, bytes]) -> Optional[EncodedFrame]:
        """
        Parse one websocket message.

        Returns:
            EncodedFrame, or None if the message is not a valid frame
        """
        try:
            message = FrameMessage.model_validate_json(raw)
        except ValidationError as e:
            self.metrics.parse_errors += 1
            logger.error(f"Invalid frame message: {e.error_count()} validation error(s)")
            return None

        self._check_sequence(message)

        return EncodedFrame(
            frame_id=message.frame_id,
            timestamp=message.timestamp,
            fps=message.fps,
            image_b64=message.image,
        )

    def _check_sequence(self, message: FrameMessage) -> None:
        """Count and log ordering problems relative to the previous frame."""
        previous_id = self.metrics.last_frame_id
        if previous_id >= 0 and message.frame_id != previous_id + 1:
            self.metrics.validation_warnings += 1
            if message.frame_id <= previous_id:
                logger.warning(f"Frame id went backwards: {previous_id} -> {message.frame_id}")
            else:
                logger.warning(
                    f"Skipped {message.frame_id - previous_id - 1} frame(s) "
                    f"between {previous_id} and {message.frame_id}"
                )

        previous_ts = self.metrics.last_timestamp
        if previous_ts > 0 and message.timestamp < previous_ts:
            self.metrics.validation_warnings += 1
            logger.warning(
                f"Timestamp went backwards: {previous_ts:.3f} -> {message.timestamp:.3f}"
            )

        if self._declared_fps is None:
            self._declared_fps = message.fps
            logger.info(f"Stream declares {message.fps} fps")
        elif message.fps != self._declared_fps:
            self.metrics.validation_warnings += 1
            logger.warning(f"Stream fps changed: {self._declared_fps} -> {message.fps}")
            self._declared_fps = message.fps

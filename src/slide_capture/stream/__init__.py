"""
Stream Module
=============

Frame sources for the capture engine.

This module provides:
    - Frame / EncodedFrame: decoded pixels and wire frames
    - FrameSource / SourceLocator: interfaces the engine consumes
    - VideoCaptureSource: OpenCV files, devices and URLs
    - FrameBuffer / FrameConsumer: websocket ingestion (drops oldest on overflow)
    - LiveStreamSource: newest frame of the websocket stream

Example:
    from slide_capture.stream import FrameBuffer, FrameConsumer, LiveStreamSource

    buffer = FrameBuffer(maxsize=50)
    consumer = FrameConsumer(url="ws://localhost:8000/ws/stream", buffer=buffer)
    task = asyncio.create_task(consumer.run())

    source = LiveStreamSource(buffer, consumer)
"""

from slide_capture.stream.frame import EncodedFrame, Frame
from slide_capture.stream.source import FrameSource, SourceLocator, StaticLocator
from slide_capture.stream.buffer import FrameBuffer
from slide_capture.stream.consumer import FrameConsumer, FrameConsumerMetrics
from slide_capture.stream.live import LiveStreamLocator, LiveStreamSource
from slide_capture.stream.video import VideoCaptureSource, VideoFileLocator


__all__ = [
    "Frame",
    "EncodedFrame",
    "FrameSource",
    "SourceLocator",
    "StaticLocator",
    "FrameBuffer",
    "FrameConsumer",
    "FrameConsumerMetrics",
    "LiveStreamSource",
    "LiveStreamLocator",
    "VideoCaptureSource",
    "VideoFileLocator",
]

"""
Test Configuration
==================

Pytest fixtures and test doubles for SlideCaptureAgent.

Fakes:
    - FakeFrameSource: scripted frames with switchable buffering/paused/failing
    - FakeClock: manually advanced monotonic clock
"""

from collections import deque
from typing import Optional

import cv2
import numpy as np
import pytest

from slide_capture.capture import CaptureEngine, CaptureTimings, MemorySink
from slide_capture.errors import SourceUnavailableError
from slide_capture.stream.frame import Frame
from slide_capture.stream.source import StaticLocator


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFrameSource:
    """
    Frame source replaying scripted frames.

    Each current_frame() call shows the next queued frame; once the queue
    is exhausted the last frame keeps being shown.
    """

    def __init__(self, *frames: np.ndarray) -> None:
        self._queue = deque(frames)
        self._last: Optional[np.ndarray] = None
        self.buffering = False
        self.paused = False
        self.failing = False
        self.frames_served = 0

    def push(self, *frames: np.ndarray) -> None:
        self._queue.extend(frames)

    def _peek(self) -> Optional[np.ndarray]:
        if self._queue:
            return self._queue[0]
        return self._last

    def current_frame(self) -> Frame:
        if self.failing:
            raise SourceUnavailableError("fake source failure")
        if self._queue:
            self._last = self._queue.popleft()
        if self._last is None:
            raise SourceUnavailableError("fake source has no frames")
        self.frames_served += 1
        return Frame(pixels=self._last, timestamp=float(self.frames_served), frame_id=self.frames_served)

    def is_buffering(self) -> bool:
        return self.buffering

    def is_paused_or_ended(self) -> bool:
        return self.paused

    def dimensions(self):
        pixels = self._peek()
        if pixels is None:
            return (0, 0)
        return (pixels.shape[1], pixels.shape[0])


def make_slide(seed: int, width: int = 320, height: int = 240) -> np.ndarray:
    """Smooth random BGR image: no symmetry, large low-frequency structure."""
    rng = np.random.default_rng(seed)
    coarse = rng.integers(0, 256, size=(6, 6, 3), dtype=np.uint8)
    return cv2.resize(coarse, (width, height), interpolation=cv2.INTER_LINEAR)


def add_noise(pixels: np.ndarray, seed: int, amplitude: int = 1) -> np.ndarray:
    """Per-pixel noise of at most +/- amplitude intensity levels."""
    rng = np.random.default_rng(seed)
    noise = rng.integers(-amplitude, amplitude + 1, size=pixels.shape)
    return np.clip(pixels.astype(np.int16) + noise, 0, 255).astype(np.uint8)


@pytest.fixture
def slide():
    """Factory for deterministic slide images."""
    return make_slide


@pytest.fixture
def noisy():
    """Factory adding bounded encoder-like noise to an image."""
    return add_noise


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def make_source():
    """Factory for FakeFrameSource instances."""
    return FakeFrameSource


@pytest.fixture
def make_engine(clock, sink):
    """
    Factory for timer-less engines driven by search_tick()/tick().

    Usage:
        engine, locator = make_engine(source)
    """

    def factory(source=None, **kwargs):
        locator = StaticLocator(source)
        kwargs.setdefault("sink", sink)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("wall_clock", lambda: 1704110400.0)
        kwargs.setdefault("timings", CaptureTimings(1.0, 1.0, 300.0))
        engine = CaptureEngine(locator=locator, timers=False, **kwargs)
        return engine, locator

    return factory


@pytest.fixture
def sample_frame_message():
    """Provide a sample FrameMessage for testing."""
    return {
        "source": "SlideStream",
        "version": "v1.0",
        "frame_id": 100,
        "timestamp": 1707321234.567,
        "fps": 30,
        "image": "base64encodeddata",
    }

"""
Capture State Transitions
=========================

Deterministic transition policy for the capture state machine.

States:
    SEARCHING → CAPTURING → STOPPED
    SEARCHING → TIMED_OUT (after search_timeout_sec without a usable source)

Search Rules (every search_interval_sec while SEARCHING):
    usable source found          → CAPTURING      (SOURCE_ACQUIRED)
    searching >= search_timeout  → TIMED_OUT      (SEARCH_TIMEOUT)
    otherwise                    → SEARCHING      (SEARCHING)

Tick Rules (every tick_interval_sec while CAPTURING):
    source missing               → REACQUIRE      (SOURCE_LOST)
    source buffering             → SKIP           (SOURCE_BUFFERING)
    source paused or ended       → STOP           (SOURCE_PAUSED_OR_ENDED)
    otherwise                    → SAMPLE         (SAMPLED)

Buffering is checked before paused/ended: a source that is loading is
never treated as finished.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from slide_capture.errors import ConfigurationError, ImageCodecError, SourceUnavailableError
from slide_capture.models.reason_codes import ReasonCode
from slide_capture.models.session import CaptureSession, CaptureStatus
from slide_capture.stream.source import FrameSource


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureTimings:
    """
    Timer periods for the capture engine.

    Attributes:
        tick_interval_sec: Sampling period while CAPTURING
        search_interval_sec: Polling period while SEARCHING
        search_timeout_sec: Give up searching after this long
    """

    tick_interval_sec: float = 1.0
    search_interval_sec: float = 1.0
    search_timeout_sec: float = 300.0

    def __post_init__(self) -> None:
        """Validate invariants."""
        for name in ("tick_interval_sec", "search_interval_sec", "search_timeout_sec"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive number, got {value!r}")


class SourceCondition(str, Enum):
    """What a frame source reports at the start of a tick."""

    MISSING = "MISSING"
    BUFFERING = "BUFFERING"
    PAUSED_OR_ENDED = "PAUSED_OR_ENDED"
    READY = "READY"


class TickAction(str, Enum):
    """What the engine does with a tick."""

    SAMPLE = "SAMPLE"
    SKIP = "SKIP"
    STOP = "STOP"
    REACQUIRE = "REACQUIRE"


@dataclass
class TransitionResult:
    """Result of a search evaluation."""

    new_status: CaptureStatus
    reason_code: ReasonCode
    transition_occurred: bool

    def __repr__(self) -> str:
        return f"TransitionResult({self.new_status.value}, {self.reason_code.value})"


@dataclass
class TickDecision:
    """Result of a tick evaluation."""

    action: TickAction
    reason_code: ReasonCode

    def __repr__(self) -> str:
        return f"TickDecision({self.action.value}, {self.reason_code.value})"


def probe_source(source: Optional[FrameSource]) -> SourceCondition:
    """
    Probe a frame source.

    A source that cannot be read while being probed, or that
    reports zero area, is treated as missing.
    """
    if source is None:
        return SourceCondition.MISSING

    try:
        if source.is_buffering():
            return SourceCondition.BUFFERING
        if source.is_paused_or_ended():
            return SourceCondition.PAUSED_OR_ENDED
        width, height = source.dimensions()
    except (SourceUnavailableError, ImageCodecError) as e:
        logger.debug(f"Source probe failed: {e}")
        return SourceCondition.MISSING

    if width <= 0 or height <= 0:
        return SourceCondition.MISSING
    return SourceCondition.READY


def is_usable(source: Optional[FrameSource]) -> bool:
    """A source is usable once it exists and reports a non-empty frame size."""
    if source is None:
        return False
    try:
        width, height = source.dimensions()
    except (SourceUnavailableError, ImageCodecError):
        return False
    return width > 0 and height > 0


class CapturePolicy:
    """
    Transition policy for the capture state machine.

    Pure decisions only: the engine applies the results.
    """

    def __init__(self, timings: CaptureTimings) -> None:
        """
        Initialize capture policy.

        Args:
            timings: Configured timer periods
        """
        self.timings = timings
        logger.info(
            f"CapturePolicy initialized: "
            f"tick={timings.tick_interval_sec}s, "
            f"search={timings.search_interval_sec}s, "
            f"timeout={timings.search_timeout_sec}s"
        )

    def evaluate_search(
        self,
        session: CaptureSession,
        source_found: bool,
        now: float,
    ) -> TransitionResult:
        """
        Evaluate one search poll.

        Args:
            session: Current session (must be SEARCHING)
            source_found: Whether the locator supplied a usable source
            now: Monotonic time of the poll

        Returns:
            TransitionResult
        """
        if session.status != CaptureStatus.SEARCHING:
            return TransitionResult(session.status, ReasonCode.SEARCHING, False)

        if source_found:
            return TransitionResult(CaptureStatus.CAPTURING, ReasonCode.SOURCE_ACQUIRED, True)

        started = session.searching_since if session.searching_since is not None else now
        if now - started >= self.timings.search_timeout_sec:
            return TransitionResult(CaptureStatus.TIMED_OUT, ReasonCode.SEARCH_TIMEOUT, True)

        return TransitionResult(CaptureStatus.SEARCHING, ReasonCode.SEARCHING, False)

    def evaluate_tick(self, condition: SourceCondition) -> TickDecision:
        """Map a probed source condition onto a tick action."""
        if condition == SourceCondition.MISSING:
            return TickDecision(TickAction.REACQUIRE, ReasonCode.SOURCE_LOST)
        if condition == SourceCondition.BUFFERING:
            return TickDecision(TickAction.SKIP, ReasonCode.SOURCE_BUFFERING)
        if condition == SourceCondition.PAUSED_OR_ENDED:
            return TickDecision(TickAction.STOP, ReasonCode.SOURCE_PAUSED_OR_ENDED)
        return TickDecision(TickAction.SAMPLE, ReasonCode.SAMPLED)

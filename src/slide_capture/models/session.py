"""
Capture Session Models
======================

Mutable state owned by a single capture engine.

Core Concepts:
    - CaptureStatus: IDLE, SEARCHING, CAPTURING, STOPPED, TIMED_OUT
    - Baseline: Signatures of the most recently RETAINED frame
    - RetainedFrame: One kept frame, encoded, with its capture metadata
    - CaptureSession: Status + baseline + retained frames

Status Lifecycle:
    IDLE --start--> SEARCHING --source found--> CAPTURING --paused/ended--> STOPPED
    SEARCHING --timeout--> TIMED_OUT --acknowledge/start--> SEARCHING
    any --reset--> SEARCHING (session cleared)

Invariants:
    - retained_frames is append-only while CAPTURING, in capture order
    - The baseline is replaced only together with appending a retained frame,
      never by a discarded duplicate
    - Only the capture engine mutates a session; everyone else reads
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Tuple

import numpy as np

from slide_capture.models.reason_codes import ReasonCode

if TYPE_CHECKING:
    from slide_capture.imaging.raster import Thumbnail


class CaptureStatus(str, Enum):
    """
    Status of a capture session.

    Attributes:
        IDLE: Engine constructed, no start request yet
        SEARCHING: Polling for a usable frame source
        CAPTURING: Ticking and producing verdicts
        STOPPED: Terminal for the session until restart or reset
        TIMED_OUT: Searching gave up, waiting for operator acknowledgment
    """

    IDLE = "IDLE"
    SEARCHING = "SEARCHING"
    CAPTURING = "CAPTURING"
    STOPPED = "STOPPED"
    TIMED_OUT = "TIMED_OUT"


@dataclass(frozen=True)
class Baseline:
    """
    Signature of the last retained frame.

    Attributes:
        thumbnail: Thumbnail of the retained frame
        average_hash: Its average hash
        perceptual_hash: Its perceptual hash
    """

    thumbnail: "Thumbnail"
    average_hash: Optional[np.ndarray]
    perceptual_hash: Optional[np.ndarray]


@dataclass(frozen=True)
class RetainedFrame:
    """
    A frame judged distinct from its predecessor and kept.

    Attributes:
        index: 1-based position in capture order
        image: Encoded image bytes of the full-resolution crop
        timestamp: Wall-clock capture time (seconds since epoch)
        width: Width of the encoded image in pixels
        height: Height of the encoded image in pixels
        media_type: MIME type of the encoded image
        average_hash_hex: Hex form of the frame's average hash
        perceptual_hash_hex: Hex form of the frame's perceptual hash
        source_frame_id: Identifier of the source frame, if it had one
    """

    index: int
    image: bytes
    timestamp: float
    width: int
    height: int
    media_type: str = "image/webp"
    average_hash_hex: Optional[str] = None
    perceptual_hash_hex: Optional[str] = None
    source_frame_id: Optional[int] = None

    def __repr__(self) -> str:
        return (
            f"RetainedFrame(#{self.index}, {self.width}x{self.height}, "
            f"{len(self.image)} bytes, t={self.timestamp:.3f})"
        )


@dataclass
class CaptureSession:
    """
    Per-session mutable capture state.

    Attributes:
        session_id: Unique identifier
        status: Current status
        status_reason: Reason code of the last status change
        baseline: Signature of the last retained frame (None before the first)
        retained_frames: Retained frames in capture order
        searching_since: Monotonic time the current search began
        ticks_processed: Number of ticks that ran the similarity pipeline
        finalized: Whether retained frames were handed to the sink
    """

    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    status: CaptureStatus = CaptureStatus.IDLE
    status_reason: Optional[ReasonCode] = None
    baseline: Optional[Baseline] = None
    retained_frames: List[RetainedFrame] = field(default_factory=list)
    searching_since: Optional[float] = None
    ticks_processed: int = 0
    finalized: bool = False

    @property
    def previous_thumbnail(self) -> Optional["Thumbnail"]:
        return self.baseline.thumbnail if self.baseline else None

    @property
    def previous_average_hash(self) -> Optional[np.ndarray]:
        return self.baseline.average_hash if self.baseline else None

    @property
    def previous_perceptual_hash(self) -> Optional[np.ndarray]:
        return self.baseline.perceptual_hash if self.baseline else None

    @property
    def frames(self) -> Tuple[RetainedFrame, ...]:
        """Read-only view of the retained frames."""
        return tuple(self.retained_frames)

    @property
    def next_index(self) -> int:
        return len(self.retained_frames) + 1

    def retain(self, frame: RetainedFrame, baseline: Baseline) -> None:
        """
        Append a retained frame and promote its signatures to the baseline.

        Raises:
            RuntimeError: If the session is not capturing
        """
        if self.status != CaptureStatus.CAPTURING:
            raise RuntimeError(
                f"Cannot retain frames while session is {self.status.value}"
            )
        self.retained_frames.append(frame)
        self.baseline = baseline

    def clear(self) -> None:
        """Drop retained frames and the baseline."""
        self.retained_frames.clear()
        self.baseline = None
        self.ticks_processed = 0
        self.finalized = False

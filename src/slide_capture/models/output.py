"""
Output Models
=============

Output contracts served by the capture service.

Status Contract:
    {
        "session_id": "3f9c1a2b7d4e",
        "status": "CAPTURING",
        "reason_code": "SOURCE_ACQUIRED",
        "retained_count": 4,
        "ticks_processed": 57,
        "crop": {"x": 320, "y": 180, "width": 960, "height": 540},
        "source_size": [1280, 720],
        "finalized": false
    }

Design Rules:
    - Outputs are read-only views; nothing here mutates a session
    - Encoded image bytes are never embedded in status payloads
"""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from slide_capture.models.session import CaptureStatus, RetainedFrame


class SessionStatus(BaseModel):
    """
    Snapshot of a capture session.

    Attributes:
        session_id: Session identifier
        status: Current status
        reason_code: Reason for the last status change
        retained_count: Number of retained frames
        ticks_processed: Ticks that ran the similarity pipeline
        crop: Current crop rectangle in source pixels, if a source is known
        source_size: (width, height) of the current source, if known
        finalized: Whether retained frames were handed to the sink
    """

    session_id: str = Field(..., description="Session identifier")

    status: CaptureStatus = Field(..., description="Current session status")

    reason_code: Optional[str] = Field(
        default=None,
        description="Machine-readable reason for the last status change",
    )

    retained_count: int = Field(
        default=0,
        ge=0,
        description="Number of retained frames",
    )

    ticks_processed: int = Field(
        default=0,
        ge=0,
        description="Ticks that ran the similarity pipeline",
    )

    crop: Optional[Dict[str, int]] = Field(
        default=None,
        description="Crop rectangle in source pixels",
    )

    source_size: Optional[Tuple[int, int]] = Field(
        default=None,
        description="(width, height) of the current source",
    )

    finalized: bool = Field(
        default=False,
        description="Whether retained frames were handed to the sink",
    )

    model_config = ConfigDict(use_enum_values=False)


class RetainedFrameInfo(BaseModel):
    """
    Metadata for one retained frame (image bytes excluded).

    Attributes:
        index: 1-based capture order
        timestamp: Wall-clock capture time
        width: Image width in pixels
        height: Image height in pixels
        media_type: MIME type of the encoded image
        size_bytes: Length of the encoded image
        average_hash: Hex average hash
        perceptual_hash: Hex perceptual hash
    """

    index: int = Field(..., ge=1)
    timestamp: float = Field(...)
    width: int = Field(..., ge=1)
    height: int = Field(..., ge=1)
    media_type: str = Field(...)
    size_bytes: int = Field(..., ge=0)
    average_hash: Optional[str] = Field(default=None)
    perceptual_hash: Optional[str] = Field(default=None)

    @classmethod
    def from_frame(cls, frame: RetainedFrame) -> "RetainedFrameInfo":
        return cls(
            index=frame.index,
            timestamp=frame.timestamp,
            width=frame.width,
            height=frame.height,
            media_type=frame.media_type,
            size_bytes=len(frame.image),
            average_hash=frame.average_hash_hex,
            perceptual_hash=frame.perceptual_hash_hex,
        )


class FrameList(BaseModel):
    """List of retained frame metadata for a session."""

    session_id: str
    status: CaptureStatus
    frames: List[RetainedFrameInfo] = Field(default_factory=list)


class HighlightInfo(BaseModel):
    """
    Crop highlight for a display surface.

    Attributes:
        crop: Crop rectangle in source pixels
        overlay: Crop rectangle mapped onto the display rectangle
        preview: Base64 PNG of the last frame with the crop outlined
    """

    crop: Optional[Dict[str, int]] = None
    overlay: Optional[Dict[str, float]] = None
    preview: Optional[str] = None

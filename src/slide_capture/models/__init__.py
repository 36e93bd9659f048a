"""
Data Models
===========

Typed data model for the slide capture agent.

This module re-exports all data models for convenient access.

Models:
    Geometry:
        - CropDirection: Nine anchor points for the crop rectangle
        - CropRegion: Anchor + width/height fractions
        - Rect: Pixel rectangle

    Session:
        - CaptureStatus: IDLE, SEARCHING, CAPTURING, STOPPED, TIMED_OUT
        - Baseline: Signatures of the last retained frame
        - RetainedFrame: One kept frame
        - CaptureSession: Mutable per-session state

    Verdicts:
        - Verdict, StageOutcome, Classification
        - ReasonCode: Machine-readable causes

    Input / Output:
        - FrameMessage, ControlCommand, ControlRequest
        - SessionStatus, RetainedFrameInfo, FrameList, HighlightInfo
"""

from slide_capture.models.geometry import CropDirection, CropRegion, Rect
from slide_capture.models.reason_codes import ReasonCode
from slide_capture.models.session import (
    Baseline,
    CaptureSession,
    CaptureStatus,
    RetainedFrame,
)
from slide_capture.models.verdict import Classification, StageOutcome, Verdict
from slide_capture.models.input import ControlCommand, ControlRequest, FrameMessage
from slide_capture.models.output import (
    FrameList,
    HighlightInfo,
    RetainedFrameInfo,
    SessionStatus,
)

__all__ = [
    # Geometry
    "CropDirection",
    "CropRegion",
    "Rect",
    # Session
    "CaptureStatus",
    "Baseline",
    "RetainedFrame",
    "CaptureSession",
    # Verdicts
    "Verdict",
    "StageOutcome",
    "Classification",
    "ReasonCode",
    # Input
    "FrameMessage",
    "ControlCommand",
    "ControlRequest",
    # Output
    "SessionStatus",
    "RetainedFrameInfo",
    "FrameList",
    "HighlightInfo",
]

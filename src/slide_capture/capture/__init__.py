"""
Capture Module
==============

The capture state machine and its collaborators.

Components:
    - CaptureEngine: timers, ticks and control commands
    - CapturePolicy: deterministic search/tick transitions
    - CaptureObserver: hooks for UI highlighting and logging
    - FrameSink: receivers of retained frames (memory, zip archive)
"""

from slide_capture.capture.transitions import (
    CapturePolicy,
    CaptureTimings,
    SourceCondition,
    TickAction,
    TickDecision,
    TransitionResult,
    is_usable,
    probe_source,
)
from slide_capture.capture.observers import CaptureObserver, LoggingObserver, ObserverGroup
from slide_capture.capture.sinks import FrameSink, MemorySink, ZipArchiveSink, frame_entry_name
from slide_capture.capture.engine import CaptureEngine

__all__ = [
    "CaptureEngine",
    "CapturePolicy",
    "CaptureTimings",
    "SourceCondition",
    "TickAction",
    "TickDecision",
    "TransitionResult",
    "is_usable",
    "probe_source",
    "CaptureObserver",
    "LoggingObserver",
    "ObserverGroup",
    "FrameSink",
    "MemorySink",
    "ZipArchiveSink",
    "frame_entry_name",
]

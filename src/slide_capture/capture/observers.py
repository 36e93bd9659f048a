"""
Capture Observers
=================

Hooks that let UI and observability code follow the engine without
touching session state.

Hooks:
    on_status_changed(old, new, reason)
    on_source_acquired(source, crop)
    on_crop_changed(crop, source_size)
    on_source_lost()
    on_frame_retained(retained, classification, frame)

Design Rules:
    - Observers are notified AFTER the session has been updated
    - Observers never mutate the session
    - An observer that raises is logged and skipped, the engine carries on
"""

import logging
from typing import Iterable, List, Tuple

from slide_capture.models.geometry import Rect
from slide_capture.models.reason_codes import ReasonCode
from slide_capture.models.session import CaptureStatus, RetainedFrame
from slide_capture.models.verdict import Classification
from slide_capture.stream.frame import Frame
from slide_capture.stream.source import FrameSource


logger = logging.getLogger(__name__)


class CaptureObserver:
    """Base observer. Every hook is a no-op, override what you need."""

    def on_status_changed(
        self,
        old: CaptureStatus,
        new: CaptureStatus,
        reason: ReasonCode,
    ) -> None:
        pass

    def on_source_acquired(self, source: FrameSource, crop: Rect) -> None:
        pass

    def on_crop_changed(self, crop: Rect, source_size: Tuple[int, int]) -> None:
        pass

    def on_source_lost(self) -> None:
        pass

    def on_frame_retained(
        self,
        retained: RetainedFrame,
        classification: Classification,
        frame: Frame,
    ) -> None:
        pass


class ObserverGroup:
    """Fans hook calls out to a list of observers, isolating failures."""

    def __init__(self, observers: Iterable[CaptureObserver] = ()) -> None:
        self._observers: List[CaptureObserver] = list(observers)

    def add(self, observer: CaptureObserver) -> None:
        self._observers.append(observer)

    def __len__(self) -> int:
        return len(self._observers)

    def notify(self, hook: str, *args) -> None:
        for observer in self._observers:
            try:
                getattr(observer, hook)(*args)
            except Exception:
                logger.exception(f"Observer {type(observer).__name__}.{hook} failed")


class LoggingObserver(CaptureObserver):
    """Logs status changes and retained frames at INFO."""

    def on_status_changed(self, old, new, reason) -> None:
        logger.info(f"Capture status: {old.value} → {new.value} (reason: {reason.value})")

    def on_frame_retained(self, retained, classification, frame) -> None:
        logger.info(
            f"Retained frame #{retained.index} "
            f"({retained.width}x{retained.height}, {classification.reason.value})"
        )

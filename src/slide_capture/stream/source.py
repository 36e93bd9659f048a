"""
Frame Source Interfaces
=======================

Protocols the capture engine consumes, and a trivial locator.

Interfaces:
    FrameSource:
        current_frame() -> Frame        (may raise SourceUnavailableError)
        is_buffering() -> bool
        is_paused_or_ended() -> bool
        dimensions() -> (width, height)

    SourceLocator:
        locate() -> Optional[FrameSource]

The locator is asked for a source while searching and again whenever the
engine drops its reference to a failed source. Swapping the source keeps
the session's retained frames and baseline.
"""

import logging
from typing import Optional, Protocol, Tuple, runtime_checkable

from slide_capture.stream.frame import Frame


logger = logging.getLogger(__name__)


@runtime_checkable
class FrameSource(Protocol):
    """A visual source the engine samples frames from."""

    def current_frame(self) -> Frame:
        """
        Return the frame currently displayed by the source.

        Raises:
            SourceUnavailableError: If no frame can be produced
        """
        ...

    def is_buffering(self) -> bool:
        """True while the source is loading and has no fresh frame."""
        ...

    def is_paused_or_ended(self) -> bool:
        """True once playback is paused or has finished."""
        ...

    def dimensions(self) -> Tuple[int, int]:
        """(width, height) of the source's frames in pixels."""
        ...


@runtime_checkable
class SourceLocator(Protocol):
    """Supplies (and replaces) the engine's frame source."""

    def locate(self) -> Optional[FrameSource]:
        """Return a frame source, or None if none is available yet."""
        ...


class StaticLocator:
    """
    Locator that hands out a fixed source, which can be swapped or removed.

    Example:
        locator = StaticLocator(source)
        locator.replace(other_source)   # source swap mid-session
        locator.replace(None)           # source removed
    """

    def __init__(self, source: Optional[FrameSource] = None) -> None:
        self._source = source

    def locate(self) -> Optional[FrameSource]:
        return self._source

    def replace(self, source: Optional[FrameSource]) -> None:
        logger.info(f"Source replaced: {type(source).__name__ if source else None}")
        self._source = source

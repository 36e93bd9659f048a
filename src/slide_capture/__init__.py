"""
SlideCaptureAgent
=================

Deduplicating frame capture for presentation videos and live streams.

The agent samples a visual source on a fixed period, crops each sample to a
configured region and keeps one frame per distinct visual state. Duplicates
are filtered by a cheap-to-expensive cascade of byte identity, average hash
and DCT perceptual hash.

Components:
    - geometry: Crop rectangle computation and display mapping
    - imaging: Thumbnails, average hash and perceptual hash
    - dedup: LangGraph-orchestrated similarity pipeline
    - capture: State machine, engine, observers and sinks
    - stream: OpenCV and websocket frame sources
    - observability: Metrics and crop highlighting

Example:
    from slide_capture.capture import CaptureEngine, MemorySink
    from slide_capture.stream import VideoFileLocator

    engine = CaptureEngine(locator=VideoFileLocator("talk.mp4", step_sec=1.0),
                           sink=MemorySink(), timers=False)

The HTTP service lives in slide_capture.main, the command line in
slide_capture.cli.
"""

__version__ = "0.1.0"
__author__ = "Slide Capture Project"

__all__ = [
    "__version__",
]

"""
Error Taxonomy
==============

Exceptions raised by the capture engine and its collaborators.

Recovery rules:
    - ConfigurationError: fails fast at configuration time, never mid-session
    - SourceUnavailableError: tick is skipped, source is re-acquired next tick
    - ImageCodecError: tick is skipped, session state is untouched
    - LengthMismatchError: programming error, never retried
"""


class SlideCaptureError(Exception):
    """Base class for all slide capture errors."""
    pass


class ConfigurationError(SlideCaptureError, ValueError):
    """Raised for invalid crop regions, thresholds or settings."""
    pass


class SourceUnavailableError(SlideCaptureError):
    """Raised when the frame source is missing or yields a degenerate frame."""
    pass


class LengthMismatchError(SlideCaptureError):
    """Raised when two hashes of different lengths are compared."""
    pass


class ImageCodecError(SlideCaptureError):
    """Raised when a frame payload cannot be decoded or encoded."""
    pass

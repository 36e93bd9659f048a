"""
Capture Metrics
===============

Per-engine counters for health monitoring.

Counters only. Metrics never influence capture decisions.
"""

from typing import Dict, Optional


class CaptureMetrics:
    """Counters for CaptureEngine observability."""

    __slots__ = (
        "ticks_total",
        "ticks_sampled",
        "ticks_skipped_buffering",
        "ticks_skipped_overlap",
        "ticks_skipped_source",
        "tick_errors",
        "duplicates_by_reason",
        "distinct_frames",
        "search_polls",
        "search_timeouts",
        "search_errors",
        "sources_acquired",
        "finalizations",
        "last_similarity",
        "last_tick_ms",
    )

    def __init__(self) -> None:
        self.ticks_total: int = 0
        self.ticks_sampled: int = 0
        self.ticks_skipped_buffering: int = 0
        self.ticks_skipped_overlap: int = 0
        self.ticks_skipped_source: int = 0
        self.tick_errors: int = 0
        self.duplicates_by_reason: Dict[str, int] = {}
        self.distinct_frames: int = 0
        self.search_polls: int = 0
        self.search_timeouts: int = 0
        self.search_errors: int = 0
        self.sources_acquired: int = 0
        self.finalizations: int = 0
        self.last_similarity: Optional[float] = None
        self.last_tick_ms: float = 0.0

    @property
    def duplicates(self) -> int:
        return sum(self.duplicates_by_reason.values())

    def record_duplicate(self, reason: str) -> None:
        self.duplicates_by_reason[reason] = self.duplicates_by_reason.get(reason, 0) + 1

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "ticks_total": self.ticks_total,
            "ticks_sampled": self.ticks_sampled,
            "ticks_skipped_buffering": self.ticks_skipped_buffering,
            "ticks_skipped_overlap": self.ticks_skipped_overlap,
            "ticks_skipped_source": self.ticks_skipped_source,
            "tick_errors": self.tick_errors,
            "duplicates": self.duplicates,
            "duplicates_by_reason": dict(self.duplicates_by_reason),
            "distinct_frames": self.distinct_frames,
            "search_polls": self.search_polls,
            "search_timeouts": self.search_timeouts,
            "search_errors": self.search_errors,
            "sources_acquired": self.sources_acquired,
            "finalizations": self.finalizations,
            "last_similarity": self.last_similarity,
            "last_tick_ms": round(self.last_tick_ms, 3),
        }

"""
Deduplication Module
====================

Tiered similarity filtering: byte identity, average hash, perceptual hash.
"""

from slide_capture.dedup.stages import (
    AverageHashStage,
    ByteIdentityStage,
    FilterStage,
    PerceptualHashStage,
)
from slide_capture.dedup.pipeline import (
    SimilarityPipeline,
    SimilarityThresholds,
    default_stages,
)

__all__ = [
    "FilterStage",
    "ByteIdentityStage",
    "AverageHashStage",
    "PerceptualHashStage",
    "SimilarityPipeline",
    "SimilarityThresholds",
    "default_stages",
]

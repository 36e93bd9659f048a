"""
Verdict Models
==============

Results produced by the similarity filter stages and the pipeline that
orchestrates them.

Core Concepts:
    - Verdict: DUPLICATE, DISTINCT, or INCONCLUSIVE (stage could not decide)
    - StageOutcome: What a single stage concluded, plus any signatures it computed
    - Classification: The pipeline's final answer for one thumbnail

A DISTINCT classification always carries every signature computed while it
was evaluated, so the caller can promote them to the new baseline together
with the retained frame.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

import numpy as np

from slide_capture.models.reason_codes import ReasonCode


class Verdict(str, Enum):
    """
    Outcome of comparing a thumbnail against the baseline.

    Attributes:
        DUPLICATE: Same visual state as the last retained frame
        DISTINCT: Visual state changed, frame should be retained
        INCONCLUSIVE: The stage cannot decide, defer to the next stage
    """

    DUPLICATE = "DUPLICATE"
    DISTINCT = "DISTINCT"
    INCONCLUSIVE = "INCONCLUSIVE"


@dataclass(frozen=True)
class StageOutcome:
    """
    Result of a single filter stage.

    Attributes:
        verdict: Stage verdict
        reason: Machine-readable cause
        similarity: Similarity measured by the stage, if any
        signatures: Hashes computed by the stage, keyed by signature name
    """

    verdict: Verdict
    reason: ReasonCode = ReasonCode.INCONCLUSIVE
    similarity: Optional[float] = None
    signatures: Dict[str, np.ndarray] = field(default_factory=dict)

    @classmethod
    def inconclusive(cls, **signatures: np.ndarray) -> "StageOutcome":
        return cls(Verdict.INCONCLUSIVE, ReasonCode.INCONCLUSIVE, None, dict(signatures))


@dataclass(frozen=True)
class Classification:
    """
    Final verdict of the similarity pipeline for one thumbnail.

    Attributes:
        verdict: DUPLICATE or DISTINCT (never INCONCLUSIVE)
        reason: Reason code of the deciding stage
        decided_by: Name of the deciding stage (None if no stage decided)
        similarity: Similarity measured by the deciding stage, if any
        average_hash: Average hash of the thumbnail, if computed
        perceptual_hash: Perceptual hash of the thumbnail, if computed
        stages_run: Names of the stages that were evaluated, in order
    """

    verdict: Verdict
    reason: ReasonCode
    decided_by: Optional[str] = None
    similarity: Optional[float] = None
    average_hash: Optional[np.ndarray] = None
    perceptual_hash: Optional[np.ndarray] = None
    stages_run: Tuple[str, ...] = ()

    @property
    def is_distinct(self) -> bool:
        return self.verdict == Verdict.DISTINCT

    def __repr__(self) -> str:
        sim = f"{self.similarity:.3f}" if self.similarity is not None else "-"
        return (
            f"Classification({self.verdict.value}, {self.reason.value}, "
            f"by={self.decided_by}, sim={sim})"
        )

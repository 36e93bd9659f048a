"""
Filter Stages
=============

Pluggable stages of the similarity pipeline, ordered cheapest first.

Each stage looks at the current thumbnail, the baseline of the last
retained frame, and any signatures earlier stages already computed, and
returns a StageOutcome:
    - DUPLICATE: stop, the frame is discarded
    - DISTINCT: stop, the frame is retained
    - INCONCLUSIVE: defer to the next stage

Built-in Stages:
    1. ByteIdentityStage: byte-for-byte thumbnail equality
    2. AverageHashStage: bit-exact average hash match
    3. PerceptualHashStage: perceptual hash similarity against a threshold

Design Rules:
    - Stages never mutate the baseline or the session
    - A stage that computes a signature reports it in the outcome, so the
      caller can promote it to the baseline without recomputing
"""

import logging
from typing import Dict, Optional, Protocol, runtime_checkable

import numpy as np

from slide_capture.errors import ConfigurationError
from slide_capture.imaging.average_hash import DEFAULT_HASH_SIZE, average_hash
from slide_capture.imaging.perceptual_hash import HASH_LENGTH, perceptual_hash
from slide_capture.imaging.raster import Thumbnail
from slide_capture.imaging.signatures import hash_similarity
from slide_capture.models.reason_codes import ReasonCode
from slide_capture.models.session import Baseline
from slide_capture.models.verdict import StageOutcome, Verdict


logger = logging.getLogger(__name__)


AVERAGE_HASH_KEY = "average_hash"
PERCEPTUAL_HASH_KEY = "perceptual_hash"


@runtime_checkable
class FilterStage(Protocol):
    """
    Interface for similarity filter stages.

    Attributes:
        name: Unique stage name within a pipeline
    """

    name: str

    def evaluate(
        self,
        thumbnail: Thumbnail,
        baseline: Optional[Baseline],
        signatures: Dict[str, np.ndarray],
    ) -> StageOutcome:
        """
        Judge a thumbnail against the baseline.

        Args:
            thumbnail: Current thumbnail
            baseline: Signatures of the last retained frame, if any
            signatures: Signatures computed by earlier stages

        Returns:
            StageOutcome
        """
        ...


class ByteIdentityStage:
    """Duplicate when the thumbnail is byte-identical to the baseline's."""

    name = "identical_bytes"

    def evaluate(
        self,
        thumbnail: Thumbnail,
        baseline: Optional[Baseline],
        signatures: Dict[str, np.ndarray],
    ) -> StageOutcome:
        if baseline is not None and thumbnail.is_identical(baseline.thumbnail):
            return StageOutcome(Verdict.DUPLICATE, ReasonCode.IDENTICAL_BYTES, 1.0)
        return StageOutcome.inconclusive()


class AverageHashStage:
    """
    Duplicate when the average hash matches the baseline's bit for bit.

    With exact=False the stage only computes the signature and never decides.
    """

    name = "average_hash"

    def __init__(self, size: int = DEFAULT_HASH_SIZE, exact: bool = True) -> None:
        if not 2 <= size <= 32:
            raise ConfigurationError(f"Average hash size must be in [2, 32], got {size}")
        self.size = size
        self.exact = exact

    def evaluate(
        self,
        thumbnail: Thumbnail,
        baseline: Optional[Baseline],
        signatures: Dict[str, np.ndarray],
    ) -> StageOutcome:
        current = average_hash(thumbnail, self.size)
        computed = {AVERAGE_HASH_KEY: current}

        previous = baseline.average_hash if baseline is not None else None
        if not self.exact or previous is None:
            return StageOutcome.inconclusive(**computed)

        similarity = hash_similarity(current, previous)
        if similarity == 1.0:
            return StageOutcome(
                Verdict.DUPLICATE, ReasonCode.AVERAGE_HASH_MATCH, similarity, computed
            )

        logger.debug(f"Average hash differs (similarity={similarity:.3f})")
        return StageOutcome(Verdict.INCONCLUSIVE, ReasonCode.INCONCLUSIVE, similarity, computed)


class PerceptualHashStage:
    """
    Authoritative stage: compares perceptual hashes against min_similarity.

    Always decides. Without a baseline hash the frame is DISTINCT.
    """

    name = "perceptual_hash"

    def __init__(self, min_similarity: float = 0.95) -> None:
        if not 0 < min_similarity <= 1:
            raise ConfigurationError(
                f"Perceptual hash min similarity must be in (0, 1], got {min_similarity}"
            )
        self.min_similarity = min_similarity

    def evaluate(
        self,
        thumbnail: Thumbnail,
        baseline: Optional[Baseline],
        signatures: Dict[str, np.ndarray],
    ) -> StageOutcome:
        current = perceptual_hash(thumbnail)
        computed = {PERCEPTUAL_HASH_KEY: current}

        previous = baseline.perceptual_hash if baseline is not None else None
        if previous is None:
            return StageOutcome(Verdict.DISTINCT, ReasonCode.NO_BASELINE, None, computed)

        similarity = hash_similarity(current, previous, expected_length=HASH_LENGTH)
        if similarity >= self.min_similarity:
            return StageOutcome(
                Verdict.DUPLICATE, ReasonCode.PERCEPTUAL_HASH_SIMILAR, similarity, computed
            )
        return StageOutcome(
            Verdict.DISTINCT, ReasonCode.PERCEPTUAL_HASH_CHANGED, similarity, computed
        )

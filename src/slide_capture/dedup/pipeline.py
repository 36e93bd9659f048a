"""
Similarity Pipeline
===================

Decides whether a thumbnail is a DUPLICATE of the last retained frame or a
DISTINCT new visual state.

The ordered stage list is compiled into a LangGraph workflow.
LangGraph is used for CONTROL FLOW only, not LLM reasoning.

Graph Structure (default stages):
    START → identical_bytes ─DUPLICATE→ END
                 │ INCONCLUSIVE
                 ▼
            average_hash ─DUPLICATE→ END
                 │ INCONCLUSIVE
                 ▼
            perceptual_hash → END

Rules:
    - Stages run cheapest first and the first decisive verdict wins
    - If every stage is inconclusive the frame is DISTINCT (NO_STAGE_DECIDED)
    - The pipeline never mutates the session; on DISTINCT it returns the
      computed signatures so the caller can replace the baseline atomically
      with appending the retained frame
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TypedDict

import numpy as np
from langgraph.graph import StateGraph, END

from slide_capture.errors import ConfigurationError
from slide_capture.dedup.stages import (
    AVERAGE_HASH_KEY,
    PERCEPTUAL_HASH_KEY,
    AverageHashStage,
    ByteIdentityStage,
    FilterStage,
    PerceptualHashStage,
)
from slide_capture.imaging.raster import Thumbnail
from slide_capture.models.reason_codes import ReasonCode
from slide_capture.models.session import Baseline, CaptureSession
from slide_capture.models.verdict import Classification, StageOutcome, Verdict


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarityThresholds:
    """
    Tunable thresholds for the default stage list.

    Attributes:
        identical_bytes: Enable the byte-identity fast path
        avg_hash_exact: Treat a bit-exact average hash match as duplicate
        average_hash_size: Average hash grid edge (hash has size^2 bits)
        phash_min: Minimum perceptual hash similarity for a duplicate, in percent
    """

    identical_bytes: bool = True
    avg_hash_exact: bool = True
    average_hash_size: int = 8
    phash_min: float = 95.0

    def __post_init__(self) -> None:
        """Validate invariants."""
        if isinstance(self.phash_min, bool) or not isinstance(self.phash_min, (int, float)):
            raise ConfigurationError(f"phash_min must be a number, got {self.phash_min!r}")
        if not 0 < self.phash_min <= 100:
            raise ConfigurationError(f"phash_min must be in (0, 100], got {self.phash_min}")
        if not 2 <= self.average_hash_size <= 32:
            raise ConfigurationError(
                f"average_hash_size must be in [2, 32], got {self.average_hash_size}"
            )

    @property
    def phash_min_fraction(self) -> float:
        return self.phash_min / 100.0


class PipelineState(TypedDict):
    """
    State passed through the pipeline graph.

    Attributes:
        thumbnail: Thumbnail under evaluation
        baseline: Signatures of the last retained frame
        signatures: Signatures computed so far, keyed by name
        outcome: Outcome of the most recent stage
        decided_by: Name of the stage that produced a decisive verdict
        stages_run: Names of evaluated stages, in order
    """
    thumbnail: Thumbnail
    baseline: Optional[Baseline]
    signatures: Dict[str, np.ndarray]
    outcome: Optional[StageOutcome]
    decided_by: Optional[str]
    stages_run: List[str]


def default_stages(thresholds: SimilarityThresholds) -> List[FilterStage]:
    """Build the standard byte → average hash → perceptual hash stage list."""
    stages: List[FilterStage] = []
    if thresholds.identical_bytes:
        stages.append(ByteIdentityStage())
    stages.append(AverageHashStage(thresholds.average_hash_size, thresholds.avg_hash_exact))
    stages.append(PerceptualHashStage(thresholds.phash_min_fraction))
    return stages


class SimilarityPipeline:
    """
    Tiered similarity classifier.

    Stages can be inserted or replaced without touching the orchestration:
    each becomes one node of the compiled graph.
    """

    def __init__(
        self,
        stages: Optional[Sequence[FilterStage]] = None,
        thresholds: Optional[SimilarityThresholds] = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            stages: Ordered stage list (defaults built from thresholds)
            thresholds: Thresholds for the default stage list

        Raises:
            ConfigurationError: If the stage list is empty or names repeat
        """
        self.thresholds = thresholds or SimilarityThresholds()
        self.stages: List[FilterStage] = list(
            stages if stages is not None else default_stages(self.thresholds)
        )
        self._validate_stages()

        self._graph = self._build_graph()

        logger.info(
            f"SimilarityPipeline initialized: "
            f"stages={[stage.name for stage in self.stages]}, "
            f"phash_min={self.thresholds.phash_min}%"
        )

    def _validate_stages(self) -> None:
        if not self.stages:
            raise ConfigurationError("Similarity pipeline needs at least one stage")

        names = [stage.name for stage in self.stages]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Stage names must be unique: {names}")

        for name in names:
            if not name or any(ch in name for ch in ":|"):
                raise ConfigurationError(f"Invalid stage name: {name!r}")

    @staticmethod
    def _node_name(stage: FilterStage) -> str:
        return f"stage_{stage.name}"

    def _build_graph(self):
        """Build the LangGraph workflow, one node per stage."""
        workflow = StateGraph(PipelineState)

        for stage in self.stages:
            workflow.add_node(self._node_name(stage), self._make_node(stage))

        workflow.set_entry_point(self._node_name(self.stages[0]))

        for stage, following in zip(self.stages, self.stages[1:]):
            workflow.add_conditional_edges(
                self._node_name(stage),
                self._route,
                {"next": self._node_name(following), "done": END},
            )
        workflow.add_edge(self._node_name(self.stages[-1]), END)

        return workflow.compile()

    @staticmethod
    def _route(state: PipelineState) -> str:
        outcome = state.get("outcome")
        if outcome is not None and outcome.verdict != Verdict.INCONCLUSIVE:
            return "done"
        return "next"

    @staticmethod
    def _make_node(stage: FilterStage):
        def run_stage(state: PipelineState) -> Dict[str, Any]:
            outcome = stage.evaluate(state["thumbnail"], state["baseline"], state["signatures"])
            update: Dict[str, Any] = {
                "outcome": outcome,
                "signatures": {**state["signatures"], **outcome.signatures},
                "stages_run": state["stages_run"] + [stage.name],
            }
            if outcome.verdict != Verdict.INCONCLUSIVE:
                update["decided_by"] = stage.name
            return update

        run_stage.__name__ = f"run_{stage.name}"
        return run_stage

    def evaluate(self, thumbnail: Thumbnail, baseline: Optional[Baseline]) -> Classification:
        """
        Classify a thumbnail against an explicit baseline.

        Args:
            thumbnail: Current thumbnail
            baseline: Signatures of the last retained frame, or None

        Returns:
            Classification (DUPLICATE or DISTINCT)
        """
        initial: PipelineState = {
            "thumbnail": thumbnail,
            "baseline": baseline,
            "signatures": {},
            "outcome": None,
            "decided_by": None,
            "stages_run": [],
        }
        result = self._graph.invoke(initial)

        outcome: Optional[StageOutcome] = result.get("outcome")
        signatures = result.get("signatures", {})

        if outcome is None or outcome.verdict == Verdict.INCONCLUSIVE:
            verdict = Verdict.DISTINCT
            reason = ReasonCode.NO_STAGE_DECIDED
            decided_by = None
            similarity = outcome.similarity if outcome is not None else None
        else:
            verdict = outcome.verdict
            reason = outcome.reason
            decided_by = result.get("decided_by")
            similarity = outcome.similarity

        classification = Classification(
            verdict=verdict,
            reason=reason,
            decided_by=decided_by,
            similarity=similarity,
            average_hash=signatures.get(AVERAGE_HASH_KEY),
            perceptual_hash=signatures.get(PERCEPTUAL_HASH_KEY),
            stages_run=tuple(result.get("stages_run", [])),
        )

        logger.debug(f"Classified thumbnail: {classification!r}")
        return classification

    def classify(self, thumbnail: Thumbnail, session: CaptureSession) -> Classification:
        """
        Classify a thumbnail against the session's last retained frame.

        Session state is only read, never changed.
        """
        return self.evaluate(thumbnail, session.baseline)

"""
Similarity Pipeline Tests
=========================
"""

from unittest import mock

import numpy as np
import pytest

from slide_capture.dedup import (
    AverageHashStage,
    ByteIdentityStage,
    PerceptualHashStage,
    SimilarityPipeline,
    SimilarityThresholds,
    default_stages,
)
from slide_capture.dedup import stages as stages_module
from slide_capture.errors import ConfigurationError
from slide_capture.imaging import Thumbnail, average_hash, perceptual_hash, reduce_frame
from slide_capture.models.geometry import Rect
from slide_capture.models.reason_codes import ReasonCode
from slide_capture.models.session import Baseline, CaptureSession
from slide_capture.models.verdict import StageOutcome, Verdict


def thumbnail_of(pixels: np.ndarray) -> Thumbnail:
    height, width = pixels.shape[:2]
    return reduce_frame(pixels, Rect(0, 0, width, height), 64)


def baseline_of(thumb: Thumbnail) -> Baseline:
    return Baseline(thumb, average_hash(thumb), perceptual_hash(thumb))


class FixedStage:
    """Stage returning a fixed verdict, counting calls."""

    def __init__(self, name, verdict, reason=ReasonCode.INCONCLUSIVE):
        self.name = name
        self.verdict = verdict
        self.reason = reason
        self.calls = 0

    def evaluate(self, thumbnail, baseline, signatures):
        self.calls += 1
        return StageOutcome(self.verdict, self.reason)


class TestDefaultPipeline:
    """Tests for the byte → average hash → perceptual hash cascade."""

    def test_first_frame_is_distinct(self, slide):
        result = SimilarityPipeline().evaluate(thumbnail_of(slide(1)), None)

        assert result.verdict == Verdict.DISTINCT
        assert result.reason == ReasonCode.NO_BASELINE
        assert result.decided_by == "perceptual_hash"
        assert result.average_hash is not None
        assert result.perceptual_hash is not None

    def test_identical_bytes_skip_hashing(self, slide):
        """Byte-identical thumbnails are duplicates without computing any hash."""
        thumb = thumbnail_of(slide(2))
        baseline = baseline_of(thumbnail_of(slide(2)))

        with mock.patch.object(stages_module, "average_hash", wraps=average_hash) as ahash, \
                mock.patch.object(stages_module, "perceptual_hash", wraps=perceptual_hash) as phash:
            result = SimilarityPipeline().evaluate(thumb, baseline)

        assert result.verdict == Verdict.DUPLICATE
        assert result.reason == ReasonCode.IDENTICAL_BYTES
        assert result.stages_run == ("identical_bytes",)
        assert ahash.call_count == 0
        assert phash.call_count == 0

    def test_average_hash_match_skips_perceptual_hash(self, slide):
        pixels = slide(3, 64, 64)
        baseline = baseline_of(Thumbnail(pixels))
        nudged = pixels.copy()
        nudged[30, 30, 0] = nudged[30, 30, 0] + 1 if nudged[30, 30, 0] < 255 else 254
        thumb = Thumbnail(nudged)
        assert not thumb.is_identical(baseline.thumbnail)

        with mock.patch.object(stages_module, "perceptual_hash", wraps=perceptual_hash) as phash:
            result = SimilarityPipeline().evaluate(thumb, baseline)

        assert result.verdict == Verdict.DUPLICATE
        assert result.reason == ReasonCode.AVERAGE_HASH_MATCH
        assert phash.call_count == 0

    def test_changed_slide_is_distinct(self, slide):
        baseline = baseline_of(thumbnail_of(slide(4)))
        result = SimilarityPipeline().evaluate(thumbnail_of(slide(5)), baseline)

        assert result.verdict == Verdict.DISTINCT
        assert result.reason == ReasonCode.PERCEPTUAL_HASH_CHANGED
        assert result.similarity < 0.95
        assert result.stages_run == ("identical_bytes", "average_hash", "perceptual_hash")

    def test_distinct_carries_all_signatures(self, slide):
        """A DISTINCT classification can become the next baseline as-is."""
        thumb = thumbnail_of(slide(6))
        result = SimilarityPipeline().evaluate(thumb, baseline_of(thumbnail_of(slide(7))))

        np.testing.assert_array_equal(result.average_hash, average_hash(thumb))
        np.testing.assert_array_equal(result.perceptual_hash, perceptual_hash(thumb))

    def test_classify_reads_session_baseline(self, slide):
        session = CaptureSession()
        session.baseline = baseline_of(thumbnail_of(slide(8)))

        result = SimilarityPipeline().classify(thumbnail_of(slide(8)), session)

        assert result.verdict == Verdict.DUPLICATE
        assert session.retained_frames == []

    def test_similar_perceptual_hash_is_duplicate(self, slide):
        """Average hash disabled: near-identical frames fall to the perceptual hash."""
        pixels = slide(9)
        thresholds = SimilarityThresholds(identical_bytes=False, avg_hash_exact=False)
        baseline = baseline_of(thumbnail_of(pixels))

        result = SimilarityPipeline(thresholds=thresholds).evaluate(thumbnail_of(pixels), baseline)

        assert result.verdict == Verdict.DUPLICATE
        assert result.reason == ReasonCode.PERCEPTUAL_HASH_SIMILAR
        assert result.similarity == 1.0

    def test_threshold_is_inclusive(self, slide):
        """Similarity exactly at the threshold counts as duplicate."""
        thumb = thumbnail_of(slide(10))
        bits = perceptual_hash(thumb)
        flipped = bits.copy()
        flipped[5] ^= 1
        flipped[40] ^= 1
        flipped[63] ^= 1
        baseline = Baseline(thumbnail_of(slide(11)), None, flipped)

        # 61/64 = 0.953 >= 0.95
        result = PerceptualHashStage(0.95).evaluate(thumb, baseline, {})
        assert result.verdict == Verdict.DUPLICATE

        flipped[20] ^= 1
        # 60/64 = 0.9375 < 0.95
        result = PerceptualHashStage(0.95).evaluate(thumb, baseline, {})
        assert result.verdict == Verdict.DISTINCT


class TestCustomStages:
    """Tests for pluggable stage lists."""

    def test_first_decisive_stage_wins(self, slide):
        first = FixedStage("first", Verdict.INCONCLUSIVE)
        second = FixedStage("second", Verdict.DUPLICATE, ReasonCode.AVERAGE_HASH_MATCH)
        third = FixedStage("third", Verdict.DISTINCT)

        result = SimilarityPipeline([first, second, third]).evaluate(thumbnail_of(slide(1)), None)

        assert result.verdict == Verdict.DUPLICATE
        assert result.decided_by == "second"
        assert (first.calls, second.calls, third.calls) == (1, 1, 0)

    def test_all_inconclusive_is_distinct(self, slide):
        stages = [FixedStage("a", Verdict.INCONCLUSIVE), FixedStage("b", Verdict.INCONCLUSIVE)]

        result = SimilarityPipeline(stages).evaluate(thumbnail_of(slide(2)), None)

        assert result.verdict == Verdict.DISTINCT
        assert result.reason == ReasonCode.NO_STAGE_DECIDED
        assert result.decided_by is None
        assert result.stages_run == ("a", "b")

    def test_single_stage(self, slide):
        result = SimilarityPipeline([ByteIdentityStage()]).evaluate(thumbnail_of(slide(3)), None)
        assert result.verdict == Verdict.DISTINCT

    def test_empty_stage_list_rejected(self):
        with pytest.raises(ConfigurationError):
            SimilarityPipeline([])

    def test_duplicate_stage_names_rejected(self):
        with pytest.raises(ConfigurationError):
            SimilarityPipeline([ByteIdentityStage(), ByteIdentityStage()])

    def test_default_stages_follow_thresholds(self):
        names = [s.name for s in default_stages(SimilarityThresholds(identical_bytes=False))]
        assert names == ["average_hash", "perceptual_hash"]


class TestThresholds:
    """Tests for threshold validation."""

    @pytest.mark.parametrize("value", [0, -1, 100.5])
    def test_phash_min_out_of_range(self, value):
        with pytest.raises(ConfigurationError):
            SimilarityThresholds(phash_min=value)

    def test_phash_min_fraction(self):
        assert SimilarityThresholds(phash_min=90).phash_min_fraction == pytest.approx(0.9)

    def test_average_hash_size_range(self):
        with pytest.raises(ConfigurationError):
            AverageHashStage(size=1)

    def test_perceptual_stage_range(self):
        with pytest.raises(ConfigurationError):
            PerceptualHashStage(min_similarity=1.5)

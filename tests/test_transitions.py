"""
Capture Transition Tests
========================
"""

import pytest

from slide_capture.capture import (
    CapturePolicy,
    CaptureTimings,
    SourceCondition,
    TickAction,
    is_usable,
    probe_source,
)
from slide_capture.errors import ConfigurationError
from slide_capture.models.reason_codes import ReasonCode
from slide_capture.models.session import CaptureSession, CaptureStatus


@pytest.fixture
def policy():
    return CapturePolicy(CaptureTimings(1.0, 1.0, 300.0))


@pytest.fixture
def searching_session():
    session = CaptureSession()
    session.status = CaptureStatus.SEARCHING
    session.searching_since = 100.0
    return session


class TestCaptureTimings:
    """Tests for timer configuration."""

    def test_defaults(self):
        timings = CaptureTimings()
        assert timings.tick_interval_sec == 1.0
        assert timings.search_interval_sec == 1.0
        assert timings.search_timeout_sec == 300.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"tick_interval_sec": 0},
            {"search_interval_sec": -1},
            {"search_timeout_sec": 0},
        ],
    )
    def test_non_positive_rejected(self, kwargs):
        with pytest.raises(ConfigurationError):
            CaptureTimings(**kwargs)


class TestProbeSource:
    """Tests for source probing."""

    def test_missing(self):
        assert probe_source(None) == SourceCondition.MISSING
        assert not is_usable(None)

    def test_ready(self, make_source, slide):
        source = make_source(slide(1))
        assert probe_source(source) == SourceCondition.READY
        assert is_usable(source)

    def test_buffering_checked_first(self, make_source, slide):
        source = make_source(slide(1))
        source.buffering = True
        source.paused = True
        assert probe_source(source) == SourceCondition.BUFFERING

    def test_paused(self, make_source, slide):
        source = make_source(slide(1))
        source.paused = True
        assert probe_source(source) == SourceCondition.PAUSED_OR_ENDED

    def test_zero_dimensions_are_missing(self, make_source):
        source = make_source()
        assert probe_source(source) == SourceCondition.MISSING
        assert not is_usable(source)


class TestSearchTransitions:
    """Tests for CapturePolicy.evaluate_search."""

    def test_source_found(self, policy, searching_session):
        result = policy.evaluate_search(searching_session, True, 101.0)
        assert result.new_status == CaptureStatus.CAPTURING
        assert result.reason_code == ReasonCode.SOURCE_ACQUIRED
        assert result.transition_occurred

    def test_keep_searching(self, policy, searching_session):
        result = policy.evaluate_search(searching_session, False, 399.9)
        assert result.new_status == CaptureStatus.SEARCHING
        assert not result.transition_occurred

    def test_timeout(self, policy, searching_session):
        result = policy.evaluate_search(searching_session, False, 400.0)
        assert result.new_status == CaptureStatus.TIMED_OUT
        assert result.reason_code == ReasonCode.SEARCH_TIMEOUT

    def test_found_wins_over_timeout(self, policy, searching_session):
        result = policy.evaluate_search(searching_session, True, 1000.0)
        assert result.new_status == CaptureStatus.CAPTURING

    def test_not_searching_is_noop(self, policy):
        session = CaptureSession()
        result = policy.evaluate_search(session, True, 0.0)
        assert result.new_status == CaptureStatus.IDLE
        assert not result.transition_occurred


class TestTickDecisions:
    """Tests for CapturePolicy.evaluate_tick."""

    @pytest.mark.parametrize(
        "condition, action, reason",
        [
            (SourceCondition.READY, TickAction.SAMPLE, ReasonCode.SAMPLED),
            (SourceCondition.BUFFERING, TickAction.SKIP, ReasonCode.SOURCE_BUFFERING),
            (SourceCondition.PAUSED_OR_ENDED, TickAction.STOP, ReasonCode.SOURCE_PAUSED_OR_ENDED),
            (SourceCondition.MISSING, TickAction.REACQUIRE, ReasonCode.SOURCE_LOST),
        ],
    )
    def test_mapping(self, policy, condition, action, reason):
        decision = policy.evaluate_tick(condition)
        assert decision.action == action
        assert decision.reason_code == reason

"""Tests for feedback-driven proposal generation."""

from dataclasses import replace

import numpy as np
import pytest
from conftest import T0, make_config, make_trace

from accuracy_engine.models.domain import ConfigStatus, FeedbackEvent, ScoringWeights
from accuracy_engine.scoring.reason_codes import ReasonCode
from accuracy_engine.tuning.local_search import (
    find_predecessor,
    nudge_diversity_penalty,
    perturb_weights,
    propose,
    signal_direction,
)

GOOD = {"semantic": 0.5, "keyword": 0.9, "recency": 0.5}
BAD = {"semantic": 0.9, "keyword": 0.4, "recency": 0.5}


def feedback_log(version, positives, negatives, reason=None, prefix="q"):
    """Rated events with matching traces served under ``version``."""
    events, traces = [], {}
    for i in range(positives):
        mid = f"{prefix}-pos-{i}"
        events.append(FeedbackEvent(mid, 1, None, T0))
        traces[mid] = make_trace(mid, version, GOOD)
    for i in range(negatives):
        mid = f"{prefix}-neg-{i}"
        events.append(FeedbackEvent(mid, -1, reason, T0))
        traces[mid] = make_trace(mid, version, BAD)
    return events, traces


def test_signal_direction_positive_minus_negative():
    events, traces = feedback_log(1, 4, 4)
    direction = signal_direction(events, traces, 1)
    assert direction == pytest.approx(np.array([-0.4, 0.5, 0.0]))


def test_signal_direction_needs_both_signs():
    events, traces = feedback_log(1, 4, 0)
    assert signal_direction(events, traces, 1) is None


def test_signal_direction_ignores_other_versions():
    events, traces = feedback_log(2, 4, 4)
    assert signal_direction(events, traces, 1) is None


def test_perturb_weights_moves_toward_direction():
    weights = ScoringWeights(0.6, 0.3, 0.1, diversity_penalty=0.15)
    moved = perturb_weights(weights, np.array([-0.4, 0.5, 0.0]), step=0.05, min_weight=0.05)
    assert (moved.semantic, moved.keyword, moved.recency) == (0.55, 0.35, 0.1)
    assert moved.diversity_penalty == 0.15


def test_perturb_weights_clamps_and_keeps_sum():
    weights = ScoringWeights(0.05, 0.9, 0.05)
    moved = perturb_weights(weights, np.array([0.3, 0.3, -0.3]), step=0.05, min_weight=0.05)
    assert sum(moved.signal_vector()) == pytest.approx(1.0, abs=1e-3)
    assert all(w > 0 for w in moved.signal_vector())


def test_perturb_weights_ignores_small_differences():
    weights = ScoringWeights(0.6, 0.3, 0.1)
    moved = perturb_weights(weights, np.array([0.005, -0.005, 0.0]), step=0.05, min_weight=0.05)
    assert moved == weights


def test_propose_from_feedback_direction(settings):
    active = make_config(version=1)
    events, traces = feedback_log(1, 4, 4)
    proposal, reason = propose(active, events, traces, [active], settings)
    assert reason == ReasonCode.FEEDBACK_DIRECTION
    assert proposal.parent_version == 1
    assert (proposal.weights.semantic, proposal.weights.keyword, proposal.weights.recency) == (0.55, 0.35, 0.1)
    assert proposal.thresholds == active.thresholds


def test_propose_requires_enough_feedback(settings):
    active = make_config(version=1)
    events, traces = feedback_log(1, 2, 2)
    assert propose(active, events, traces, [active], settings) == (None, ReasonCode.INSUFFICIENT_FEEDBACK)


def test_propose_without_direction(settings):
    active = make_config(version=1)
    events, traces = feedback_log(1, 8, 0)
    assert propose(active, events, traces, [active], settings) == (None, ReasonCode.NO_SIGNAL_DIRECTION)


def test_recall_failures_lower_min_similarity(settings):
    active = make_config(version=1, min_similarity=0.5)
    events, traces = feedback_log(1, 0, 8, reason="incomplete: missing the deadline")
    proposal, reason = propose(active, events, traces, [active], settings)
    assert reason == ReasonCode.FEEDBACK_DIRECTION
    assert proposal.thresholds.min_similarity == 0.45
    # one-sided feedback nudges thresholds but leaves the signal weights alone
    assert proposal.weights.signal_vector() == active.weights.signal_vector()


def test_incomplete_answers_raise_diversity_penalty(settings):
    active = make_config(version=1, diversity_penalty=0.15)
    events, traces = feedback_log(1, 4, 4, reason="incomplete: only one document")
    proposal, _ = propose(active, events, traces, [active], settings)
    assert proposal.weights.diversity_penalty == 0.2


def test_diversity_penalty_clamped(settings):
    weights = ScoringWeights(0.6, 0.3, 0.1, diversity_penalty=0.98)
    events = [FeedbackEvent("m1", -1, "incomplete", T0)]
    assert nudge_diversity_penalty(weights, events, settings).diversity_penalty == 1.0


def test_diversity_penalty_unchanged_below_rate(settings):
    weights = ScoringWeights(0.6, 0.3, 0.1, diversity_penalty=0.15)
    events = [FeedbackEvent(f"m{i}", 1, None, T0) for i in range(19)]
    events.append(FeedbackEvent("m-neg", -1, "incomplete", T0))
    assert nudge_diversity_penalty(weights, events, settings) == weights


def test_precision_failures_raise_min_similarity(settings):
    active = make_config(version=1, min_similarity=0.5)
    events, traces = feedback_log(1, 0, 8, reason="wrong document")
    proposal, _ = propose(active, events, traces, [active], settings)
    assert proposal.thresholds.min_similarity == 0.55


def test_regression_proposes_rollback_to_predecessor(settings):
    predecessor = make_config(version=1, semantic=0.7, keyword=0.2, recency=0.1)
    predecessor = predecessor.with_status(ConfigStatus.RETIRED, T0)
    active = make_config(version=2)
    good_events, good_traces = feedback_log(1, 4, 0, prefix="old")
    bad_events, bad_traces = feedback_log(2, 0, 4, prefix="new")

    assert find_predecessor(active, [predecessor, active]) == predecessor
    proposal, reason = propose(
        active, good_events + bad_events, {**good_traces, **bad_traces}, [predecessor, active], settings
    )
    assert reason == ReasonCode.REGRESSION_ROLLBACK
    assert proposal.weights == predecessor.weights
    assert proposal.thresholds == predecessor.thresholds
    assert proposal.parent_version == 2


def test_retired_rollback_not_proposed_again(settings):
    predecessor = make_config(version=1, semantic=0.7, keyword=0.2, recency=0.1)
    predecessor = predecessor.with_status(ConfigStatus.RETIRED, T0)
    active = make_config(version=2)
    rejected_rollback = replace(
        make_config(version=3, status=ConfigStatus.RETIRED),
        weights=predecessor.weights,
        thresholds=predecessor.thresholds,
        parent_version=2,
    )
    old_events, old_traces = feedback_log(1, 8, 0, prefix="old")
    new_events, new_traces = feedback_log(2, 4, 4, prefix="new")
    history = [predecessor, active, rejected_rollback]

    proposal, reason = propose(
        active, old_events + new_events, {**old_traces, **new_traces}, history, settings
    )
    assert reason == ReasonCode.FEEDBACK_DIRECTION
    assert proposal.weights != predecessor.weights
    assert (proposal.weights.semantic, proposal.weights.keyword, proposal.weights.recency) == (0.55, 0.35, 0.1)


def test_never_activated_config_is_not_a_predecessor():
    rejected_draft = make_config(version=1, status=ConfigStatus.RETIRED)
    assert find_predecessor(make_config(version=2), [rejected_draft]) is None


def test_duplicate_of_rejected_candidate_not_proposed(settings):
    active = make_config(version=1)
    events, traces = feedback_log(1, 4, 4)
    first, _ = propose(active, events, traces, [active], settings)
    rejected = replace(
        make_config(version=2, status=ConfigStatus.RETIRED),
        weights=first.weights,
        thresholds=first.thresholds,
        parent_version=1,
    )
    assert propose(active, events, traces, [active, rejected], settings) == (
        None,
        ReasonCode.DUPLICATE_PROPOSAL,
    )

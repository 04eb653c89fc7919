"""Tests for log-replay aggregates and the default comparator."""

from datetime import timedelta

import pytest
from conftest import T0, make_trace

from accuracy_engine.models.domain import FeedbackEvent, RuleResult, ShadowTestRecord
from accuracy_engine.tuning.aggregates import (
    aggregate_feedback,
    dedupe_events,
    projected_candidate_ratings,
    ratings_for_version,
    reason_category,
    summarize_shadow,
)
from accuracy_engine.tuning.comparator import MeanRatingComparator


def shadow_record(query_id, candidate_version, divergence):
    empty = RuleResult(accepted=(), rejected=(), config_version=1)
    return ShadowTestRecord(
        query_id=query_id,
        control_config_version=1,
        candidate_config_version=candidate_version,
        control_result=empty,
        candidate_result=empty,
        divergence_score=divergence,
        timestamp=T0,
    )


def test_dedupe_keeps_first_event_per_message():
    first = FeedbackEvent("m1", 1, None, T0)
    again = FeedbackEvent("m1", -1, None, T0 + timedelta(minutes=1))
    assert dedupe_events([again, first]) == [first]


@pytest.mark.parametrize(
    "reason, category",
    [
        ("incomplete: missing steps", "INCOMPLETE"),
        ("Wrong document", "WRONG"),
        ("IRRELEVANT", "IRRELEVANT"),
        ("  ", None),
        (None, None),
    ],
)
def test_reason_category(reason, category):
    assert reason_category(reason) == category


def test_aggregate_feedback_counts():
    events = [
        FeedbackEvent("m1", 1, None, T0),
        FeedbackEvent("m2", 1, None, T0),
        FeedbackEvent("m3", 0, None, T0),
        FeedbackEvent("m4", -1, "incomplete", T0),
    ]
    agg = aggregate_feedback(events)
    assert (agg.total, agg.positive, agg.neutral, agg.negative) == (4, 2, 1, 1)
    assert agg.mean_rating == pytest.approx(0.25)
    assert agg.helpful_rate == pytest.approx(2 / 3)
    assert agg.reasons == {"INCOMPLETE": 1}


def test_aggregate_feedback_is_idempotent_under_redelivery():
    events = [FeedbackEvent("m1", 1, None, T0), FeedbackEvent("m2", -1, None, T0)]
    assert aggregate_feedback(events + events) == aggregate_feedback(events)


def test_aggregate_feedback_empty():
    agg = aggregate_feedback([])
    assert agg.total == 0
    assert agg.mean_rating is None
    assert agg.helpful_rate is None


def test_ratings_for_version_uses_traces():
    events = [FeedbackEvent("m1", 1, None, T0), FeedbackEvent("m2", -1, None, T0), FeedbackEvent("m3", 1, None, T0)]
    traces = {"m1": make_trace("m1", 1), "m2": make_trace("m2", 2)}
    assert ratings_for_version(events, traces, 1) == [1.0]
    assert ratings_for_version(events, traces, 2) == [-1.0]


def test_projected_candidate_ratings():
    records = [shadow_record("m1", 2, 0.0), shadow_record("m2", 2, 0.5), shadow_record("m3", 2, 1.0)]
    feedback = {
        "m1": FeedbackEvent("m1", 1, None, T0),
        "m2": FeedbackEvent("m2", -1, None, T0),
    }
    assert projected_candidate_ratings(records, feedback) == [1.0, -0.5]


def test_projection_is_conservative_on_positive_feedback():
    ratings = [1, 1, 1, -1, 1]
    feedback = {f"m{i}": FeedbackEvent(f"m{i}", r, None, T0) for i, r in enumerate(ratings)}
    records = [shadow_record(f"m{i}", 2, 0.2) for i in range(len(ratings))]
    projected = projected_candidate_ratings(records, feedback)

    assert sum(projected) / len(projected) == pytest.approx(0.48)
    comparator = MeanRatingComparator(tolerance=0.05, min_samples=3)
    assert not comparator.no_worse([float(r) for r in ratings], projected)


def test_summarize_shadow_groups_by_candidate():
    records = [shadow_record("a", 2, 0.0), shadow_record("b", 2, 0.5), shadow_record("c", 3, 1.0)]
    summaries = summarize_shadow(records)
    assert [s.candidate_version for s in summaries] == [2, 3]
    assert summaries[0].records == 2
    assert summaries[0].mean_divergence == pytest.approx(0.25)
    assert summaries[0].max_divergence == 0.5
    assert summaries[0].identical_rate == 0.5
    assert summaries[1].identical_rate == 0.0


def test_comparator_requires_min_samples():
    comparator = MeanRatingComparator(tolerance=0.05, min_samples=3)
    assert not comparator.no_worse([1.0, 1.0], [1.0, 1.0, 1.0])
    assert not comparator.no_worse([1.0, 1.0, 1.0], [1.0])


def test_comparator_tolerance():
    comparator = MeanRatingComparator(tolerance=0.1, min_samples=2)
    assert comparator.no_worse([1.0, 0.0], [0.45, 0.45])
    assert not comparator.no_worse([1.0, 0.0], [0.3, 0.3])

"""Bounded local search over the ACTIVE config, driven by feedback aggregates."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace

import numpy as np

from accuracy_engine.config.settings import Settings
from accuracy_engine.models.domain import (
    AccuracyConfig,
    ConfigStatus,
    FeedbackEvent,
    QueryTrace,
    ScoringWeights,
    Thresholds,
)
from accuracy_engine.observability.tracing import SIGNAL_NAMES
from accuracy_engine.scoring.reason_codes import ReasonCode
from accuracy_engine.tuning.aggregates import ratings_for_version, reason_category

DIRECTION_EPSILON = 0.01
RECALL_FAILURE_REASONS = frozenset({"INCOMPLETE", "MISSING"})
PRECISION_FAILURE_REASONS = frozenset({"WRONG", "IRRELEVANT"})


@dataclass(frozen=True)
class Proposal:
    weights: ScoringWeights
    thresholds: Thresholds
    parent_version: int
    reason: ReasonCode
    rationale: str


def signal_direction(
    events: Sequence[FeedbackEvent],
    traces: Mapping[str, QueryTrace],
    version: int,
) -> np.ndarray | None:
    """Mean accepted-chunk signals on positively rated queries minus negatively rated ones.

    Only queries served under ``version`` with at least one accepted chunk
    count. Returns None unless both signs are present.
    """
    pos: list[list[float]] = []
    neg: list[list[float]] = []
    for e in events:
        trace = traces.get(e.message_id)
        if trace is None or trace.config_version != version or not trace.signal_means:
            continue
        vector = [trace.signal_means.get(name, 0.0) for name in SIGNAL_NAMES]
        if e.rating > 0:
            pos.append(vector)
        elif e.rating < 0:
            neg.append(vector)
    if not pos or not neg:
        return None
    return np.mean(np.array(pos), axis=0) - np.mean(np.array(neg), axis=0)


def perturb_weights(
    weights: ScoringWeights,
    direction: np.ndarray,
    step: float,
    min_weight: float,
) -> ScoringWeights:
    """Move each signal weight one step toward the sign of ``direction``.

    Weights are clamped to ``[min_weight, 1]`` and rescaled to keep their
    previous sum. The diversity penalty is left to ``nudge_diversity_penalty``.
    """
    current = np.array(weights.signal_vector(), dtype=float)
    moves = np.where(np.abs(direction) > DIRECTION_EPSILON, np.sign(direction), 0.0)
    moved = np.clip(current + step * moves, min_weight, 1.0)
    total = current.sum()
    if total > 0:
        moved = moved * (total / moved.sum())
    semantic, keyword, recency = (round(float(v), 4) for v in moved)
    return ScoringWeights(
        semantic=semantic,
        keyword=keyword,
        recency=recency,
        diversity_penalty=weights.diversity_penalty,
    )


def nudge_min_similarity(
    thresholds: Thresholds,
    events: Sequence[FeedbackEvent],
    settings: Settings,
) -> Thresholds:
    """Lower the floor when users report missing information, raise it on wrong answers."""
    if not events:
        return thresholds
    categories = [reason_category(e.reason) for e in events if e.rating < 0]
    recall_share = sum(c in RECALL_FAILURE_REASONS for c in categories) / len(events)
    precision_share = sum(c in PRECISION_FAILURE_REASONS for c in categories) / len(events)

    floor = thresholds.min_similarity
    if recall_share > settings.recall_failure_rate:
        floor -= settings.threshold_step
    if precision_share > settings.precision_failure_rate:
        floor += settings.threshold_step
    floor = round(min(max(floor, 0.0), 0.95), 4)
    return replace(thresholds, min_similarity=floor)


def nudge_diversity_penalty(
    weights: ScoringWeights,
    events: Sequence[FeedbackEvent],
    settings: Settings,
) -> ScoringWeights:
    """Spread results over more sources when answers are reported incomplete."""
    if not events:
        return weights
    incomplete = sum(
        reason_category(e.reason) in RECALL_FAILURE_REASONS for e in events if e.rating < 0
    )
    if incomplete / len(events) <= settings.diversity_failure_rate:
        return weights
    penalty = round(min(weights.diversity_penalty + settings.diversity_step, 1.0), 4)
    return replace(weights, diversity_penalty=penalty)


def already_rejected(
    active: AccuracyConfig,
    weights: ScoringWeights,
    thresholds: Thresholds,
    history: Sequence[AccuracyConfig],
) -> bool:
    """True when the same change to ``active`` was shadow tested and retired."""
    return any(
        c.status == ConfigStatus.RETIRED
        and c.activated_at is None
        and c.parent_version == active.version
        and c.weights == weights
        and c.thresholds == thresholds
        for c in history
    )


def find_predecessor(active: AccuracyConfig, history: Sequence[AccuracyConfig]) -> AccuracyConfig | None:
    """Most recent config that was ACTIVE before the current one."""
    previous = [
        c
        for c in history
        if c.status == ConfigStatus.RETIRED and c.activated_at is not None and c.version < active.version
    ]
    return max(previous, key=lambda c: c.version) if previous else None


def detect_regression(
    active: AccuracyConfig,
    predecessor: AccuracyConfig,
    events: Sequence[FeedbackEvent],
    traces: Mapping[str, QueryTrace],
    settings: Settings,
) -> bool:
    current = ratings_for_version(events, traces, active.version)
    before = ratings_for_version(events, traces, predecessor.version)
    if len(current) < settings.comparator_min_samples or len(before) < settings.comparator_min_samples:
        return False
    return float(np.mean(before)) - float(np.mean(current)) > settings.rollback_threshold


def propose(
    active: AccuracyConfig,
    events: Sequence[FeedbackEvent],
    traces: Mapping[str, QueryTrace],
    history: Sequence[AccuracyConfig],
    settings: Settings,
) -> tuple[Proposal | None, ReasonCode]:
    """Derive the next DRAFT from feedback, or explain why there is none."""
    predecessor = find_predecessor(active, history)
    if (
        predecessor is not None
        and detect_regression(active, predecessor, events, traces, settings)
        and not already_rejected(active, predecessor.weights, predecessor.thresholds, history)
    ):
        return (
            Proposal(
                weights=predecessor.weights,
                thresholds=predecessor.thresholds,
                parent_version=active.version,
                reason=ReasonCode.REGRESSION_ROLLBACK,
                rationale=f"rollback to v{predecessor.version}",
            ),
            ReasonCode.REGRESSION_ROLLBACK,
        )

    served = [
        e
        for e in events
        if e.rating != 0
        and e.message_id in traces
        and traces[e.message_id].config_version == active.version
    ]
    if len(served) < settings.min_feedback_for_proposal:
        return None, ReasonCode.INSUFFICIENT_FEEDBACK

    weights = active.weights
    direction = signal_direction(served, traces, active.version)
    if direction is not None:
        weights = perturb_weights(active.weights, direction, settings.tuning_step, settings.min_weight)
    weights = nudge_diversity_penalty(weights, served, settings)
    thresholds = nudge_min_similarity(active.thresholds, served, settings)

    if weights == active.weights and thresholds == active.thresholds:
        return None, ReasonCode.NO_SIGNAL_DIRECTION

    if already_rejected(active, weights, thresholds, history):
        return None, ReasonCode.DUPLICATE_PROPOSAL

    return (
        Proposal(
            weights=weights,
            thresholds=thresholds,
            parent_version=active.version,
            reason=ReasonCode.FEEDBACK_DIRECTION,
            rationale=(
                f"feedback direction from {len(served)} rated events: "
                + ", ".join(
                    f"{name}={getattr(weights, name)}" for name in ("semantic", "keyword", "recency")
                )
                + f", diversity_penalty={weights.diversity_penalty}"
                + f", min_similarity={thresholds.min_similarity}"
            ),
        ),
        ReasonCode.FEEDBACK_DIRECTION,
    )

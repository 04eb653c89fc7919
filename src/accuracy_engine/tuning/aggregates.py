"""Aggregates derived by replaying the feedback and shadow logs."""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

import numpy as np

from accuracy_engine.models.domain import FeedbackEvent, QueryTrace, ShadowTestRecord


@dataclass(frozen=True)
class FeedbackAggregate:
    total: int
    positive: int
    neutral: int
    negative: int
    mean_rating: float | None
    helpful_rate: float | None  # share of +1 among non-zero ratings
    reasons: dict[str, int]


@dataclass(frozen=True)
class ShadowSummary:
    candidate_version: int
    records: int
    mean_divergence: float
    max_divergence: float
    identical_rate: float


def dedupe_events(events: Iterable[FeedbackEvent]) -> list[FeedbackEvent]:
    """First event per message_id wins, in timestamp order."""
    seen: set[str] = set()
    out: list[FeedbackEvent] = []
    for e in sorted(events, key=lambda e: e.timestamp):
        if e.message_id in seen:
            continue
        seen.add(e.message_id)
        out.append(e)
    return out


def reason_category(reason: str | None) -> str | None:
    """Leading word of a free-text reason, upper-cased (``"incomplete: x"`` -> ``INCOMPLETE``)."""
    if not reason or not reason.strip():
        return None
    return reason.strip().replace(":", " ").split()[0].upper()


def aggregate_feedback(events: Iterable[FeedbackEvent]) -> FeedbackAggregate:
    unique = dedupe_events(events)
    ratings = np.array([e.rating for e in unique], dtype=float)
    positive = int((ratings > 0).sum())
    negative = int((ratings < 0).sum())
    rated = positive + negative
    reasons = Counter(c for c in (reason_category(e.reason) for e in unique) if c)
    return FeedbackAggregate(
        total=len(unique),
        positive=positive,
        neutral=len(unique) - rated,
        negative=negative,
        mean_rating=float(ratings.mean()) if len(unique) else None,
        helpful_rate=positive / rated if rated else None,
        reasons=dict(sorted(reasons.items())),
    )


def ratings_for_version(
    events: Sequence[FeedbackEvent],
    traces: Mapping[str, QueryTrace],
    version: int,
) -> list[float]:
    """Ratings on queries that were served under ``version``."""
    return [
        float(e.rating)
        for e in events
        if e.message_id in traces and traces[e.message_id].config_version == version
    ]


def projected_candidate_ratings(
    records: Sequence[ShadowTestRecord],
    feedback: Mapping[str, FeedbackEvent],
) -> list[float]:
    """Counterfactual ratings for a shadow candidate.

    The user rated the control result. The candidate inherits that rating in
    proportion to how much it agreed with control: ``rating * (1 - divergence)``.
    A fully divergent candidate neither earns the praise nor the blame.

    The projection pulls every rating toward 0, so it is biased against the
    candidate when feedback is mostly positive: a control mean of 0.6 at
    divergence 0.2 projects to 0.48 and fails a 0.05 tolerance. Promotion is
    conservative in that regime; when feedback is mostly negative the same
    shrinkage favours the candidate.
    """
    return [
        feedback[r.query_id].rating * (1.0 - r.divergence_score)
        for r in records
        if r.query_id in feedback
    ]


def summarize_shadow(records: Iterable[ShadowTestRecord]) -> list[ShadowSummary]:
    grouped: dict[int, list[float]] = defaultdict(list)
    for r in records:
        grouped[r.candidate_config_version].append(r.divergence_score)
    summaries = []
    for version in sorted(grouped):
        d = np.array(grouped[version], dtype=float)
        summaries.append(
            ShadowSummary(
                candidate_version=version,
                records=len(d),
                mean_divergence=float(d.mean()),
                max_divergence=float(d.max()),
                identical_rate=float((d == 0.0).mean()),
            )
        )
    return summaries

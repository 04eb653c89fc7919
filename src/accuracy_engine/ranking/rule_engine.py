"""Config-driven filtering, ranking, diversity and truncation of scored chunks."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import replace

from accuracy_engine.models.domain import (
    AccuracyConfig,
    ChunkCandidate,
    Rejection,
    RejectionReason,
    RuleResult,
)


def rank_key(candidate: ChunkCandidate) -> tuple[float, float, str]:
    """Composite score desc, then recency desc, then chunk id asc."""
    return (-candidate.composite_score, -candidate.signals.recency_score, candidate.chunk_id)


class RuleEngine:
    """Applies the ranking rules of an AccuracyConfig.

    Pipeline, in order:

    1. Threshold: drop ``composite < min_similarity`` (BELOW_THRESHOLD).
    2. Sort with :func:`rank_key`.
    3. Diversity: walking in rank order, the n-th surviving chunk of a source
       (0-based) is demoted to ``composite * (1 - diversity_penalty) ** n``;
       it is dropped (DIVERSITY_CAP) if ``n >= max_per_source`` or the demoted
       score falls below ``min_similarity``. Kept chunks retain their
       composite score, so the accepted list stays sorted by it.
    4. Truncate to ``max_results`` (TRUNCATED).

    All behaviour comes from the config; nothing here is dynamic code.
    """

    def apply(self, scored: Sequence[ChunkCandidate], config: AccuracyConfig) -> RuleResult:
        thresholds = config.thresholds
        penalty = config.weights.diversity_penalty
        rejected: list[Rejection] = []

        passing: list[ChunkCandidate] = []
        for c in scored:
            if c.composite_score is None:
                raise ValueError(f"candidate {c.chunk_id} has not been scored")
            if c.composite_score < thresholds.min_similarity:
                rejected.append(Rejection(c, RejectionReason.BELOW_THRESHOLD))
            else:
                passing.append(c)

        passing.sort(key=rank_key)

        diverse: list[ChunkCandidate] = []
        per_source: dict[str, int] = defaultdict(int)
        for c in passing:
            n = per_source[c.source_ref]
            demoted = c.composite_score * (1.0 - penalty) ** n
            if n >= thresholds.max_per_source or demoted < thresholds.min_similarity:
                rejected.append(Rejection(c, RejectionReason.DIVERSITY_CAP))
                continue
            per_source[c.source_ref] = n + 1
            diverse.append(c)

        kept = diverse[: thresholds.max_results]
        for c in diverse[thresholds.max_results :]:
            rejected.append(Rejection(c, RejectionReason.TRUNCATED))

        accepted = tuple(replace(c, rank=i) for i, c in enumerate(kept, start=1))
        return RuleResult(
            accepted=accepted,
            rejected=tuple(rejected),
            config_version=config.version,
        )

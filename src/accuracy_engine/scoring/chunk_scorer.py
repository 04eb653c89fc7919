"""Composite chunk scoring: COMPOSITE = ws*semantic + wk*keyword + wr*recency."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from accuracy_engine.models.domain import AccuracyConfig, ChunkCandidate, ProcessedQuery


class ChunkScorer:
    """Signal combination only; ranking and diversity belong to the rule engine.

    Raw signals must already be normalised to [0, 1] by their providers
    (embedding similarity, lexical overlap, recency decay). They are not
    rescaled here, so a composite score is a pure function of the signals and
    the config weights.
    """

    def score(
        self,
        query: ProcessedQuery,
        candidates: Sequence[ChunkCandidate],
        config: AccuracyConfig,
    ) -> list[ChunkCandidate]:
        w = config.weights
        return [
            replace(
                c,
                composite_score=(
                    c.signals.semantic_sim * w.semantic
                    + c.signals.keyword_overlap * w.keyword
                    + c.signals.recency_score * w.recency
                ),
                rank=None,
            )
            for c in candidates
        ]

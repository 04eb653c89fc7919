"""Shadow test runner: replay one query under control and candidate configs."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime

from accuracy_engine.models.domain import (
    AccuracyConfig,
    ChunkCandidate,
    ProcessedQuery,
    RuleResult,
    ShadowTestRecord,
    utcnow,
)
from accuracy_engine.ranking.rule_engine import RuleEngine
from accuracy_engine.scoring.chunk_scorer import ChunkScorer


def jaccard_divergence(control: Sequence[str], candidate: Sequence[str], top_k: int | None = None) -> float:
    """1 - |A & B| / |A | B| over the top-k accepted ids of each side.

    Two empty lists are identical (0.0); disjoint non-empty lists score 1.0.
    """
    if top_k is not None:
        control, candidate = control[:top_k], candidate[:top_k]
    a, b = set(control), set(candidate)
    union = a | b
    if not union:
        return 0.0
    return 1.0 - len(a & b) / len(union)


class ShadowTestRunner:
    def __init__(
        self,
        scorer: ChunkScorer,
        rule_engine: RuleEngine,
        top_k: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._scorer = scorer
        self._rules = rule_engine
        self._top_k = top_k
        self._clock = clock

    def run_pipeline(
        self, query: ProcessedQuery, candidates: Sequence[ChunkCandidate], config: AccuracyConfig
    ) -> RuleResult:
        return self._rules.apply(self._scorer.score(query, candidates, config), config)

    def run_shadow(
        self,
        query: ProcessedQuery,
        candidates: Sequence[ChunkCandidate],
        control_config: AccuracyConfig,
        candidate_config: AccuracyConfig,
        query_id: str = "",
        control_result: RuleResult | None = None,
    ) -> ShadowTestRecord:
        """Run both configs over the identical candidate set.

        ``control_result`` may be passed in when the production pass already
        computed it; it must come from ``control_config``.
        """
        if control_result is None or control_result.config_version != control_config.version:
            control_result = self.run_pipeline(query, candidates, control_config)
        candidate_result = self.run_pipeline(query, candidates, candidate_config)
        return ShadowTestRecord(
            query_id=query_id,
            control_config_version=control_config.version,
            candidate_config_version=candidate_config.version,
            control_result=control_result,
            candidate_result=candidate_result,
            divergence_score=jaccard_divergence(
                control_result.accepted_ids, candidate_result.accepted_ids, self._top_k
            ),
            timestamp=self._clock(),
        )

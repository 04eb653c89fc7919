"""Production retrieval path: process, fetch, score, apply rules, then shadow in the background."""

from __future__ import annotations

import asyncio
from dataclasses import replace

from accuracy_engine.config.settings import Settings
from accuracy_engine.exceptions import RequestTimeout
from accuracy_engine.models.domain import ChunkCandidate, ProcessedQuery, RuleResult
from accuracy_engine.observability.logger import get_logger
from accuracy_engine.observability.metrics import log_latency, log_retrieval_metrics
from accuracy_engine.observability.tracing import TraceContext
from accuracy_engine.protocols.chunk_store import ChunkStore
from accuracy_engine.protocols.trace_store import TraceStore
from accuracy_engine.query.processor import QueryProcessor
from accuracy_engine.ranking.rule_engine import RuleEngine
from accuracy_engine.scoring.chunk_scorer import ChunkScorer
from accuracy_engine.scoring.reason_codes import ReasonCode
from accuracy_engine.shadow.dispatcher import ShadowDispatcher
from accuracy_engine.tuning.snapshot import ConfigSnapshot, ConfigSnapshotHolder

logger = get_logger("retrieval_service")


class RetrievalService:
    def __init__(
        self,
        processor: QueryProcessor,
        chunk_store: ChunkStore,
        scorer: ChunkScorer,
        rule_engine: RuleEngine,
        snapshot: ConfigSnapshotHolder,
        dispatcher: ShadowDispatcher,
        trace_store: TraceStore,
        settings: Settings,
    ) -> None:
        self._processor = processor
        self._chunks = chunk_store
        self._scorer = scorer
        self._rules = rule_engine
        self._snapshot = snapshot
        self._dispatcher = dispatcher
        self._trace_store = trace_store
        self._settings = settings
        self._pending: set[asyncio.Task] = set()

    async def retrieve(self, raw_query: str, subject_id: str | None = None) -> RuleResult:
        """Rank chunks for ``raw_query`` under the ACTIVE config.

        The result carries a ``query_id``; clients send it back as the
        feedback ``message_id``. Raises InvalidQuery, UpstreamUnavailable or
        RequestTimeout. Shadow runs never affect the returned result.
        """
        trace = TraceContext()

        with trace.span("query_processing"):
            query = self._processor.process(raw_query)

        # One snapshot for the whole request, so control and shadow see a consistent pair.
        snapshot = self._snapshot.current()
        timeout = self._settings.request_timeout_ms / 1000
        try:
            candidates, result = await asyncio.wait_for(
                self._control(query, snapshot, trace), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            logger.warning("retrieval_timeout", trace_id=trace.trace_id, timeout_ms=self._settings.request_timeout_ms)
            raise RequestTimeout(f"retrieval exceeded {self._settings.request_timeout_ms} ms") from e

        result = replace(result, query_id=trace.trace_id)

        if not candidates:
            logger.info("retrieval_empty", trace_id=trace.trace_id, reason=ReasonCode.NO_CANDIDATES)
        elif not result.accepted:
            logger.info("retrieval_empty", trace_id=trace.trace_id, reason=ReasonCode.ALL_BELOW_THRESHOLD)

        shadowed = self._dispatcher.maybe_dispatch(
            subject_id,
            trace.trace_id,
            query,
            candidates,
            snapshot.active,
            snapshot.candidate,
            result,
        )

        log_retrieval_metrics(
            trace.trace_id,
            result.config_version,
            [c.composite_score for c in result.accepted],
            len(candidates),
            len(result.accepted),
            len({c.source_ref for c in result.accepted}),
        )
        log_latency(trace.trace_id, "retrieve", trace.elapsed_ms)

        self._save_trace(trace.to_trace(query.raw_text, result, subject_id, shadowed))
        return result

    async def _control(
        self, query: ProcessedQuery, snapshot: ConfigSnapshot, trace: TraceContext
    ) -> tuple[list[ChunkCandidate], RuleResult]:
        with trace.span("fetch_candidates"):
            candidates = await self._chunks.fetch_candidates(query)
        with trace.span("scoring", config_version=snapshot.active.version):
            scored = self._scorer.score(query, candidates, snapshot.active)
        with trace.span("rules"):
            result = self._rules.apply(scored, snapshot.active)
        return candidates, result

    def _save_trace(self, trace) -> None:
        task = asyncio.create_task(self._persist_trace(trace))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist_trace(self, trace) -> None:
        try:
            await self._trace_store.save_trace(trace)
        except Exception as e:
            logger.error("trace_save_failed", trace_id=trace.trace_id, error=str(e))

    async def drain(self) -> None:
        """Wait for pending trace writes and shadow runs."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        await self._dispatcher.drain()

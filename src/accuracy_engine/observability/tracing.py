"""Lightweight request tracing with spans."""

from __future__ import annotations

import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

from accuracy_engine.models.domain import QueryTrace, RuleResult

SIGNAL_NAMES = ("semantic", "keyword", "recency")


@dataclass
class Span:
    name: str
    start_ms: float
    end_ms: float = 0.0
    metadata: dict = field(default_factory=dict)

    @property
    def duration_ms(self) -> float:
        return self.end_ms - self.start_ms


class TraceContext:
    def __init__(self, trace_id: str | None = None) -> None:
        self.trace_id = trace_id or str(uuid4())
        self.spans: list[Span] = []
        self.start_time = time.monotonic()
        self._epoch = time.time()

    @contextmanager
    def span(self, name: str, **metadata):
        s = Span(
            name=name,
            start_ms=(time.monotonic() - self.start_time) * 1000,
            metadata=metadata,
        )
        try:
            yield s
        finally:
            s.end_ms = (time.monotonic() - self.start_time) * 1000
            self.spans.append(s)

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.start_time) * 1000

    def to_trace(
        self,
        query: str,
        result: RuleResult,
        subject_id: str | None,
        shadowed: bool,
    ) -> QueryTrace:
        return QueryTrace(
            trace_id=self.trace_id,
            query=query,
            timestamp=datetime.fromtimestamp(self._epoch, tz=timezone.utc),
            latency_ms=self.elapsed_ms,
            config_version=result.config_version,
            subject_id=subject_id,
            accepted_ids=result.accepted_ids,
            rejected_counts=dict(Counter(str(r.reason) for r in result.rejected)),
            signal_means=signal_means(result),
            shadowed=shadowed,
            spans=[
                {
                    "name": s.name,
                    "start_ms": s.start_ms,
                    "end_ms": s.end_ms,
                    "duration_ms": s.duration_ms,
                    **s.metadata,
                }
                for s in self.spans
            ],
        )


def signal_means(result: RuleResult) -> dict[str, float]:
    """Mean raw signals over the accepted chunks; empty when nothing was accepted."""
    if not result.accepted:
        return {}
    n = len(result.accepted)
    sums = [0.0, 0.0, 0.0]
    for c in result.accepted:
        for i, v in enumerate(c.signals.as_tuple()):
            sums[i] += v
    return {name: s / n for name, s in zip(SIGNAL_NAMES, sums)}

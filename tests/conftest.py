"""Shared test fixtures."""

from __future__ import annotations

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from accuracy_engine.config.settings import Settings
from accuracy_engine.models.domain import (
    AccuracyConfig,
    ChunkCandidate,
    ConfigStatus,
    QueryTrace,
    RawSignals,
    ScoringWeights,
    Thresholds,
)
from accuracy_engine.storage.memory import (
    InMemoryConfigStore,
    InMemoryFeedbackSink,
    InMemoryShadowLog,
    InMemoryTraceStore,
)

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_candidate(
    chunk_id: str,
    semantic: float,
    keyword: float,
    recency: float,
    source_ref: str | None = None,
) -> ChunkCandidate:
    return ChunkCandidate(
        chunk_id=chunk_id,
        source_ref=source_ref or f"doc-{chunk_id}",
        signals=RawSignals(semantic_sim=semantic, keyword_overlap=keyword, recency_score=recency),
    )


def make_config(
    version: int = 1,
    semantic: float = 0.6,
    keyword: float = 0.3,
    recency: float = 0.1,
    diversity_penalty: float = 0.0,
    min_similarity: float = 0.5,
    max_results: int = 5,
    max_per_source: int = 2,
    status: ConfigStatus = ConfigStatus.ACTIVE,
) -> AccuracyConfig:
    return AccuracyConfig(
        version=version,
        weights=ScoringWeights(
            semantic=semantic, keyword=keyword, recency=recency, diversity_penalty=diversity_penalty
        ),
        thresholds=Thresholds(
            min_similarity=min_similarity, max_results=max_results, max_per_source=max_per_source
        ),
        status=status,
        created_at=T0,
        status_changed_at=T0,
        activated_at=T0 if status == ConfigStatus.ACTIVE else None,
    )


@pytest.fixture
def settings():
    """Test settings: memory backend, small sample sizes, no background tuning."""
    tmp = tempfile.mkdtemp()
    return Settings(
        _env_file=None,
        storage_backend="memory",
        sqlite_config_db_path=str(Path(tmp) / "configs.db"),
        sqlite_log_db_path=str(Path(tmp) / "logs.db"),
        tuning_enabled=False,
        min_shadow_samples=5,
        min_feedback_for_proposal=6,
        comparator_min_samples=3,
        max_observation_hours=24,
        io_retry_base_delay_s=0.0,
        shadow_timeout_ms=1000,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def refund_candidates():
    return [
        make_candidate("A", semantic=0.9, keyword=0.8, recency=0.5),
        make_candidate("B", semantic=0.4, keyword=0.2, recency=0.9),
    ]


@pytest.fixture
def base_weights():
    return ScoringWeights(semantic=0.6, keyword=0.3, recency=0.1, diversity_penalty=0.0)


@pytest.fixture
def base_thresholds():
    return Thresholds(min_similarity=0.5, max_results=5, max_per_source=2)


@pytest.fixture
async def config_store(base_weights, base_thresholds):
    store = InMemoryConfigStore()
    await store.bootstrap(base_weights, base_thresholds)
    return store


@pytest.fixture
def feedback_sink():
    return InMemoryFeedbackSink()


@pytest.fixture
def shadow_log():
    return InMemoryShadowLog()


@pytest.fixture
def trace_store():
    return InMemoryTraceStore()


@pytest.fixture
def tmp_dir():
    """Create a temporary directory."""
    return tempfile.mkdtemp()


def make_trace(
    trace_id: str,
    config_version: int,
    signal_means: dict[str, float] | None = None,
    timestamp: datetime = T0,
) -> QueryTrace:
    return QueryTrace(
        trace_id=trace_id,
        query="refund policy",
        timestamp=timestamp,
        latency_ms=1.0,
        config_version=config_version,
        subject_id=None,
        accepted_ids=["A"] if signal_means else [],
        rejected_counts={},
        signal_means=signal_means or {},
        shadowed=False,
        spans=[],
    )

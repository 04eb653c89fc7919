"""Integration tests for the SQLite config, feedback, shadow and trace stores."""

import asyncio
import tempfile
from dataclasses import replace
from datetime import timedelta
from pathlib import Path

import pytest
from conftest import T0, make_candidate, make_trace

from accuracy_engine.exceptions import ConfigConflict, InvalidTransition
from accuracy_engine.models.domain import (
    ConfigStatus,
    FeedbackEvent,
    Rejection,
    RejectionReason,
    RuleResult,
    ScoringWeights,
    ShadowTestRecord,
    Thresholds,
)
from accuracy_engine.storage.sqlite_config_store import SQLiteConfigStore
from accuracy_engine.storage.sqlite_feedback_store import SQLiteFeedbackSink
from accuracy_engine.storage.sqlite_shadow_store import SQLiteShadowLog
from accuracy_engine.storage.sqlite_trace_store import SQLiteTraceStore

WEIGHTS = ScoringWeights(0.6, 0.3, 0.1, diversity_penalty=0.15)
THRESHOLDS = Thresholds(min_similarity=0.3, max_results=5, max_per_source=2)


@pytest.fixture
async def config_db():
    tmp = tempfile.mkdtemp()
    store = SQLiteConfigStore(str(Path(tmp) / "configs.db"))
    await store.initialize()
    await store.bootstrap(WEIGHTS, THRESHOLDS)
    return store


@pytest.fixture
def log_db_path():
    return str(Path(tempfile.mkdtemp()) / "logs.db")


@pytest.fixture
async def feedback_db(log_db_path):
    sink = SQLiteFeedbackSink(log_db_path)
    await sink.initialize()
    return sink


@pytest.fixture
async def shadow_db(log_db_path):
    log = SQLiteShadowLog(log_db_path)
    await log.initialize()
    return log


@pytest.fixture
async def trace_db(log_db_path):
    store = SQLiteTraceStore(log_db_path)
    await store.initialize()
    return store


async def shadow_candidate(store, semantic=0.5):
    draft = await store.create(ScoringWeights(semantic, 0.4, 0.1), THRESHOLDS, parent_version=1, rationale="test")
    return await store.transition(draft.version, ConfigStatus.DRAFT, ConfigStatus.SHADOW, T0)


@pytest.mark.asyncio
async def test_bootstrap_is_idempotent(config_db):
    again = await config_db.bootstrap(ScoringWeights(1.0, 0.0, 0.0), THRESHOLDS)
    assert again.version == 1
    assert again.weights == WEIGHTS
    assert again.thresholds == THRESHOLDS
    assert again.activated_at is not None
    assert len(await config_db.list_configs()) == 1


@pytest.mark.asyncio
async def test_create_assigns_increasing_versions(config_db):
    first = await config_db.create(WEIGHTS, THRESHOLDS, parent_version=1)
    second = await config_db.create(WEIGHTS, THRESHOLDS, parent_version=1)
    assert (first.version, second.version) == (2, 3)
    assert first.status == ConfigStatus.DRAFT
    assert [c.version for c in await config_db.list_configs(ConfigStatus.DRAFT)] == [2, 3]


@pytest.mark.asyncio
async def test_transition_is_compare_and_set(config_db):
    draft = await config_db.create(WEIGHTS, THRESHOLDS)
    await config_db.transition(draft.version, ConfigStatus.DRAFT, ConfigStatus.RETIRED, T0)
    with pytest.raises(ConfigConflict):
        await config_db.transition(draft.version, ConfigStatus.DRAFT, ConfigStatus.SHADOW, T0)
    with pytest.raises(InvalidTransition):
        await config_db.transition(1, ConfigStatus.ACTIVE, ConfigStatus.RETIRED, T0)


@pytest.mark.asyncio
async def test_promote_swaps_active(config_db):
    candidate = await shadow_candidate(config_db)
    at = T0 + timedelta(hours=1)
    promoted = await config_db.promote(candidate.version, 1, at)

    assert promoted.status == ConfigStatus.ACTIVE
    assert promoted.activated_at == at
    assert (await config_db.get_active()).version == candidate.version
    old = await config_db.get(1)
    assert old.status == ConfigStatus.RETIRED
    assert old.activated_at is not None


@pytest.mark.asyncio
async def test_promote_with_stale_expectation_conflicts(config_db):
    first = await shadow_candidate(config_db, semantic=0.5)
    await config_db.promote(first.version, 1, T0)
    second = await shadow_candidate(config_db, semantic=0.4)
    with pytest.raises(ConfigConflict):
        await config_db.promote(second.version, 1, T0)
    assert (await config_db.get_active()).version == first.version


@pytest.mark.asyncio
async def test_concurrent_promotions_leave_one_active(config_db):
    a = await shadow_candidate(config_db, semantic=0.5)
    b = await shadow_candidate(config_db, semantic=0.4)
    outcomes = await asyncio.gather(
        config_db.promote(a.version, 1, T0),
        config_db.promote(b.version, 1, T0),
        return_exceptions=True,
    )
    assert sum(isinstance(o, ConfigConflict) for o in outcomes) == 1
    assert len(await config_db.list_configs(ConfigStatus.ACTIVE)) == 1


@pytest.mark.asyncio
async def test_feedback_insert_or_ignore(feedback_db):
    event = FeedbackEvent("m1", 1, "great", T0)
    assert await feedback_db.append(event) is True
    assert await feedback_db.append(FeedbackEvent("m1", -1, None, T0 + timedelta(minutes=5))) is False
    stored = await feedback_db.get("m1")
    assert stored == event
    assert await feedback_db.get("missing") is None


@pytest.mark.asyncio
async def test_feedback_events_since(feedback_db):
    await feedback_db.append(FeedbackEvent("m1", 1, None, T0))
    await feedback_db.append(FeedbackEvent("m2", 0, None, T0 + timedelta(hours=2)))
    assert [e.message_id for e in await feedback_db.events()] == ["m1", "m2"]
    assert [e.message_id for e in await feedback_db.events(since=T0 + timedelta(hours=1))] == ["m2"]


@pytest.mark.asyncio
async def test_shadow_record_roundtrip(shadow_db):
    a = make_candidate("A", 0.9, 0.8, 0.5)
    b = make_candidate("B", 0.4, 0.2, 0.9)
    control = RuleResult(
        accepted=(replace(a, composite_score=0.83, rank=1),),
        rejected=(Rejection(replace(b, composite_score=0.39), RejectionReason.BELOW_THRESHOLD),),
        config_version=1,
        query_id="q-1",
    )
    record = ShadowTestRecord("q-1", 1, 2, control, control, 0.0, T0)
    await shadow_db.append(record)
    await shadow_db.append(ShadowTestRecord("q-2", 1, 3, control, control, 0.25, T0))

    assert await shadow_db.records(candidate_version=2) == [record]
    assert [r.query_id for r in await shadow_db.records()] == ["q-1", "q-2"]
    assert [r.query_id for r in await shadow_db.records(limit=1)] == ["q-2"]


@pytest.mark.asyncio
async def test_trace_roundtrip(trace_db):
    trace = make_trace("t1", 1, {"semantic": 0.9, "keyword": 0.8, "recency": 0.5})
    await trace_db.save_trace(trace)
    await trace_db.save_trace(make_trace("t2", 2, timestamp=T0 + timedelta(seconds=1)))

    assert await trace_db.get_trace("t1") == trace
    assert await trace_db.get_trace("missing") is None
    by_id = await trace_db.traces_by_ids(["t1", "t2", "nope"])
    assert set(by_id) == {"t1", "t2"}
    assert [t.trace_id for t in await trace_db.get_recent_traces(limit=1)] == ["t2"]

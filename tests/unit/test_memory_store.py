"""Tests for the in-memory stores."""

import json
from pathlib import Path

import pytest
from conftest import T0

from accuracy_engine.exceptions import ConfigConflict, ConfigNotFound, InvalidTransition
from accuracy_engine.models.domain import ConfigStatus, ScoringWeights, Thresholds
from accuracy_engine.query.processor import QueryProcessor
from accuracy_engine.storage.memory import InMemoryChunkStore, InMemoryConfigStore


async def test_get_active_before_bootstrap():
    with pytest.raises(ConfigNotFound):
        await InMemoryConfigStore().get_active()


async def test_promote_checks_expected_active(config_store):
    draft = await config_store.create(ScoringWeights(0.5, 0.4, 0.1), Thresholds(0.4, 5))
    await config_store.transition(draft.version, ConfigStatus.DRAFT, ConfigStatus.SHADOW, T0)
    with pytest.raises(ConfigConflict):
        await config_store.promote(draft.version, 7, T0)
    promoted = await config_store.promote(draft.version, 1, T0)
    assert promoted.activated_at == T0
    assert [c.version for c in await config_store.list_configs(ConfigStatus.ACTIVE)] == [draft.version]


async def test_transition_never_touches_active(config_store):
    with pytest.raises(InvalidTransition):
        await config_store.transition(1, ConfigStatus.ACTIVE, ConfigStatus.RETIRED, T0)
    with pytest.raises(InvalidTransition):
        await config_store.transition(1, ConfigStatus.SHADOW, ConfigStatus.ACTIVE, T0)


async def test_chunk_fixture(tmp_dir):
    path = Path(tmp_dir) / "chunks.json"
    path.write_text(
        json.dumps(
            [
                {"chunk_id": "A", "source_ref": "refunds.md", "semantic_sim": 0.9, "keyword_overlap": 0.8, "recency_score": 0.5},
                {
                    "chunk_id": "P",
                    "source_ref": "passwords.md",
                    "semantic_sim": 0.9,
                    "keyword_overlap": 0.9,
                    "recency_score": 0.2,
                    "query": "reset password",
                },
            ]
        )
    )
    store = InMemoryChunkStore.from_fixture(path)
    processor = QueryProcessor()

    specific = await store.fetch_candidates(processor.process("Reset the password"))
    fallback = await store.fetch_candidates(processor.process("refund policy"))
    assert [c.chunk_id for c in specific] == ["P"]
    assert [c.chunk_id for c in fallback] == ["A"]
    assert fallback[0].signals.keyword_overlap == 0.8

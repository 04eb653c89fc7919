"""In-process stores. Used by tests, local development and the memory backend."""

from __future__ import annotations

import json
from collections import defaultdict
from datetime import datetime
from pathlib import Path

from accuracy_engine.exceptions import ConfigConflict, ConfigNotFound, InvalidTransition
from accuracy_engine.models.domain import (
    AccuracyConfig,
    ChunkCandidate,
    ConfigStatus,
    FeedbackEvent,
    ProcessedQuery,
    QueryTrace,
    RawSignals,
    ScoringWeights,
    ShadowTestRecord,
    Thresholds,
    utcnow,
)
from accuracy_engine.observability.logger import get_logger
from accuracy_engine.query.tokenizer import tokenize

logger = get_logger("memory_store")

# Status changes `transition` may perform; ACTIVE is reachable only through `promote`.
ALLOWED_TRANSITIONS = {
    (ConfigStatus.DRAFT, ConfigStatus.SHADOW),
    (ConfigStatus.DRAFT, ConfigStatus.RETIRED),
    (ConfigStatus.SHADOW, ConfigStatus.RETIRED),
}


def check_transition(expected: ConfigStatus, new: ConfigStatus) -> None:
    if (expected, new) not in ALLOWED_TRANSITIONS:
        raise InvalidTransition(f"{expected} -> {new} is not a permitted transition")


class InMemoryConfigStore:
    def __init__(self) -> None:
        self._configs: dict[int, AccuracyConfig] = {}
        self._last_version = 0

    async def bootstrap(self, weights: ScoringWeights, thresholds: Thresholds) -> AccuracyConfig:
        if self._configs:
            return await self.get_active()
        now = utcnow()
        self._last_version = 1
        config = AccuracyConfig(
            version=1,
            weights=weights,
            thresholds=thresholds,
            status=ConfigStatus.ACTIVE,
            created_at=now,
            status_changed_at=now,
            activated_at=now,
            rationale="bootstrap",
        )
        self._configs[1] = config
        return config

    async def get_active(self) -> AccuracyConfig:
        for config in self._configs.values():
            if config.status == ConfigStatus.ACTIVE:
                return config
        raise ConfigNotFound("no ACTIVE config; bootstrap the store first")

    async def get(self, version: int) -> AccuracyConfig | None:
        return self._configs.get(version)

    async def list_configs(self, status: ConfigStatus | None = None) -> list[AccuracyConfig]:
        return [
            c
            for _, c in sorted(self._configs.items())
            if status is None or c.status == status
        ]

    async def create(
        self,
        weights: ScoringWeights,
        thresholds: Thresholds,
        parent_version: int | None = None,
        rationale: str = "",
    ) -> AccuracyConfig:
        self._last_version += 1
        now = utcnow()
        config = AccuracyConfig(
            version=self._last_version,
            weights=weights,
            thresholds=thresholds,
            status=ConfigStatus.DRAFT,
            created_at=now,
            status_changed_at=now,
            parent_version=parent_version,
            rationale=rationale,
        )
        self._configs[config.version] = config
        return config

    async def transition(
        self, version: int, expected: ConfigStatus, new: ConfigStatus, at: datetime
    ) -> AccuracyConfig:
        check_transition(expected, new)
        current = self._configs.get(version)
        if current is None:
            raise ConfigNotFound(f"no config with version {version}")
        if current.status != expected:
            raise ConfigConflict(f"v{version} is {current.status}, expected {expected}")
        updated = current.with_status(new, at)
        self._configs[version] = updated
        return updated

    async def promote(self, version: int, expected_active_version: int, at: datetime) -> AccuracyConfig:
        target = self._configs.get(version)
        if target is None:
            raise ConfigNotFound(f"no config with version {version}")
        if target.status != ConfigStatus.SHADOW:
            raise InvalidTransition(f"v{version} is {target.status}, only SHADOW can be promoted")
        active = await self.get_active()
        if active.version != expected_active_version:
            raise ConfigConflict(
                f"ACTIVE is v{active.version}, expected v{expected_active_version}"
            )
        if version <= active.version:
            raise InvalidTransition(f"v{version} is not newer than ACTIVE v{active.version}")
        self._configs[active.version] = active.with_status(ConfigStatus.RETIRED, at)
        promoted = target.with_status(ConfigStatus.ACTIVE, at)
        self._configs[version] = promoted
        return promoted


class InMemoryFeedbackSink:
    def __init__(self) -> None:
        self._events: dict[str, FeedbackEvent] = {}

    async def append(self, event: FeedbackEvent) -> bool:
        if event.message_id in self._events:
            return False
        self._events[event.message_id] = event
        return True

    async def get(self, message_id: str) -> FeedbackEvent | None:
        return self._events.get(message_id)

    async def events(self, since: datetime | None = None) -> list[FeedbackEvent]:
        events = sorted(self._events.values(), key=lambda e: e.timestamp)
        if since is not None:
            events = [e for e in events if e.timestamp >= since]
        return events


class InMemoryShadowLog:
    def __init__(self) -> None:
        self._records: list[ShadowTestRecord] = []

    async def append(self, record: ShadowTestRecord) -> None:
        self._records.append(record)

    async def records(
        self, candidate_version: int | None = None, limit: int | None = None
    ) -> list[ShadowTestRecord]:
        records = [
            r
            for r in self._records
            if candidate_version is None or r.candidate_config_version == candidate_version
        ]
        return records[-limit:] if limit else records


class InMemoryTraceStore:
    def __init__(self) -> None:
        self._traces: dict[str, QueryTrace] = {}

    async def save_trace(self, trace: QueryTrace) -> None:
        self._traces[trace.trace_id] = trace

    async def get_trace(self, trace_id: str) -> QueryTrace | None:
        return self._traces.get(trace_id)

    async def traces_by_ids(self, trace_ids: list[str]) -> dict[str, QueryTrace]:
        return {t: self._traces[t] for t in trace_ids if t in self._traces}

    async def get_recent_traces(self, limit: int = 100) -> list[QueryTrace]:
        traces = sorted(self._traces.values(), key=lambda t: t.timestamp, reverse=True)
        return traces[:limit]


class InMemoryChunkStore:
    """Serves pre-computed candidates.

    Candidates registered for a specific normalised query take precedence
    over the default pool, which is returned for every other query.
    """

    def __init__(self) -> None:
        self._default: list[ChunkCandidate] = []
        self._by_query: dict[str, list[ChunkCandidate]] = defaultdict(list)

    def add(self, candidate: ChunkCandidate, query: str | None = None) -> None:
        if query is None:
            self._default.append(candidate)
        else:
            self._by_query[_query_key(query)].append(candidate)

    async def fetch_candidates(self, query: ProcessedQuery) -> list[ChunkCandidate]:
        key = " ".join(query.normalized_tokens)
        return list(self._by_query.get(key) or self._default)

    @classmethod
    def from_fixture(cls, path: str | Path) -> InMemoryChunkStore:
        """Load ``[{"chunk_id", "source_ref", "semantic_sim", "keyword_overlap", "recency_score", "query"?}]``."""
        store = cls()
        entries = json.loads(Path(path).read_text(encoding="utf-8"))
        for entry in entries:
            store.add(
                ChunkCandidate(
                    chunk_id=entry["chunk_id"],
                    source_ref=entry["source_ref"],
                    signals=RawSignals(
                        semantic_sim=float(entry["semantic_sim"]),
                        keyword_overlap=float(entry["keyword_overlap"]),
                        recency_score=float(entry["recency_score"]),
                    ),
                ),
                query=entry.get("query"),
            )
        logger.info("chunk_fixture_loaded", path=str(path), chunks=len(entries))
        return store


def _query_key(query: str) -> str:
    return " ".join(tokenize(query))

"""SQLite-backed append-only log of shadow test records."""

from __future__ import annotations

import json

import aiosqlite

from accuracy_engine.models.domain import (
    ChunkCandidate,
    RawSignals,
    Rejection,
    RejectionReason,
    RuleResult,
    ShadowTestRecord,
)
from accuracy_engine.storage.migrations import connect, initialize_log_db
from accuracy_engine.storage.sqlite_config_store import parse_timestamp


class SQLiteShadowLog:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_log_db(self._db_path)

    async def append(self, record: ShadowTestRecord) -> None:
        async with connect(self._db_path) as db:
            await db.execute(
                "INSERT INTO shadow_records (query_id, control_config_version, candidate_config_version, "
                "control_result, candidate_result, divergence_score, timestamp) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    record.query_id,
                    record.control_config_version,
                    record.candidate_config_version,
                    json.dumps(record.control_result.to_dict()),
                    json.dumps(record.candidate_result.to_dict()),
                    record.divergence_score,
                    record.timestamp.isoformat(),
                ),
            )
            await db.commit()

    async def records(
        self, candidate_version: int | None = None, limit: int | None = None
    ) -> list[ShadowTestRecord]:
        query = "SELECT * FROM shadow_records"
        params: list = []
        if candidate_version is not None:
            query += " WHERE candidate_config_version = ?"
            params.append(candidate_version)
        query += " ORDER BY id DESC"
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        async with connect(self._db_path) as db:
            async with db.execute(query, params) as cursor:
                rows = await cursor.fetchall()
        # Oldest first, matching append order.
        return [self._row_to_record(r) for r in reversed(rows)]

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> ShadowTestRecord:
        return ShadowTestRecord(
            query_id=row["query_id"],
            control_config_version=row["control_config_version"],
            candidate_config_version=row["candidate_config_version"],
            control_result=_result_from_dict(json.loads(row["control_result"])),
            candidate_result=_result_from_dict(json.loads(row["candidate_result"])),
            divergence_score=row["divergence_score"],
            timestamp=parse_timestamp(row["timestamp"]),
        )


def _candidate_from_dict(data: dict) -> ChunkCandidate:
    return ChunkCandidate(
        chunk_id=data["chunk_id"],
        source_ref=data["source_ref"],
        signals=RawSignals(**data["signals"]),
        composite_score=data["composite_score"],
        rank=data["rank"],
    )


def _result_from_dict(data: dict) -> RuleResult:
    return RuleResult(
        accepted=tuple(_candidate_from_dict(c) for c in data["accepted"]),
        rejected=tuple(
            Rejection(candidate=_candidate_from_dict(r["candidate"]), reason=RejectionReason(r["reason"]))
            for r in data["rejected"]
        ),
        config_version=data["config_version"],
        query_id=data["query_id"],
    )

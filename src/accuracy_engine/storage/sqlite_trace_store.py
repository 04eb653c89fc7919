"""SQLite-backed query trace store for observability and feedback attribution."""

from __future__ import annotations

import json

import aiosqlite

from accuracy_engine.models.domain import QueryTrace
from accuracy_engine.storage.migrations import connect, initialize_log_db
from accuracy_engine.storage.sqlite_config_store import parse_timestamp


class SQLiteTraceStore:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_log_db(self._db_path)

    async def save_trace(self, trace: QueryTrace) -> None:
        async with connect(self._db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO traces "
                "(trace_id, query, timestamp, latency_ms, config_version, subject_id, accepted_ids, "
                "rejected_counts, signal_means, shadowed, spans) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    trace.trace_id,
                    trace.query,
                    trace.timestamp.isoformat(),
                    trace.latency_ms,
                    trace.config_version,
                    trace.subject_id,
                    json.dumps(trace.accepted_ids),
                    json.dumps(trace.rejected_counts),
                    json.dumps(trace.signal_means),
                    int(trace.shadowed),
                    json.dumps(trace.spans),
                ),
            )
            await db.commit()

    async def get_trace(self, trace_id: str) -> QueryTrace | None:
        async with connect(self._db_path) as db:
            async with db.execute("SELECT * FROM traces WHERE trace_id = ?", (trace_id,)) as cursor:
                row = await cursor.fetchone()
                if row is None:
                    return None
                return self._row_to_trace(row)

    async def traces_by_ids(self, trace_ids: list[str]) -> dict[str, QueryTrace]:
        found: dict[str, QueryTrace] = {}
        # Stay well under SQLite's bound-parameter limit.
        for start in range(0, len(trace_ids), 500):
            batch = trace_ids[start : start + 500]
            placeholders = ",".join("?" for _ in batch)
            async with connect(self._db_path) as db:
                async with db.execute(
                    f"SELECT * FROM traces WHERE trace_id IN ({placeholders})", batch
                ) as cursor:
                    rows = await cursor.fetchall()
            for row in rows:
                found[row["trace_id"]] = self._row_to_trace(row)
        return found

    async def get_recent_traces(self, limit: int = 100) -> list[QueryTrace]:
        async with connect(self._db_path) as db:
            async with db.execute(
                "SELECT * FROM traces ORDER BY timestamp DESC LIMIT ?", (limit,)
            ) as cursor:
                rows = await cursor.fetchall()
                return [self._row_to_trace(row) for row in rows]

    @staticmethod
    def _row_to_trace(row: aiosqlite.Row) -> QueryTrace:
        return QueryTrace(
            trace_id=row["trace_id"],
            query=row["query"],
            timestamp=parse_timestamp(row["timestamp"]),
            latency_ms=row["latency_ms"],
            config_version=row["config_version"],
            subject_id=row["subject_id"],
            accepted_ids=json.loads(row["accepted_ids"]),
            rejected_counts=json.loads(row["rejected_counts"]),
            signal_means=json.loads(row["signal_means"]),
            shadowed=bool(row["shadowed"]),
            spans=json.loads(row["spans"]),
        )

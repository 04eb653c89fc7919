"""SQLite-backed append-only feedback log, one row per message id."""

from __future__ import annotations

from datetime import datetime

import aiosqlite

from accuracy_engine.models.domain import FeedbackEvent
from accuracy_engine.storage.migrations import connect, initialize_log_db
from accuracy_engine.storage.sqlite_config_store import parse_timestamp


class SQLiteFeedbackSink:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_log_db(self._db_path)

    async def append(self, event: FeedbackEvent) -> bool:
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "INSERT OR IGNORE INTO feedback (message_id, rating, reason, timestamp) VALUES (?, ?, ?, ?)",
                (event.message_id, event.rating, event.reason, event.timestamp.isoformat()),
            )
            inserted = cursor.rowcount == 1
            await db.commit()
        return inserted

    async def get(self, message_id: str) -> FeedbackEvent | None:
        async with connect(self._db_path) as db:
            async with db.execute("SELECT * FROM feedback WHERE message_id = ?", (message_id,)) as cursor:
                row = await cursor.fetchone()
        return self._row_to_event(row) if row else None

    async def events(self, since: datetime | None = None) -> list[FeedbackEvent]:
        async with connect(self._db_path) as db:
            if since is None:
                cursor = await db.execute("SELECT * FROM feedback ORDER BY timestamp")
            else:
                cursor = await db.execute(
                    "SELECT * FROM feedback WHERE timestamp >= ? ORDER BY timestamp",
                    (since.isoformat(),),
                )
            rows = await cursor.fetchall()
            await cursor.close()
        return [self._row_to_event(r) for r in rows]

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> FeedbackEvent:
        return FeedbackEvent(
            message_id=row["message_id"],
            rating=row["rating"],
            reason=row["reason"],
            timestamp=parse_timestamp(row["timestamp"]),
        )

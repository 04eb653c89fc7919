"""Idempotent database schema creation."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite

from accuracy_engine.exceptions import UpstreamUnavailable

CONFIGS_TABLE = """
CREATE TABLE IF NOT EXISTS configs (
    version INTEGER PRIMARY KEY AUTOINCREMENT,
    weights TEXT NOT NULL,
    thresholds TEXT NOT NULL,
    status TEXT NOT NULL,
    created_at TEXT NOT NULL,
    status_changed_at TEXT NOT NULL,
    activated_at TEXT,
    parent_version INTEGER,
    rationale TEXT NOT NULL DEFAULT ''
)
"""

# At most one ACTIVE row, enforced by the database itself.
CONFIGS_SINGLE_ACTIVE_INDEX = """
CREATE UNIQUE INDEX IF NOT EXISTS idx_configs_single_active
ON configs(status) WHERE status = 'ACTIVE'
"""

CONFIGS_STATUS_INDEX = """
CREATE INDEX IF NOT EXISTS idx_configs_status ON configs(status)
"""

FEEDBACK_TABLE = """
CREATE TABLE IF NOT EXISTS feedback (
    message_id TEXT PRIMARY KEY,
    rating INTEGER NOT NULL CHECK (rating IN (-1, 0, 1)),
    reason TEXT,
    timestamp TEXT NOT NULL
)
"""

FEEDBACK_TIMESTAMP_INDEX = """
CREATE INDEX IF NOT EXISTS idx_feedback_timestamp ON feedback(timestamp)
"""

SHADOW_TABLE = """
CREATE TABLE IF NOT EXISTS shadow_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    query_id TEXT NOT NULL,
    control_config_version INTEGER NOT NULL,
    candidate_config_version INTEGER NOT NULL,
    control_result TEXT NOT NULL,
    candidate_result TEXT NOT NULL,
    divergence_score REAL NOT NULL,
    timestamp TEXT NOT NULL
)
"""

SHADOW_CANDIDATE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_shadow_candidate ON shadow_records(candidate_config_version)
"""

TRACES_TABLE = """
CREATE TABLE IF NOT EXISTS traces (
    trace_id TEXT PRIMARY KEY,
    query TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    latency_ms REAL NOT NULL,
    config_version INTEGER NOT NULL,
    subject_id TEXT,
    accepted_ids TEXT NOT NULL DEFAULT '[]',
    rejected_counts TEXT NOT NULL DEFAULT '{}',
    signal_means TEXT NOT NULL DEFAULT '{}',
    shadowed INTEGER NOT NULL DEFAULT 0,
    spans TEXT NOT NULL DEFAULT '[]'
)
"""

TRACES_TIMESTAMP_INDEX = """
CREATE INDEX IF NOT EXISTS idx_traces_timestamp ON traces(timestamp)
"""


@asynccontextmanager
async def connect(db_path: str, **kwargs) -> AsyncIterator[aiosqlite.Connection]:
    """Open a connection, surfacing lock and I/O failures as UpstreamUnavailable."""
    try:
        async with aiosqlite.connect(db_path, **kwargs) as db:
            db.row_factory = aiosqlite.Row
            yield db
    except aiosqlite.OperationalError as e:
        raise UpstreamUnavailable(f"sqlite {db_path}: {e}") from e


async def initialize_config_db(db_path: str) -> None:
    async with connect(db_path) as db:
        await db.execute(CONFIGS_TABLE)
        await db.execute(CONFIGS_SINGLE_ACTIVE_INDEX)
        await db.execute(CONFIGS_STATUS_INDEX)
        await db.commit()


async def initialize_log_db(db_path: str) -> None:
    async with connect(db_path) as db:
        await db.execute(FEEDBACK_TABLE)
        await db.execute(FEEDBACK_TIMESTAMP_INDEX)
        await db.execute(SHADOW_TABLE)
        await db.execute(SHADOW_CANDIDATE_INDEX)
        await db.execute(TRACES_TABLE)
        await db.execute(TRACES_TIMESTAMP_INDEX)
        await db.commit()

"""SQLite-backed versioned config store with compare-and-set transitions."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import aiosqlite

from accuracy_engine.exceptions import ConfigConflict, ConfigNotFound, InvalidTransition
from accuracy_engine.models.domain import (
    AccuracyConfig,
    ConfigStatus,
    ScoringWeights,
    Thresholds,
    utcnow,
)
from accuracy_engine.observability.logger import get_logger
from accuracy_engine.storage.memory import check_transition
from accuracy_engine.storage.migrations import connect, initialize_config_db

logger = get_logger("sqlite_config_store")


class SQLiteConfigStore:
    """Every write runs inside ``BEGIN IMMEDIATE`` so concurrent writers serialise
    on the database lock, and every status change is a conditional UPDATE.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_config_db(self._db_path)

    async def bootstrap(self, weights: ScoringWeights, thresholds: Thresholds) -> AccuracyConfig:
        now = utcnow().isoformat()
        async with connect(self._db_path, isolation_level=None) as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                async with db.execute("SELECT COUNT(*) FROM configs") as cursor:
                    (count,) = await cursor.fetchone()
                if count == 0:
                    await db.execute(
                        "INSERT INTO configs (version, weights, thresholds, status, created_at, "
                        "status_changed_at, activated_at, parent_version, rationale) "
                        "VALUES (1, ?, ?, 'ACTIVE', ?, ?, ?, NULL, 'bootstrap')",
                        (
                            json.dumps(weights.to_dict()),
                            json.dumps(thresholds.to_dict()),
                            now,
                            now,
                            now,
                        ),
                    )
                    logger.info("config_bootstrapped", version=1)
                await db.execute("COMMIT")
            except BaseException:
                await db.execute("ROLLBACK")
                raise
        return await self.get_active()

    async def get_active(self) -> AccuracyConfig:
        async with connect(self._db_path) as db:
            async with db.execute("SELECT * FROM configs WHERE status = 'ACTIVE'") as cursor:
                row = await cursor.fetchone()
        if row is None:
            raise ConfigNotFound("no ACTIVE config; bootstrap the store first")
        return self._row_to_config(row)

    async def get(self, version: int) -> AccuracyConfig | None:
        async with connect(self._db_path) as db:
            async with db.execute("SELECT * FROM configs WHERE version = ?", (version,)) as cursor:
                row = await cursor.fetchone()
        return self._row_to_config(row) if row else None

    async def list_configs(self, status: ConfigStatus | None = None) -> list[AccuracyConfig]:
        async with connect(self._db_path) as db:
            if status is None:
                cursor = await db.execute("SELECT * FROM configs ORDER BY version")
            else:
                cursor = await db.execute(
                    "SELECT * FROM configs WHERE status = ? ORDER BY version", (str(status),)
                )
            rows = await cursor.fetchall()
            await cursor.close()
        return [self._row_to_config(r) for r in rows]

    async def create(
        self,
        weights: ScoringWeights,
        thresholds: Thresholds,
        parent_version: int | None = None,
        rationale: str = "",
    ) -> AccuracyConfig:
        now = utcnow().isoformat()
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "INSERT INTO configs (weights, thresholds, status, created_at, status_changed_at, "
                "activated_at, parent_version, rationale) VALUES (?, ?, 'DRAFT', ?, ?, NULL, ?, ?)",
                (
                    json.dumps(weights.to_dict()),
                    json.dumps(thresholds.to_dict()),
                    now,
                    now,
                    parent_version,
                    rationale,
                ),
            )
            version = cursor.lastrowid
            await db.commit()
        logger.info("config_created", version=version, parent_version=parent_version)
        return await self._require(version)

    async def transition(
        self, version: int, expected: ConfigStatus, new: ConfigStatus, at: datetime
    ) -> AccuracyConfig:
        check_transition(expected, new)
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "UPDATE configs SET status = ?, status_changed_at = ? WHERE version = ? AND status = ?",
                (str(new), at.isoformat(), version, str(expected)),
            )
            updated = cursor.rowcount
            await db.commit()
        if updated == 0:
            current = await self._require(version)
            raise ConfigConflict(f"v{version} is {current.status}, expected {expected}")
        logger.info("config_transitioned", version=version, old=str(expected), new=str(new))
        return await self._require(version)

    async def promote(self, version: int, expected_active_version: int, at: datetime) -> AccuracyConfig:
        stamp = at.isoformat()
        async with connect(self._db_path, isolation_level=None) as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                async with db.execute("SELECT status FROM configs WHERE version = ?", (version,)) as cursor:
                    target = await cursor.fetchone()
                if target is None:
                    raise ConfigNotFound(f"no config with version {version}")
                if target["status"] != ConfigStatus.SHADOW:
                    raise InvalidTransition(
                        f"v{version} is {target['status']}, only SHADOW can be promoted"
                    )
                async with db.execute("SELECT version FROM configs WHERE status = 'ACTIVE'") as cursor:
                    active = await cursor.fetchone()
                active_version = active["version"] if active else None
                if active_version != expected_active_version:
                    raise ConfigConflict(
                        f"ACTIVE is v{active_version}, expected v{expected_active_version}"
                    )
                if version <= active_version:
                    raise InvalidTransition(f"v{version} is not newer than ACTIVE v{active_version}")

                # Retire first: the partial unique index allows one ACTIVE row at a time.
                await db.execute(
                    "UPDATE configs SET status = 'RETIRED', status_changed_at = ? "
                    "WHERE version = ? AND status = 'ACTIVE'",
                    (stamp, active_version),
                )
                await db.execute(
                    "UPDATE configs SET status = 'ACTIVE', status_changed_at = ?, activated_at = ? "
                    "WHERE version = ? AND status = 'SHADOW'",
                    (stamp, stamp, version),
                )
                await db.execute("COMMIT")
            except BaseException:
                await db.execute("ROLLBACK")
                raise
        logger.info("config_promoted", version=version, retired=active_version)
        return await self._require(version)

    async def _require(self, version: int) -> AccuracyConfig:
        config = await self.get(version)
        if config is None:
            raise ConfigNotFound(f"no config with version {version}")
        return config

    @staticmethod
    def _row_to_config(row: aiosqlite.Row) -> AccuracyConfig:
        return AccuracyConfig(
            version=row["version"],
            weights=ScoringWeights(**json.loads(row["weights"])),
            thresholds=Thresholds(**json.loads(row["thresholds"])),
            status=ConfigStatus(row["status"]),
            created_at=parse_timestamp(row["created_at"]),
            status_changed_at=parse_timestamp(row["status_changed_at"]),
            activated_at=parse_timestamp(row["activated_at"]) if row["activated_at"] else None,
            parent_version=row["parent_version"],
            rationale=row["rationale"],
        )


def parse_timestamp(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)

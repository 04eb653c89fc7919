"""Copy-on-write snapshot of the ACTIVE config and the current SHADOW candidate."""

from __future__ import annotations

from dataclasses import dataclass

from accuracy_engine.models.domain import AccuracyConfig, ConfigStatus
from accuracy_engine.observability.logger import get_logger
from accuracy_engine.protocols.config_store import ConfigStore

logger = get_logger("config_snapshot")


@dataclass(frozen=True)
class ConfigSnapshot:
    active: AccuracyConfig
    candidate: AccuracyConfig | None = None


class ConfigSnapshotHolder:
    """Hot-path readers call :meth:`current` and get an immutable snapshot.

    Publishing swaps a single reference, so readers never block and never see
    a half-updated pair. A snapshot whose ACTIVE version is older than the
    one already published is ignored; a slightly stale read is acceptable.
    """

    def __init__(self, initial: ConfigSnapshot) -> None:
        self._snapshot = initial

    def current(self) -> ConfigSnapshot:
        return self._snapshot

    @property
    def active(self) -> AccuracyConfig:
        return self._snapshot.active

    def publish(self, snapshot: ConfigSnapshot) -> bool:
        if snapshot.active.version < self._snapshot.active.version:
            logger.info(
                "snapshot_publish_ignored",
                published=self._snapshot.active.version,
                offered=snapshot.active.version,
            )
            return False
        self._snapshot = snapshot
        return True

    async def refresh(self, store: ConfigStore) -> ConfigSnapshot:
        self.publish(await read_snapshot(store))
        return self._snapshot

    @classmethod
    async def load(cls, store: ConfigStore) -> ConfigSnapshotHolder:
        return cls(await read_snapshot(store))


async def read_snapshot(store: ConfigStore) -> ConfigSnapshot:
    active = await store.get_active()
    shadows = await store.list_configs(ConfigStatus.SHADOW)
    candidate = max(shadows, key=lambda c: c.version) if shadows else None
    return ConfigSnapshot(active=active, candidate=candidate)

"""Protocol for durable AccuracyConfig storage."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from accuracy_engine.models.domain import (
    AccuracyConfig,
    ConfigStatus,
    ScoringWeights,
    Thresholds,
)


class ConfigStore(Protocol):
    async def bootstrap(self, weights: ScoringWeights, thresholds: Thresholds) -> AccuracyConfig:
        """Return the ACTIVE config, creating version 1 as ACTIVE if the store is empty."""
        ...

    async def get_active(self) -> AccuracyConfig: ...

    async def get(self, version: int) -> AccuracyConfig | None: ...

    async def list_configs(self, status: ConfigStatus | None = None) -> list[AccuracyConfig]: ...

    async def create(
        self,
        weights: ScoringWeights,
        thresholds: Thresholds,
        parent_version: int | None = None,
        rationale: str = "",
    ) -> AccuracyConfig:
        """Create a DRAFT with the next monotonic version."""
        ...

    async def transition(
        self,
        version: int,
        expected: ConfigStatus,
        new: ConfigStatus,
        at: datetime,
    ) -> AccuracyConfig:
        """Compare-and-set on status. Never moves a config into or out of ACTIVE."""
        ...

    async def promote(
        self, version: int, expected_active_version: int, at: datetime
    ) -> AccuracyConfig:
        """Atomically retire the current ACTIVE and activate a SHADOW config.

        Raises ConfigConflict if the ACTIVE version is no longer
        ``expected_active_version``.
        """
        ...

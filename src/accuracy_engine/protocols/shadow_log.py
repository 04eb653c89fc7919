"""Protocol for the append-only shadow test record log."""

from __future__ import annotations

from typing import Protocol

from accuracy_engine.models.domain import ShadowTestRecord


class ShadowLog(Protocol):
    async def append(self, record: ShadowTestRecord) -> None: ...

    async def records(
        self, candidate_version: int | None = None, limit: int | None = None
    ) -> list[ShadowTestRecord]: ...

"""Protocol for the query trace log."""

from __future__ import annotations

from typing import Protocol

from accuracy_engine.models.domain import QueryTrace


class TraceStore(Protocol):
    async def save_trace(self, trace: QueryTrace) -> None: ...

    async def get_trace(self, trace_id: str) -> QueryTrace | None: ...

    async def traces_by_ids(self, trace_ids: list[str]) -> dict[str, QueryTrace]: ...

    async def get_recent_traces(self, limit: int = 100) -> list[QueryTrace]: ...

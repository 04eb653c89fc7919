"""Protocol for the chunk/document store."""

from __future__ import annotations

from typing import Protocol

from accuracy_engine.models.domain import ChunkCandidate, ProcessedQuery


class ChunkStore(Protocol):
    async def fetch_candidates(self, query: ProcessedQuery) -> list[ChunkCandidate]:
        """Return candidates with raw signals. May be empty; not assumed sorted."""
        ...

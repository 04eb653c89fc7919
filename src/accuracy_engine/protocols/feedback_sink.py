"""Protocol for the append-only feedback log."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from accuracy_engine.models.domain import FeedbackEvent


class FeedbackSink(Protocol):
    async def append(self, event: FeedbackEvent) -> bool:
        """Append once per message_id. Returns False if the id was already recorded."""
        ...

    async def get(self, message_id: str) -> FeedbackEvent | None: ...

    async def events(self, since: datetime | None = None) -> list[FeedbackEvent]:
        """Events ordered by timestamp, optionally from ``since`` onwards."""
        ...

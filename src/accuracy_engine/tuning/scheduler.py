"""Background loop that runs tuning cycles on an interval or after enough new feedback."""

from __future__ import annotations

import asyncio
import contextlib

from accuracy_engine.observability.logger import get_logger
from accuracy_engine.tuning.auto_tuner import AutoTuner

logger = get_logger("tuning_scheduler")


class TuningScheduler:
    def __init__(self, tuner: AutoTuner, interval_seconds: float, feedback_trigger_count: int) -> None:
        self._tuner = tuner
        self._interval = interval_seconds
        self._trigger_count = max(1, feedback_trigger_count)
        self._pending_feedback = 0
        self._wake = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._stopping = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopping = False
        self._task = asyncio.create_task(self._loop())
        logger.info("tuning_scheduler_started", interval_s=self._interval)

    async def stop(self) -> None:
        self._stopping = True
        self._wake.set()
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("tuning_scheduler_stopped")

    def notify_feedback(self) -> None:
        """Count one recorded feedback event; wake the loop once enough have arrived."""
        self._pending_feedback += 1
        if self._pending_feedback >= self._trigger_count:
            self.trigger()

    def trigger(self) -> None:
        self._wake.set()

    async def _loop(self) -> None:
        while not self._stopping:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            if self._stopping:
                break
            self._wake.clear()
            self._pending_feedback = 0
            try:
                await self._tuner.run_cycle()
            except Exception as e:
                logger.error("tuning_cycle_failed", error=str(e))

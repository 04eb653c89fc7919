"""Tests for retry backoff and the tuning scheduler."""

import asyncio

import pytest

from accuracy_engine.exceptions import InvalidQuery, UpstreamUnavailable
from accuracy_engine.resilience.retry import retry_async
from accuracy_engine.tuning.scheduler import TuningScheduler


class Flaky:
    def __init__(self, failures: int, exc: Exception | None = None) -> None:
        self.failures = failures
        self.calls = 0
        self.exc = exc or UpstreamUnavailable("try again")

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return "ok"


async def test_retry_recovers():
    op = Flaky(failures=2)
    assert await retry_async(op, name="flaky", attempts=3, base_delay_s=0) == "ok"
    assert op.calls == 3


async def test_retry_exhausted_reraises():
    op = Flaky(failures=5)
    with pytest.raises(UpstreamUnavailable):
        await retry_async(op, name="flaky", attempts=3, base_delay_s=0)
    assert op.calls == 3


async def test_retry_does_not_retry_other_errors():
    op = Flaky(failures=5, exc=InvalidQuery("bad"))
    with pytest.raises(InvalidQuery):
        await retry_async(op, name="flaky", attempts=3, base_delay_s=0)
    assert op.calls == 1


async def test_retry_backoff_delays(monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    await retry_async(Flaky(failures=3), name="flaky", attempts=4, base_delay_s=0.1, backoff_base=2.0)
    assert delays == pytest.approx([0.1, 0.2, 0.4])


class RecordingTuner:
    def __init__(self, fail: bool = False) -> None:
        self.cycles = 0
        self.fail = fail
        self.ran = asyncio.Event()

    async def run_cycle(self):
        self.cycles += 1
        self.ran.set()
        if self.fail:
            raise RuntimeError("boom")


async def test_scheduler_runs_on_interval():
    tuner = RecordingTuner()
    scheduler = TuningScheduler(tuner, interval_seconds=0.01, feedback_trigger_count=100)
    scheduler.start()
    await asyncio.wait_for(tuner.ran.wait(), timeout=2)
    await scheduler.stop()
    assert tuner.cycles >= 1
    assert not scheduler.running


async def test_scheduler_wakes_after_enough_feedback():
    tuner = RecordingTuner()
    scheduler = TuningScheduler(tuner, interval_seconds=3600, feedback_trigger_count=3)
    scheduler.start()
    scheduler.notify_feedback()
    scheduler.notify_feedback()
    await asyncio.sleep(0.05)
    assert tuner.cycles == 0
    scheduler.notify_feedback()
    await asyncio.wait_for(tuner.ran.wait(), timeout=2)
    await scheduler.stop()
    assert tuner.cycles == 1


async def test_scheduler_survives_failing_cycle():
    tuner = RecordingTuner(fail=True)
    scheduler = TuningScheduler(tuner, interval_seconds=0.01, feedback_trigger_count=100)
    scheduler.start()
    await asyncio.wait_for(tuner.ran.wait(), timeout=2)
    tuner.ran.clear()
    await asyncio.wait_for(tuner.ran.wait(), timeout=2)
    await scheduler.stop()
    assert tuner.cycles >= 2

"""
Tests for PeriodicTask using a manual clock, so no test waits on real time.
"""

import asyncio

import pytest

from pumpdev_client.scheduler import OverlapPolicy, PeriodicTask

from .helpers import ManualClock, settle

pytestmark = pytest.mark.asyncio


async def test_runs_immediately_then_once_per_interval():
    clock = ManualClock()
    calls = []

    async def job():
        calls.append(clock.now)

    task = PeriodicTask(job, 60, sleep=clock.sleep)
    task.start()
    await settle()
    assert len(calls) == 1

    await clock.advance(59)
    assert len(calls) == 1

    await clock.advance(1)
    assert len(calls) == 2
    assert calls == [0, 60]

    await task.stop()
    assert not task.running


async def test_skip_policy_drops_overlapping_ticks():
    clock = ManualClock()
    release = asyncio.Event()
    started = []

    async def slow_job():
        started.append(clock.now)
        await release.wait()

    task = PeriodicTask(slow_job, 10, overlap=OverlapPolicy.SKIP, sleep=clock.sleep)
    task.start()
    await settle()
    await clock.advance(10)
    await clock.advance(10)

    assert len(started) == 1
    assert task.skipped == 2
    assert task.busy

    release.set()
    await settle()
    assert not task.busy

    await clock.advance(10)
    assert len(started) == 2
    await task.stop()


async def test_queue_policy_runs_once_more_after_active_run():
    clock = ManualClock()
    release = asyncio.Event()
    runs = []

    async def slow_job():
        runs.append(clock.now)
        if len(runs) == 1:
            await release.wait()

    task = PeriodicTask(slow_job, 10, overlap=OverlapPolicy.QUEUE, sleep=clock.sleep)
    task.start()
    await settle()
    # Two ticks while busy collapse into one queued run
    await clock.advance(10)
    await clock.advance(10)
    assert len(runs) == 1

    release.set()
    await settle()

    assert len(runs) == 2
    assert task.runs == 2
    assert task.skipped == 0
    await task.stop()


async def test_failing_run_does_not_stop_timer():
    clock = ManualClock()
    calls = []

    async def flaky_job():
        calls.append(clock.now)
        raise RuntimeError("RPC down")

    task = PeriodicTask(flaky_job, 5, sleep=clock.sleep)
    task.start()
    await settle()
    await clock.advance(5)

    assert len(calls) == 2
    assert task.failures == 2
    assert task.running
    await task.stop()


async def test_stop_cancels_active_run():
    clock = ManualClock()
    cancelled = asyncio.Event()

    async def long_job():
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            cancelled.set()
            raise

    task = PeriodicTask(long_job, 30, sleep=clock.sleep)
    task.start()
    await settle()
    assert task.busy

    await task.stop()

    assert cancelled.is_set()
    assert not task.running
    assert not task.busy


async def test_start_twice_raises():
    clock = ManualClock()

    async def job():
        pass

    task = PeriodicTask(job, 1, sleep=clock.sleep)
    task.start()
    with pytest.raises(RuntimeError):
        task.start()
    await task.stop()


@pytest.mark.parametrize("interval", [0, -5])
async def test_interval_must_be_positive(interval):
    async def job():
        pass

    with pytest.raises(ValueError):
        PeriodicTask(job, interval)

"""Tests for the sweep scheduler lifecycle."""
from datetime import timedelta

import pytest

from src.notifications.infrastructure.scheduler import SWEEP_JOB_ID, SweepScheduler


async def noop():
    return None


@pytest.mark.asyncio
class TestSweepScheduler:
    async def test_zero_interval_disables(self):
        scheduler = SweepScheduler(interval_seconds=0)
        await scheduler.start(noop)
        assert not scheduler.is_running
        assert scheduler.job is None

    async def test_start_registers_single_instance_job(self):
        scheduler = SweepScheduler(interval_seconds=120)
        await scheduler.start(noop)
        try:
            assert scheduler.is_running
            job = scheduler.job
            assert job.id == SWEEP_JOB_ID
            assert job.max_instances == 1
            assert job.coalesce is True
            assert job.trigger.interval == timedelta(seconds=120)
        finally:
            await scheduler.stop()
        assert not scheduler.is_running

    async def test_stop_when_not_started(self):
        scheduler = SweepScheduler(interval_seconds=60)
        await scheduler.stop()
        assert not scheduler.is_running

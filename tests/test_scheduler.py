"""Tests for ExpirySweepScheduler."""

import asyncio
import logging

import pytest

from stockscan.config import load_config

pytest.importorskip("apscheduler")

from stockscan.scheduler import ExpirySweepScheduler  # noqa: E402


class _FakeService:
    def __init__(self, count=None, error=None):
        self.count = count
        self.error = error
        self.calls = 0

    async def sweep(self):
        self.calls += 1
        if self.error:
            raise self.error
        if self.count is None:
            return None
        future = asyncio.get_running_loop().create_future()
        future.set_result(self.count)
        return future


def test_scheduler_not_running_initially():
    scheduler = ExpirySweepScheduler(load_config(), _FakeService())
    assert scheduler.running is False


def test_expire_job_registered():
    config = load_config()
    config.lifecycle.sweep_schedule = "30 3 * * *"

    scheduler = ExpirySweepScheduler(config, _FakeService())
    scheduler.setup_jobs()

    jobs = scheduler.get_jobs()
    assert [j["id"] for j in jobs] == ["expire_items"]
    assert jobs[0]["name"] == "Expiry sweep"


def test_setup_jobs_is_idempotent():
    scheduler = ExpirySweepScheduler(load_config(), _FakeService())
    scheduler.setup_jobs()
    scheduler.setup_jobs()
    assert len(scheduler.get_jobs()) == 1


def test_invalid_cron_expression():
    config = load_config()
    config.lifecycle.sweep_schedule = "every night"

    scheduler = ExpirySweepScheduler(config, _FakeService())
    with pytest.raises(ValueError, match="Invalid cron expression"):
        scheduler.setup_jobs()


@pytest.mark.asyncio
async def test_start_and_stop():
    scheduler = ExpirySweepScheduler(load_config(), _FakeService())
    scheduler.start()
    assert scheduler.running
    assert scheduler.get_jobs()[0]["next_run"] is not None
    scheduler.stop()
    assert not scheduler.running


@pytest.mark.asyncio
async def test_job_runs_sweep(caplog):
    service = _FakeService(count=2)
    scheduler = ExpirySweepScheduler(load_config(), service)

    with caplog.at_level(logging.INFO, logger="stockscan.scheduler"):
        await scheduler._job_expire_items()

    assert service.calls == 1
    assert "marked 2 product(s) expired" in caplog.text


@pytest.mark.asyncio
async def test_job_with_nothing_to_expire():
    service = _FakeService()
    scheduler = ExpirySweepScheduler(load_config(), service)
    await scheduler._job_expire_items()
    assert service.calls == 1


@pytest.mark.asyncio
async def test_job_failure_is_logged(caplog):
    service = _FakeService(error=RuntimeError("store offline"))
    scheduler = ExpirySweepScheduler(load_config(), service)

    with caplog.at_level(logging.ERROR, logger="stockscan.scheduler"):
        await scheduler._job_expire_items()

    assert "Expiry sweep failed" in caplog.text

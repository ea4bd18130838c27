"""Periodic sweep loop: failures are recorded and the schedule continues."""

from __future__ import annotations

import asyncio

import pytest

from glitch.workers.scheduler import PeriodicSweep, SweepReport


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_records_affected_count(self):
        async def job() -> int:
            return 3

        sweep = PeriodicSweep("test", 60, job)
        report = await sweep.run_once()

        assert report.ok
        assert report.affected == 3
        assert sweep.last_report is report

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self):
        async def job() -> int:
            raise RuntimeError("store unavailable")

        seen: list[SweepReport] = []
        sweep = PeriodicSweep("test", 60, job, on_report=seen.append)
        report = await sweep.run_once()

        assert not report.ok
        assert report.error == "store unavailable"
        assert seen == [report]

    def test_rejects_non_positive_interval(self):
        async def job() -> int:
            return 0

        with pytest.raises(ValueError):
            PeriodicSweep("test", 0, job)


class TestLoop:
    @pytest.mark.asyncio
    async def test_keeps_running_after_a_failed_run(self):
        calls = 0

        async def job() -> int:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("transient")
            return 1

        sweep = PeriodicSweep("test", 0.01, job)
        sweep.start()
        try:
            await _wait_for(lambda: calls >= 3)
            assert sweep.running
        finally:
            await sweep.stop()

        reports = list(sweep.history)
        assert not reports[0].ok
        assert all(r.ok for r in reports[1:])

    @pytest.mark.asyncio
    async def test_stop_cancels_the_task(self):
        async def job() -> int:
            return 0

        sweep = PeriodicSweep("test", 0.01, job)
        sweep.start()
        await _wait_for(lambda: sweep.last_report is not None)
        await sweep.stop()

        assert not sweep.running
        count = len(sweep.history)
        await asyncio.sleep(0.05)
        assert len(sweep.history) == count

    @pytest.mark.asyncio
    async def test_delayed_first_run(self):
        async def job() -> int:
            return 0

        sweep = PeriodicSweep("test", 30, job, run_on_start=False)
        sweep.start()
        await asyncio.sleep(0.02)
        assert sweep.last_report is None
        await sweep.stop()

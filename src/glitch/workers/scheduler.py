"""In-process periodic sweeps.

Each sweep is an asyncio task with explicit start/stop. A run that raises is
logged and recorded in the sweep's history; the loop keeps its schedule.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from glitch.clock import Clock, SystemClock
from glitch.config import Settings
from glitch.database import Database
from glitch.quests.expiry import expire_quests, purge_stale_quests

logger = structlog.get_logger()

SweepJob = Callable[[], Awaitable[int]]


@dataclass(frozen=True)
class SweepReport:
    name: str
    started_at: datetime
    finished_at: datetime
    affected: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PeriodicSweep:
    """Runs ``job`` every ``interval_seconds`` until stopped."""

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        job: SweepJob,
        *,
        clock: Clock | None = None,
        on_report: Callable[[SweepReport], None] | None = None,
        history_size: int = 20,
        run_on_start: bool = True,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self._job = job
        self._clock = clock or SystemClock()
        self._on_report = on_report
        self._run_on_start = run_on_start
        self.history: deque[SweepReport] = deque(maxlen=history_size)
        self._task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_report(self) -> SweepReport | None:
        return self.history[-1] if self.history else None

    async def run_once(self) -> SweepReport:
        """Run the job now. Never raises for job failures."""
        async with self._lock:
            started = self._clock.now()
            try:
                affected = await self._job()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("sweep_failed", sweep=self.name, error=str(exc), exc_info=exc)
                report = SweepReport(self.name, started, self._clock.now(), error=str(exc))
            else:
                if affected:
                    logger.info("sweep_completed", sweep=self.name, affected=affected)
                report = SweepReport(self.name, started, self._clock.now(), affected=affected)

            self.history.append(report)
            if self._on_report is not None:
                try:
                    self._on_report(report)
                except Exception:
                    logger.warning("sweep_report_callback_failed", sweep=self.name, exc_info=True)
            return report

    async def _loop(self) -> None:
        if not self._run_on_start:
            await asyncio.sleep(self.interval_seconds)
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        """Schedule the loop on the running event loop (no-op if already running)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"sweep:{self.name}")
        logger.info("sweep_started", sweep=self.name, interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("sweep_stopped", sweep=self.name)


class QuestSweeper:
    """Owns the expiry and purge sweeps for one database."""

    def __init__(
        self,
        database: Database,
        settings: Settings,
        *,
        clock: Clock | None = None,
        redis: object | None = None,
        on_report: Callable[[SweepReport], None] | None = None,
    ) -> None:
        self.database = database
        self.clock = clock or SystemClock()
        self.redis = redis
        self.retention = timedelta(hours=settings.quest_retention_hours)
        self.expiry = PeriodicSweep(
            "quest_expiry",
            settings.expiry_sweep_interval_seconds,
            self._expire,
            clock=self.clock,
            on_report=on_report,
        )
        self.purge = PeriodicSweep(
            "quest_purge",
            settings.purge_sweep_interval_seconds,
            self._purge,
            clock=self.clock,
            on_report=on_report,
        )

    async def _expire(self) -> int:
        async with self.database.session_factory() as db:
            result = await expire_quests(db, self.clock.now(), self.redis)
        return result.affected

    async def _purge(self) -> int:
        async with self.database.session_factory() as db:
            return await purge_stale_quests(db, self.clock.now(), self.retention)

    def start(self) -> None:
        self.expiry.start()
        self.purge.start()

    async def stop(self) -> None:
        await self.expiry.stop()
        await self.purge.stop()

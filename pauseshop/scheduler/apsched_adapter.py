"""APScheduler wrapper running detector timers on the asyncio loop."""

from __future__ import annotations

import itertools
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger


class APSchedulerTimer:
    """Handle for one scheduled one-shot job."""

    def __init__(self, owner: "APSchedulerTimers", job_id: str) -> None:
        self.owner = owner
        self.job_id = job_id

    def cancel(self) -> None:
        self.owner.remove(self.job_id)


class APSchedulerTimers:
    """Manage one-shot APScheduler date jobs standing in for debounce timers."""

    def __init__(
        self,
        scheduler: AsyncIOScheduler | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self.logger = logger or structlog.get_logger("pauseshop.scheduler")
        self.started = False
        self._ids = itertools.count(1)

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> APSchedulerTimer:
        job_id = f"timer::{next(self._ids)}"
        run_date = datetime.now(timezone.utc) + timedelta(seconds=max(delay, 0.0))

        # coroutine jobs run on the loop itself instead of the thread pool executor
        async def _fire() -> None:
            callback()

        self.scheduler.add_job(
            _fire,
            trigger=DateTrigger(run_date=run_date),
            id=job_id,
            misfire_grace_time=None,
            replace_existing=True,
        )
        return APSchedulerTimer(self, job_id)

    def remove(self, job_id: str) -> None:
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            # already fired or cancelled
            return


__all__ = ["APSchedulerTimer", "APSchedulerTimers"]

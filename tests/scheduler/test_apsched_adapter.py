from __future__ import annotations

import asyncio

from apscheduler.jobstores.base import JobLookupError
from apscheduler.triggers.date import DateTrigger

from pauseshop.scheduler import APSchedulerTimers


class StubScheduler:
    def __init__(self) -> None:
        self.jobs: dict[str, dict] = {}
        self.started = False

    def add_job(self, func, trigger=None, id=None, misfire_grace_time=None, replace_existing=False):
        self.jobs[id] = {"func": func, "trigger": trigger, "misfire_grace_time": misfire_grace_time}

    def remove_job(self, job_id):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]

    def start(self):
        self.started = True

    def shutdown(self, wait=True):
        self.started = False


async def test_call_later_registers_date_job() -> None:
    stub = StubScheduler()
    timers = APSchedulerTimers(scheduler=stub)
    fired: list[str] = []

    handle = timers.call_later(0.3, lambda: fired.append("confirm"))
    assert list(stub.jobs) == [handle.job_id]
    job = stub.jobs[handle.job_id]
    assert isinstance(job["trigger"], DateTrigger)
    assert job["misfire_grace_time"] is None

    await job["func"]()
    assert fired == ["confirm"]


def test_cancel_removes_job_and_tolerates_repeats() -> None:
    stub = StubScheduler()
    timers = APSchedulerTimers(scheduler=stub)
    first = timers.call_later(1.0, lambda: None)
    second = timers.call_later(1.0, lambda: None)
    assert first.job_id != second.job_id

    first.cancel()
    first.cancel()
    assert list(stub.jobs) == [second.job_id]


def test_start_and_shutdown_are_idempotent() -> None:
    stub = StubScheduler()
    timers = APSchedulerTimers(scheduler=stub)
    timers.start()
    timers.start()
    assert stub.started and timers.started
    timers.shutdown()
    timers.shutdown()
    assert not stub.started and not timers.started


async def test_real_scheduler_fires_on_loop() -> None:
    timers = APSchedulerTimers()
    timers.start()
    fired = asyncio.Event()
    cancelled: list[str] = []
    try:
        timers.call_later(0.05, fired.set)
        timers.call_later(0.05, lambda: cancelled.append("x")).cancel()
        await asyncio.wait_for(fired.wait(), timeout=3)
        await asyncio.sleep(0.1)
        assert cancelled == []
    finally:
        timers.shutdown()

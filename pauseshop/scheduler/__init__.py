"""Timer schedulers for the pause detector."""

from .apsched_adapter import APSchedulerTimer, APSchedulerTimers
from .base import Scheduler, TimerHandle
from .manual import ManualScheduler, ManualTimer

__all__ = [
    "APSchedulerTimer",
    "APSchedulerTimers",
    "ManualScheduler",
    "ManualTimer",
    "Scheduler",
    "TimerHandle",
]

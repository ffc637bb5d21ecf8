"""Timer scheduling interface consumed by the pause detector."""

from __future__ import annotations

from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        """Prevent the callback from running; no-op once it has fired."""


class Scheduler(Protocol):
    def now(self) -> float:
        """Monotonic seconds used for debounce bookkeeping."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""


__all__ = ["Scheduler", "TimerHandle"]

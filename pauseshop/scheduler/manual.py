"""Virtual-time scheduler for replays and tests."""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable


@dataclass(order=True)
class ManualTimer:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Fire timers only when ``advance`` moves the virtual clock past them."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._heap: list[ManualTimer] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self._now + max(delay, 0.0), next(self._seq), callback)
        heapq.heappush(self._heap, timer)
        return timer

    def advance(self, seconds: float) -> int:
        """Move time forward, running due timers in order; returns how many fired."""

        target = self._now + seconds
        fired = 0
        while self._heap and self._heap[0].due <= target:
            timer = heapq.heappop(self._heap)
            if timer.cancelled:
                continue
            self._now = timer.due
            timer.callback()
            fired += 1
        self._now = target
        return fired

    def advance_to(self, moment: float) -> int:
        return self.advance(max(moment - self._now, 0.0))

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._heap if not timer.cancelled)


__all__ = ["ManualScheduler", "ManualTimer"]

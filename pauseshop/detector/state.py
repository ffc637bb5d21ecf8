"""Per-media state owned by the pause detector."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from ..scheduler import TimerHandle


class MediaElement(Protocol):
    paused: bool
    ended: bool
    duration: float
    current_time: float


@dataclass
class MediaState:
    """Plain media element snapshot used by replays and tests."""

    paused: bool = False
    ended: bool = False
    duration: float = math.inf
    current_time: float = 0.0


class DetectorPhase(str, Enum):
    PLAYING = "playing"
    SEEKING = "seeking"
    PAUSE_SETTLING = "pause_settling"
    CONFIRMED = "confirmed"


@dataclass(frozen=True, slots=True)
class InteractionEvent:
    """A keyboard or mouse interaction on the page hosting the media."""

    kind: str
    key: str | None = None
    target_classes: frozenset[str] = field(default_factory=frozenset)
    ancestor_classes: frozenset[str] = field(default_factory=frozenset)


@dataclass
class SeekingState:
    is_seeking: bool = False
    last_seek_time: float = 0.0
    seek_settle_timer: TimerHandle | None = None
    pause_confirm_timer: TimerHandle | None = None
    reconfirm_timer: TimerHandle | None = None
    previous_current_time: float = 0.0
    user_interaction_detected: bool = False
    last_interaction_time: float = 0.0
    current_pause_id: str | None = None

    @classmethod
    def initial(cls, current_time: float = 0.0) -> "SeekingState":
        return cls(previous_current_time=current_time)

    def clear_timers(self) -> None:
        for name in ("seek_settle_timer", "pause_confirm_timer", "reconfirm_timer"):
            timer = getattr(self, name)
            if timer is not None:
                timer.cancel()
                setattr(self, name, None)


__all__ = [
    "DetectorPhase",
    "InteractionEvent",
    "MediaElement",
    "MediaState",
    "SeekingState",
]

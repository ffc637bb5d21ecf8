"""Replay recorded media events through a detector on virtual time."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Iterable

import structlog
from pydantic import BaseModel, Field, field_validator

from ..config.models import DetectorConfig
from ..scheduler import ManualScheduler
from .detector import PauseDetector
from .state import InteractionEvent, MediaElement, MediaState

INTERACTION_EVENTS = frozenset({"keydown", "mousedown"})


class ReplayStep(BaseModel):
    """One recorded event; media fields left unset keep their previous value."""

    at: float = 0.0
    event: str
    current_time: float | None = None
    paused: bool | None = None
    ended: bool | None = None
    duration: float | None = None
    key: str | None = None
    target_classes: list[str] = Field(default_factory=list)
    ancestor_classes: list[str] = Field(default_factory=list)

    @field_validator("at")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Replay timestamps must be non-negative")
        return value

    def apply(self, media: MediaState) -> None:
        for name in ("current_time", "paused", "ended", "duration"):
            value = getattr(self, name)
            if value is not None:
                setattr(media, name, value)

    def interaction(self) -> InteractionEvent:
        return InteractionEvent(
            kind=self.event,
            key=self.key,
            target_classes=frozenset(self.target_classes),
            ancestor_classes=frozenset(self.ancestor_classes),
        )


@dataclass(slots=True)
class ReplayRecord:
    at: float
    action: str
    pause_id: str


@dataclass
class RecordingSessionLayer:
    """Session layer that only remembers what the detector asked of it."""

    scheduler: ManualScheduler
    records: list[ReplayRecord] = field(default_factory=list)

    def register_pause(self, pause_id: str) -> None:
        self.records.append(ReplayRecord(self.scheduler.now(), "minted", pause_id))

    def cancel_pause(self, pause_id: str) -> None:
        self.records.append(ReplayRecord(self.scheduler.now(), "cancelled", pause_id))

    def capture_frame(self, pause_id: str, media: MediaElement) -> None:
        self.records.append(ReplayRecord(self.scheduler.now(), "confirmed", pause_id))

    def by_action(self, action: str) -> list[str]:
        return [record.pause_id for record in self.records if record.action == action]


def load_steps(payload: Any) -> tuple[list[ReplayStep], str | None]:
    """Accept either a bare list of steps or ``{"host": ..., "events": [...]}``."""

    host = None
    if isinstance(payload, dict):
        host = payload.get("host")
        payload = payload.get("events", [])
    if not isinstance(payload, list):
        raise ValueError("Replay file must contain a list of events")
    return [ReplayStep.model_validate(item) for item in payload], host


def run_replay(
    steps: Iterable[ReplayStep],
    hostname: str = "",
    config: DetectorConfig | None = None,
    settle: float = 10.0,
    logger: structlog.BoundLogger | None = None,
) -> RecordingSessionLayer:
    scheduler = ManualScheduler()
    session_layer = RecordingSessionLayer(scheduler)
    counter = itertools.count(1)
    detector = PauseDetector(
        session_layer,
        scheduler,
        config=config,
        hostname=hostname,
        logger=logger,
        id_factory=lambda: f"pause-{next(counter)}",
    )
    media = MediaState()
    detector.observe(media)
    for step in sorted(steps, key=lambda item: item.at):
        scheduler.advance_to(step.at)
        step.apply(media)
        if step.event in INTERACTION_EVENTS:
            detector.on_interaction(step.interaction())
        elif step.event == "observe":
            detector.observe(media)
        else:
            detector.handle_event(step.event, media)
    scheduler.advance(settle)
    return session_layer


__all__ = [
    "RecordingSessionLayer",
    "ReplayRecord",
    "ReplayStep",
    "load_steps",
    "run_replay",
]

"""Site-specific pause policies."""

from __future__ import annotations

from typing import Protocol, Sequence

import structlog

from .state import InteractionEvent, SeekingState

DEFAULT_DEBOUNCE = 0.3


class SiteHandler(Protocol):
    name: str

    def is_applicable(self, hostname: str) -> bool:
        """Whether this policy governs pages on ``hostname``."""

    def record_interaction(self, state: SeekingState, event: InteractionEvent, now: float) -> bool:
        """Update interaction flags; return True when the event was relevant."""

    def should_ignore_pause(self, state: SeekingState, now: float) -> bool:
        """Veto a pause the site is known to emit as noise."""

    def debounce_time(self, state: SeekingState, now: float) -> float:
        """Seconds to wait before confirming a pause."""


class DefaultHandler:
    name = "default"

    def is_applicable(self, hostname: str) -> bool:
        return True

    def record_interaction(self, state: SeekingState, event: InteractionEvent, now: float) -> bool:
        return False

    def should_ignore_pause(self, state: SeekingState, now: float) -> bool:
        return False

    def debounce_time(self, state: SeekingState, now: float) -> float:
        return DEFAULT_DEBOUNCE


class YouTubeHandler:
    """YouTube pauses briefly while scrubbing; hold off after seek keys and bar clicks."""

    name = "youtube"
    SEEK_KEYS = frozenset({"ArrowLeft", "ArrowRight", "j", "l"})
    PROGRESS_CLASSES = frozenset({"ytp-progress-bar", "ytp-scrubber-button", "ytp-progress-list"})
    PLAY_BUTTON_CLASSES = frozenset({"ytp-play-button", "ytp-large-play-button"})
    VETO_WINDOW = 2.0
    RECENT_WINDOW = 1.0
    SLOW_DEBOUNCE = 5.0

    def is_applicable(self, hostname: str) -> bool:
        return "youtube.com" in hostname

    def record_interaction(self, state: SeekingState, event: InteractionEvent, now: float) -> bool:
        if event.kind == "keydown":
            if event.key not in self.SEEK_KEYS:
                return False
        elif event.kind == "mousedown":
            if not self._is_progress_bar(event) or self._is_play_button(event):
                return False
        else:
            return False
        state.user_interaction_detected = True
        state.last_interaction_time = now
        return True

    def should_ignore_pause(self, state: SeekingState, now: float) -> bool:
        return self._interaction_within(state, now, self.VETO_WINDOW)

    def debounce_time(self, state: SeekingState, now: float) -> float:
        if self._interaction_within(state, now, self.RECENT_WINDOW):
            return self.SLOW_DEBOUNCE
        return DEFAULT_DEBOUNCE

    # ------------------------------------------------------------------
    @staticmethod
    def _interaction_within(state: SeekingState, now: float, window: float) -> bool:
        return state.user_interaction_detected and now - state.last_interaction_time < window

    def _is_progress_bar(self, event: InteractionEvent) -> bool:
        lineage = event.target_classes | event.ancestor_classes
        if event.target_classes & self.PROGRESS_CLASSES:
            return True
        if "ytp-progress-bar-container" in lineage and "ytp-play-button" not in lineage:
            return True
        return "ytp-chrome-bottom" in lineage and "ytp-progress-bar" in lineage

    def _is_play_button(self, event: InteractionEvent) -> bool:
        if event.target_classes & self.PLAY_BUTTON_CLASSES:
            return True
        return "ytp-play-button" in event.ancestor_classes


class SiteHandlerRegistry:
    """Pick the first applicable handler for a host, falling back to the default."""

    def __init__(
        self,
        handlers: Sequence[SiteHandler] | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.handlers: list[SiteHandler] = list(handlers) if handlers is not None else [YouTubeHandler()]
        self.default: SiteHandler = DefaultHandler()
        self.active: SiteHandler = self.default
        self.logger = logger or structlog.get_logger("pauseshop.site_handlers")

    def initialize(self, hostname: str) -> SiteHandler:
        self.active = next(
            (handler for handler in self.handlers if handler.is_applicable(hostname)),
            self.default,
        )
        self.logger.debug("site_handler_selected", hostname=hostname, handler=self.active.name)
        return self.active

    def record_interaction(self, state: SeekingState, event: InteractionEvent, now: float) -> bool:
        return self.active.record_interaction(state, event, now)

    def should_ignore_pause(self, state: SeekingState, now: float) -> bool:
        return self.active.should_ignore_pause(state, now)

    def debounce_time(self, state: SeekingState, now: float) -> float:
        return self.active.debounce_time(state, now)


__all__ = [
    "DEFAULT_DEBOUNCE",
    "DefaultHandler",
    "SiteHandler",
    "SiteHandlerRegistry",
    "YouTubeHandler",
]

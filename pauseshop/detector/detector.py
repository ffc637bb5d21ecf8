"""Pause/seek state machine deciding when a pause is worth analysing."""

from __future__ import annotations

import itertools
import math
import time
import uuid
from typing import Any, Callable, Protocol

import structlog

from ..config.models import DetectorConfig
from ..scheduler import Scheduler, TimerHandle
from .site_handlers import SiteHandlerRegistry
from .state import DetectorPhase, InteractionEvent, MediaElement, SeekingState

INTERACTION_TTL = 2.0


class SessionLayer(Protocol):
    def register_pause(self, pause_id: str) -> None:
        ...

    def cancel_pause(self, pause_id: str) -> None:
        ...

    def capture_frame(self, pause_id: str, media: MediaElement) -> None:
        ...


def default_pause_id_factory() -> Callable[[], str]:
    counter = itertools.count(1)

    def _next() -> str:
        return f"{int(time.time() * 1000)}-{next(counter)}-{uuid.uuid4().hex[:6]}"

    return _next


class PauseDetector:
    """Observe one media element and mint a pause session per genuine pause."""

    def __init__(
        self,
        session_layer: SessionLayer,
        scheduler: Scheduler,
        handlers: SiteHandlerRegistry | None = None,
        config: DetectorConfig | None = None,
        hostname: str = "",
        logger: structlog.BoundLogger | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.session_layer = session_layer
        self.scheduler = scheduler
        self.handlers = handlers or SiteHandlerRegistry()
        self.config = config or DetectorConfig()
        self.hostname = hostname
        self.logger = logger or structlog.get_logger("pauseshop.detector")
        self._id_factory = id_factory or default_pause_id_factory()
        self.media: MediaElement | None = None
        self.state = SeekingState.initial()
        self.phase = DetectorPhase.PLAYING
        self._interaction_timer: TimerHandle | None = None
        self.handlers.initialize(hostname)

    @property
    def current_pause_id(self) -> str | None:
        return self.state.current_pause_id

    # ------------------------------------------------------------------
    def observe(self, media: MediaElement, hostname: str | None = None) -> None:
        self.state.clear_timers()
        self._clear_interaction_timer()
        stale = self.state.current_pause_id
        if stale is not None:
            self._call("cancel_pause", stale)
        if hostname is not None:
            self.hostname = hostname
        self.media = media
        self.state = SeekingState.initial(media.current_time)
        self.phase = DetectorPhase.PLAYING
        self.handlers.initialize(self.hostname)
        self.logger.debug("media_observed", hostname=self.hostname, current_time=media.current_time)

    def handle_event(self, name: str, media: MediaElement) -> bool:
        handler = {
            "pause": self.on_pause,
            "play": self.on_play,
            "playing": self.on_play,
            "seeking": self.on_seeking,
            "seeked": self.on_seeked,
            "timeupdate": self.on_timeupdate,
        }.get(name)
        if handler is None:
            self.logger.debug("media_event_ignored", media_event=name)
            return False
        handler(media)
        return True

    def on_timeupdate(self, media: MediaElement) -> None:
        state = self.state
        current = media.current_time
        previous = state.previous_current_time
        if abs(current - previous) > self.config.time_jump_threshold and previous > 0 and not state.is_seeking:
            self.logger.debug("time_jump_detected", previous=previous, current=current)
            self.on_seeking(media)

            def _settle() -> None:
                if state is self.state and state.is_seeking:
                    self.on_seeked(media)

            state.seek_settle_timer = self.scheduler.call_later(self.config.seeking_debounce, _settle)
        state.previous_current_time = current

    def on_seeking(self, media: MediaElement) -> None:
        state = self.state
        state.is_seeking = True
        state.last_seek_time = self.scheduler.now()
        state.user_interaction_detected = False
        state.clear_timers()
        self.phase = DetectorPhase.SEEKING

    def on_seeked(self, media: MediaElement) -> None:
        state = self.state
        self._cancel(state, "seek_settle_timer")

        def _settled() -> None:
            if state is not self.state:
                return
            state.seek_settle_timer = None
            state.is_seeking = False
            if not media.paused:
                self.phase = DetectorPhase.PLAYING
                return
            if self.handlers.should_ignore_pause(state, self.scheduler.now()):
                self.logger.debug("reconfirm_vetoed")
                return
            self.phase = DetectorPhase.PAUSE_SETTLING
            state.reconfirm_timer = self.scheduler.call_later(self.config.reconfirm_delay, _reconfirm)

        def _reconfirm() -> None:
            if state is not self.state:
                return
            state.reconfirm_timer = None
            if media.paused and not state.is_seeking:
                self.on_pause(media)

        state.seek_settle_timer = self.scheduler.call_later(self.config.seeking_debounce, _settled)

    def on_pause(self, media: MediaElement) -> None:
        state = self.state
        reason = self._ignore_reason(state, media)
        if reason is not None:
            self.logger.debug("pause_ignored", reason=reason, current_time=media.current_time)
            return
        now = self.scheduler.now()
        if self.handlers.should_ignore_pause(state, now):
            self.logger.info("pause_vetoed", handler=self.handlers.active.name)
            return

        previous = state.current_pause_id
        if previous is not None:
            self._call("cancel_pause", previous)
        pause_id = self._id_factory()
        state.current_pause_id = pause_id
        self.phase = DetectorPhase.PAUSE_SETTLING
        self.logger.info("pause_minted", pause_id=pause_id, current_time=media.current_time)
        self._call("register_pause", pause_id)

        def _confirm() -> None:
            state.pause_confirm_timer = None
            if state is not self.state or state.current_pause_id != pause_id:
                return
            if not media.paused or state.is_seeking:
                self.logger.debug("pause_confirm_skipped", pause_id=pause_id)
                return
            self.phase = DetectorPhase.CONFIRMED
            self.logger.info("pause_confirmed", pause_id=pause_id)
            self._call("capture_frame", pause_id, media)

        self._cancel(state, "pause_confirm_timer")
        debounce = self.handlers.debounce_time(state, now)
        state.pause_confirm_timer = self.scheduler.call_later(debounce, _confirm)

    def on_play(self, media: MediaElement) -> None:
        state = self.state
        pause_id = state.current_pause_id
        if pause_id is not None:
            self.logger.info("pause_cancelled", pause_id=pause_id)
            self._call("cancel_pause", pause_id)
        state.current_pause_id = None
        self._cancel(state, "pause_confirm_timer")
        self._cancel(state, "reconfirm_timer")
        self.phase = DetectorPhase.PLAYING

    def on_interaction(self, event: InteractionEvent) -> bool:
        state = self.state
        if not self.handlers.record_interaction(state, event, self.scheduler.now()):
            return False
        self.logger.debug("interaction_recorded", kind=event.kind, key=event.key)
        self._clear_interaction_timer()

        def _expire() -> None:
            self._interaction_timer = None
            state.user_interaction_detected = False

        self._interaction_timer = self.scheduler.call_later(INTERACTION_TTL, _expire)
        return True

    # ------------------------------------------------------------------
    def _ignore_reason(self, state: SeekingState, media: MediaElement) -> str | None:
        if state.is_seeking:
            return "seeking"
        if media.ended:
            return "ended"
        duration = media.duration
        if math.isfinite(duration) and duration - media.current_time < self.config.end_epsilon:
            return "near_end"
        return None

    def _clear_interaction_timer(self) -> None:
        if self._interaction_timer is not None:
            self._interaction_timer.cancel()
            self._interaction_timer = None

    @staticmethod
    def _cancel(state: SeekingState, name: str) -> None:
        timer = getattr(state, name)
        if timer is not None:
            timer.cancel()
            setattr(state, name, None)

    def _call(self, method: str, *args: Any) -> None:
        try:
            getattr(self.session_layer, method)(*args)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("session_layer_failed", method=method, error=str(exc))


__all__ = ["INTERACTION_TTL", "PauseDetector", "SessionLayer", "default_pause_id_factory"]

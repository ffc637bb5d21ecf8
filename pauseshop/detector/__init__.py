"""Pause detection for a single media element."""

from .detector import INTERACTION_TTL, PauseDetector, SessionLayer, default_pause_id_factory
from .replay import RecordingSessionLayer, ReplayRecord, ReplayStep, load_steps, run_replay
from .site_handlers import DEFAULT_DEBOUNCE, DefaultHandler, SiteHandler, SiteHandlerRegistry, YouTubeHandler
from .state import DetectorPhase, InteractionEvent, MediaElement, MediaState, SeekingState

__all__ = [
    "DEFAULT_DEBOUNCE",
    "DefaultHandler",
    "DetectorPhase",
    "INTERACTION_TTL",
    "InteractionEvent",
    "MediaElement",
    "MediaState",
    "PauseDetector",
    "RecordingSessionLayer",
    "ReplayRecord",
    "ReplayStep",
    "SeekingState",
    "SessionLayer",
    "SiteHandler",
    "SiteHandlerRegistry",
    "YouTubeHandler",
    "default_pause_id_factory",
    "load_steps",
    "run_replay",
]

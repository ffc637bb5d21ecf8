"""Session layer between the pause detector and the analysis orchestrator."""

from __future__ import annotations

import asyncio
import inspect
import uuid
from typing import Any, Awaitable, Callable, Coroutine, Union

import structlog

from .detector import MediaElement
from .engine import CancellationRegistry, StreamingBackendClient, encode_frame
from .orchestrator import AnalysisOrchestrator, SessionOutcome

FrameData = Union[bytes, str]
FrameSource = Callable[[str, MediaElement | None], Union[FrameData, Awaitable[FrameData]]]


class SessionManager:
    """Map pause ids to backend session ids."""

    def __init__(self) -> None:
        self._sessions: dict[str, str] = {}

    def start(self, pause_id: str) -> str:
        session_id = str(uuid.uuid4())
        self._sessions[pause_id] = session_id
        return session_id

    def get(self, pause_id: str) -> str | None:
        return self._sessions.get(pause_id)

    def end(self, pause_id: str) -> str | None:
        return self._sessions.pop(pause_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


class PauseShopService:
    """Turn detector callbacks into analysis runs and teardown calls.

    The detector calls ``register_pause``, ``cancel_pause`` and
    ``capture_frame`` synchronously; the network work they imply is started as
    tasks on the running loop and can be awaited with :meth:`drain`.
    """

    def __init__(
        self,
        orchestrator: AnalysisOrchestrator,
        backend: StreamingBackendClient,
        frame_source: FrameSource,
        registry: CancellationRegistry | None = None,
        sessions: SessionManager | None = None,
        mime_type: str = "image/png",
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.backend = backend
        self.frame_source = frame_source
        self.registry = registry or CancellationRegistry()
        self.sessions = sessions or SessionManager()
        self.mime_type = mime_type
        self.logger = logger or structlog.get_logger("pauseshop.service")
        self.outcomes: dict[str, SessionOutcome] = {}
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Detector-facing session layer
    # ------------------------------------------------------------------
    def register_pause(self, pause_id: str) -> None:
        self.registry.register(pause_id)

    def cancel_pause(self, pause_id: str) -> None:
        self.registry.cancel(pause_id, "pause_superseded")
        session_id = self.sessions.end(pause_id)
        if session_id is not None:
            self._spawn(self.backend.end_session(session_id))

    def capture_frame(self, pause_id: str, media: MediaElement | None = None) -> None:
        self._spawn(self.run_pause(pause_id, media))

    # ------------------------------------------------------------------
    async def run_pause(self, pause_id: str, media: MediaElement | None = None) -> SessionOutcome:
        token = self.registry.token_for(pause_id)
        if token is None or token.cancelled:
            self.logger.info("pause_not_active", pause_id=pause_id)
            return SessionOutcome.CANCELLED

        session_id = self.sessions.start(pause_id)
        log = self.logger.bind(pause_id=pause_id, session_id=session_id)
        try:
            try:
                frame = await self._capture(pause_id, media)
            except Exception as exc:  # noqa: BLE001
                log.error("frame_capture_failed", error=str(exc))
                outcome = SessionOutcome.ERROR
            else:
                log.info("analysis_started", frame_length=len(frame))
                outcome = await self.orchestrator.run(frame, session_id, token)
        finally:
            self.registry.cleanup(pause_id, token)
            if self.sessions.get(pause_id) == session_id:
                self.sessions.end(pause_id)
        self.outcomes[pause_id] = outcome
        log.info("analysis_finished", outcome=outcome.value)
        return outcome

    async def drain(self) -> None:
        """Wait for every spawned analysis and teardown task."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        cancelled = self.registry.cancel_all("shutdown")
        if cancelled:
            self.logger.info("service_shutdown", cancelled=cancelled)
        await self.drain()

    # ------------------------------------------------------------------
    async def _capture(self, pause_id: str, media: MediaElement | None) -> str:
        frame: Any = self.frame_source(pause_id, media)
        if inspect.isawaitable(frame):
            frame = await frame
        if isinstance(frame, bytes):
            return encode_frame(frame, self.mime_type)
        return frame

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


__all__ = ["FrameSource", "PauseShopService", "SessionManager"]

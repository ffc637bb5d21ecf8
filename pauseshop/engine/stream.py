"""Streaming client for the frame analysis backend."""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from typing import AsyncIterator

import httpx
import structlog

from ..config import BackendConfig
from .errors import BackendStreamError
from .events import StreamEvent, parse_event_line


def encode_frame(data: bytes, mime_type: str = "image/png") -> str:
    """Wrap raw image bytes as the data URL the backend expects."""

    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


class LineBuffer:
    """Split streamed text into lines, holding back a trailing partial line."""

    def __init__(self) -> None:
        self._pending = ""

    def feed(self, chunk: str) -> list[str]:
        data = self._pending + chunk
        lines = data.split("\n")
        self._pending = lines.pop()
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> list[str]:
        rest, self._pending = self._pending, ""
        return [rest.rstrip("\r")] if rest.strip() else []


class StreamingBackendClient:
    """POST a frame to ``/analyze/stream`` and yield classified events as they arrive."""

    def __init__(
        self,
        config: BackendConfig,
        client: httpx.AsyncClient | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or structlog.get_logger("pauseshop.stream")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def stream_events(self, frame: str, session_id: str) -> AsyncIterator[StreamEvent]:
        payload = {
            "image": frame,
            "sessionId": session_id,
            "metadata": {"timestamp": datetime.now(timezone.utc).isoformat()},
        }
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        # no read timeout: the backend may think for a while between events
        timeout = httpx.Timeout(self.config.connect_timeout, read=None)
        url = self.config.stream_url()
        self.logger.info("stream_opening", url=url, session_id=session_id)
        try:
            async with self._client.stream(
                "POST", url, json=payload, headers=headers, timeout=timeout
            ) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise BackendStreamError(f"HTTP {response.status_code}: {body[:200]}")
                buffer = LineBuffer()
                async for chunk in response.aiter_text():
                    for line in buffer.feed(chunk):
                        event = parse_event_line(line)
                        if event is not None:
                            yield event
                for line in buffer.flush():
                    event = parse_event_line(line)
                    if event is not None:
                        yield event
        except httpx.HTTPError as exc:
            raise BackendStreamError(f"{type(exc).__name__}: {exc}") from exc
        finally:
            self.logger.debug("stream_closed", session_id=session_id)

    async def end_session(self, session_id: str) -> bool:
        """Tell the backend a session is over; failures are logged, never raised."""

        url = self.config.end_session_url(session_id)
        try:
            response = await self._client.post(url, timeout=self.config.connect_timeout)
        except httpx.HTTPError as exc:
            self.logger.warning("end_session_failed", session_id=session_id, error=str(exc))
            return False
        if not response.is_success:
            self.logger.warning(
                "end_session_rejected", session_id=session_id, status=response.status_code
            )
            return False
        self.logger.info("end_session_ok", session_id=session_id)
        return True


__all__ = ["LineBuffer", "StreamingBackendClient", "encode_frame"]

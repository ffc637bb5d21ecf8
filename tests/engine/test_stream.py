from __future__ import annotations

import base64
import json

import httpx
import pytest

from pauseshop.config import BackendConfig
from pauseshop.engine import (
    BackendStreamError,
    CompleteEvent,
    ErrorEvent,
    LineBuffer,
    ProductEvent,
    StreamingBackendClient,
    encode_frame,
)

PRODUCT = {"name": "Desk Lamp", "category": "furniture", "iconCategory": "lamp", "brand": "IKEA"}


def test_line_buffer_keeps_partial_lines() -> None:
    buffer = LineBuffer()
    assert buffer.feed("data: {\"a\"") == []
    assert buffer.feed(": 1}\r\ndata: x\n") == ['data: {"a": 1}', "data: x"]
    assert buffer.feed("tail") == []
    assert buffer.flush() == ["tail"]
    assert buffer.flush() == []


def test_encode_frame_builds_data_url() -> None:
    url = encode_frame(b"\x89PNG", "image/png")
    assert url.startswith("data:image/png;base64,")
    assert base64.b64decode(url.split(",", 1)[1]) == b"\x89PNG"


def _client(handler) -> StreamingBackendClient:
    return StreamingBackendClient(
        BackendConfig(), client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


async def test_stream_events_across_chunk_boundaries() -> None:
    lines = (
        ": keep-alive\n\n"
        "event: product\n"
        f"data: {json.dumps(PRODUCT)}\n\n"
        "data: not json\n\n"
        f"data: {json.dumps({'totalProducts': 1, 'processingTime': 1234})}\n\n"
    ).encode()
    seen_requests: list[httpx.Request] = []

    async def chunks():
        for index in range(0, len(lines), 7):
            yield lines[index : index + 7]

    def handler(request: httpx.Request) -> httpx.Response:
        seen_requests.append(request)
        return httpx.Response(200, content=chunks(), headers={"Content-Type": "text/event-stream"})

    client = _client(handler)
    events = [event async for event in client.stream_events("data:image/png;base64,AAAA", "session-1")]

    assert [type(event) for event in events] == [ProductEvent, CompleteEvent]
    assert events[0].name == "Desk Lamp"
    assert events[1].total_products == 1
    request = seen_requests[0]
    assert request.url == "https://pauseshop-server-rfrxaro25a-uc.a.run.app/analyze/stream"
    assert request.headers["Accept"] == "text/event-stream"
    assert request.headers["Cache-Control"] == "no-cache"
    body = json.loads(request.content)
    assert body["image"] == "data:image/png;base64,AAAA"
    assert body["sessionId"] == "session-1"
    assert "timestamp" in body["metadata"]


async def test_stream_yields_error_events() -> None:
    payload = f"data: {json.dumps({'message': 'quota exceeded', 'code': 429})}\n\n"
    client = _client(lambda request: httpx.Response(200, text=payload))
    events = [event async for event in client.stream_events("frame", "s")]
    assert isinstance(events[0], ErrorEvent)
    assert events[0].code == "429"


async def test_stream_rejects_non_success_status() -> None:
    client = _client(lambda request: httpx.Response(502, text="bad gateway"))
    with pytest.raises(BackendStreamError, match="502"):
        async for _ in client.stream_events("frame", "s"):
            pass


async def test_stream_wraps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler)
    with pytest.raises(BackendStreamError, match="ConnectError"):
        async for _ in client.stream_events("frame", "s"):
            pass


async def test_end_session_reports_outcome() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if "bad" in request.url.path:
            return httpx.Response(500)
        return httpx.Response(200, json={"ok": True})

    client = _client(handler)
    assert await client.end_session("good-1") is True
    assert await client.end_session("bad-2") is False
    assert calls == ["/session/good-1/end", "/session/bad-2/end"]


async def test_end_session_never_raises_on_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    assert await _client(handler).end_session("s-1") is False


def test_local_environment_url() -> None:
    config = BackendConfig(environment="local")
    assert config.stream_url() == "http://localhost:3000/analyze/stream"
    assert config.end_session_url("abc") == "http://localhost:3000/session/abc/end"

from __future__ import annotations

import asyncio

import httpx
import pytest

from pauseshop.config import BackendConfig
from pauseshop.engine import CancellationToken, SearchProvider, StreamingBackendClient
from pauseshop.orchestrator import AnalysisOrchestrator, NotificationKind, SessionOutcome, WorkGroup

PRODUCTS = [
    {"name": "Desk Lamp", "category": "furniture", "iconCategory": "lamp"},
    {"name": "Oak Table", "category": "furniture", "iconCategory": "table"},
    {"name": "Wool Scarf", "category": "accessories", "iconCategory": "scarf"},
]


def backend_with(handler) -> StreamingBackendClient:
    return StreamingBackendClient(
        BackendConfig(), client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


def provider_with(config, handler) -> SearchProvider:
    return SearchProvider(config, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.fixture
def search_handler(pages):
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        terms = request.url.params.get("k", "")
        calls.append(terms)
        if "table" in terms.lower():
            return httpx.Response(503, text="service unavailable")
        asin = "B0" + str(len(calls)).zfill(8)
        return httpx.Response(200, text=pages.page(pages.card(asin), pages.card(asin + "X")))

    handler.calls = calls
    return handler


async def test_session_emits_groups_then_complete(provider_config, recording_notifier, search_handler, pages) -> None:
    body = pages.sse(*PRODUCTS, {"type": "complete", "totalProducts": 3, "processingTime": 900})
    backend = backend_with(lambda request: httpx.Response(200, text=body))
    provider = provider_with(provider_config(max_retries=0), search_handler)
    orchestrator = AnalysisOrchestrator(backend, [provider], recording_notifier)

    outcome = await orchestrator.run("data:image/png;base64,AAAA", "session-1")

    assert outcome is SessionOutcome.COMPLETED
    kinds = recording_notifier.kinds()
    assert kinds[0] is NotificationKind.STARTED
    assert kinds[-1] is NotificationKind.COMPLETE
    assert kinds.count(NotificationKind.COMPLETE) == 1
    groups = recording_notifier.groups()
    assert sorted(group.product.name for group in groups) == ["Desk Lamp", "Wool Scarf"]
    assert all(group.provider == "amazon" for group in groups)
    assert all(group.session_id == "session-1" for group in recording_notifier.notifications)
    assert all(group.results for group in groups)
    assert len(search_handler.calls) == 3
    await provider.aclose()


async def test_stream_end_without_complete_event_still_completes(
    provider_config, recording_notifier, search_handler, pages
) -> None:
    backend = backend_with(lambda request: httpx.Response(200, text=pages.sse(PRODUCTS[0])))
    provider = provider_with(provider_config(), search_handler)
    outcome = await AnalysisOrchestrator(backend, [provider], recording_notifier).run("frame", "s-2")
    assert outcome is SessionOutcome.COMPLETED
    assert recording_notifier.kinds() == [
        NotificationKind.STARTED,
        NotificationKind.PRODUCT_GROUP_READY,
        NotificationKind.COMPLETE,
    ]


async def test_error_event_ends_session_without_complete(
    provider_config, recording_notifier, search_handler, pages
) -> None:
    body = pages.sse({"type": "error", "message": "model overloaded", "code": "E_BUSY"})
    backend = backend_with(lambda request: httpx.Response(200, text=body))
    provider = provider_with(provider_config(), search_handler)
    outcome = await AnalysisOrchestrator(backend, [provider], recording_notifier).run("frame", "s-3")
    assert outcome is SessionOutcome.ERROR
    assert recording_notifier.kinds() == [NotificationKind.STARTED, NotificationKind.ERROR]
    assert "model overloaded" in recording_notifier.notifications[-1].error


async def test_backend_failure_reports_error(provider_config, recording_notifier, search_handler) -> None:
    backend = backend_with(lambda request: httpx.Response(500, text="internal"))
    provider = provider_with(provider_config(), search_handler)
    outcome = await AnalysisOrchestrator(backend, [provider], recording_notifier).run("frame", "s-4")
    assert outcome is SessionOutcome.ERROR
    assert NotificationKind.COMPLETE not in recording_notifier.kinds()
    assert "500" in recording_notifier.notifications[-1].error


async def test_cancellation_interrupts_hanging_stream(provider_config, recording_notifier, search_handler) -> None:
    async def hanging():
        yield b": keep-alive\n\n"
        await asyncio.sleep(30)
        yield b"data: {}\n\n"

    backend = backend_with(lambda request: httpx.Response(200, content=hanging()))
    provider = provider_with(provider_config(), search_handler)
    token = CancellationToken()
    asyncio.get_running_loop().call_later(0.05, token.cancel, "resumed")

    outcome = await asyncio.wait_for(
        AnalysisOrchestrator(backend, [provider], recording_notifier).run("frame", "s-5", token),
        timeout=5,
    )
    assert outcome is SessionOutcome.CANCELLED
    assert recording_notifier.kinds() == [NotificationKind.STARTED, NotificationKind.CANCELLED]


async def test_pre_cancelled_token_skips_backend(provider_config, recording_notifier, search_handler) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, text="")

    token = CancellationToken()
    token.cancel("play")
    provider = provider_with(provider_config(), search_handler)
    outcome = await AnalysisOrchestrator(backend_with(handler), [provider], recording_notifier).run(
        "frame", "s-6", token
    )
    assert outcome is SessionOutcome.CANCELLED
    assert calls == []
    assert recording_notifier.kinds() == [NotificationKind.CANCELLED]


async def test_failing_notifier_does_not_abort_session(provider_config, search_handler, pages) -> None:
    class BrokenNotifier:
        def notify(self, notification) -> None:
            raise RuntimeError("panel closed")

    backend = backend_with(lambda request: httpx.Response(200, text=pages.sse({"totalProducts": 0})))
    provider = provider_with(provider_config(), search_handler)
    outcome = await AnalysisOrchestrator(backend, [provider], BrokenNotifier()).run("frame", "s-7")
    assert outcome is SessionOutcome.COMPLETED


def test_orchestrator_requires_providers() -> None:
    backend = backend_with(lambda request: httpx.Response(200))
    with pytest.raises(ValueError):
        AnalysisOrchestrator(backend, [], notifier=None)


async def test_work_group_collects_results_and_errors() -> None:
    group = WorkGroup()

    async def ok() -> int:
        return 1

    async def boom() -> int:
        raise RuntimeError("x")

    group.spawn(ok())
    group.spawn(boom())
    results = await group.join()
    assert results[0] == 1
    assert isinstance(results[1], RuntimeError)
    assert len(group) == 2
    assert await WorkGroup().join() == []


def slow_search(pages, delay: float):
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(delay)
        return httpx.Response(200, text=pages.page(pages.card("B0SLOW0001"), pages.card("B0SLOW0002")))

    return handler


async def test_cancellation_during_product_search_drops_results(provider_config, recording_notifier, pages) -> None:
    body = pages.sse(PRODUCTS[0], {"type": "complete", "totalProducts": 1})
    backend = backend_with(lambda request: httpx.Response(200, text=body))
    provider = provider_with(provider_config(), slow_search(pages, 2.0))
    token = CancellationToken()
    asyncio.get_running_loop().call_later(0.1, token.cancel, "resumed")

    outcome = await asyncio.wait_for(
        AnalysisOrchestrator(backend, [provider], recording_notifier).run("frame", "s-8", token),
        timeout=5,
    )
    await provider.aclose()
    await asyncio.sleep(0)

    assert outcome is SessionOutcome.CANCELLED
    assert recording_notifier.kinds() == [NotificationKind.STARTED, NotificationKind.CANCELLED]
    assert recording_notifier.groups() == []


async def test_units_in_flight_still_report_after_error_event(provider_config, recording_notifier, pages) -> None:
    body = pages.sse(PRODUCTS[0], {"message": "frame too dark", "code": "E_FRAME"})
    backend = backend_with(lambda request: httpx.Response(200, text=body))
    provider = provider_with(provider_config(), slow_search(pages, 0.1))

    outcome = await asyncio.wait_for(
        AnalysisOrchestrator(backend, [provider], recording_notifier).run("frame", "s-9"),
        timeout=5,
    )
    await provider.aclose()

    assert outcome is SessionOutcome.ERROR
    assert recording_notifier.kinds() == [
        NotificationKind.STARTED,
        NotificationKind.ERROR,
        NotificationKind.PRODUCT_GROUP_READY,
    ]
    assert recording_notifier.groups()[0].product.name == "Desk Lamp"

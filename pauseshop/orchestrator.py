"""Analysis session orchestrator wiring the backend stream to per-product searches."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Coroutine, Protocol, Sequence, TypeVar

import structlog

from .engine import (
    BackendStreamError,
    CancellationToken,
    CompleteEvent,
    ErrorEvent,
    OperationCancelled,
    ProductEvent,
    ScrapedProduct,
    SearchProvider,
    StreamingBackendClient,
)

T = TypeVar("T")


class SessionOutcome(str, Enum):
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class NotificationKind(str, Enum):
    STARTED = "started"
    PRODUCT_GROUP_READY = "product_group_ready"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class Notification:
    """Message handed to the presentation layer, always tagged with its session."""

    kind: NotificationKind
    session_id: str
    product: ProductEvent | None = None
    provider: str | None = None
    results: list[ScrapedProduct] = field(default_factory=list)
    error: str | None = None


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None:
        """Receive a session notification."""


class WorkGroup:
    """Track one task per product unit so completion can wait on all of them."""

    def __init__(self) -> None:
        self._tasks: list[asyncio.Task] = []

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.append(task)
        return task

    async def join(self) -> list[Any]:
        if not self._tasks:
            return []
        return await asyncio.gather(*self._tasks, return_exceptions=True)

    def cancel(self) -> None:
        for task in self._tasks:
            if not task.done():
                task.cancel()

    def __len__(self) -> int:
        return len(self._tasks)


class AnalysisOrchestrator:
    """Run one streaming analysis session per pause and fan out product searches."""

    def __init__(
        self,
        backend: StreamingBackendClient,
        providers: Sequence[SearchProvider],
        notifier: Notifier,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if not providers:
            raise ValueError("AnalysisOrchestrator needs at least one search provider")
        self.backend = backend
        self.providers = list(providers)
        self.notifier = notifier
        self.logger = logger or structlog.get_logger("pauseshop.orchestrator")

    async def run(
        self, frame: str, session_id: str, token: CancellationToken | None = None
    ) -> SessionOutcome:
        token = token or CancellationToken()
        log = self.logger.bind(session_id=session_id)
        if token.cancelled:
            log.info("session_cancelled_before_start", reason=token.reason)
            self._emit(Notification(NotificationKind.CANCELLED, session_id))
            return SessionOutcome.CANCELLED

        self._emit(Notification(NotificationKind.STARTED, session_id))
        group = WorkGroup()
        try:
            outcome = await self._until_cancelled(
                self._consume(frame, session_id, token, group, log), token
            )
            # a Complete event and the natural end of stream both land here once
            await self._until_cancelled(group.join(), token)
        except OperationCancelled as exc:
            group.cancel()
            await group.join()
            log.info("session_cancelled", reason=exc.reason, units=len(group))
            self._emit(Notification(NotificationKind.CANCELLED, session_id))
            return SessionOutcome.CANCELLED

        if outcome is SessionOutcome.ERROR:
            log.info("session_finished_with_error", units=len(group))
            return SessionOutcome.ERROR
        log.info("session_complete", units=len(group))
        self._emit(Notification(NotificationKind.COMPLETE, session_id))
        return SessionOutcome.COMPLETED

    # ------------------------------------------------------------------
    async def _consume(
        self,
        frame: str,
        session_id: str,
        token: CancellationToken,
        group: WorkGroup,
        log: structlog.BoundLogger,
    ) -> SessionOutcome:
        try:
            async with aclosing(self.backend.stream_events(frame, session_id)) as events:
                async for event in events:
                    token.raise_if_cancelled()
                    if isinstance(event, ProductEvent):
                        log.info("product_received", product=event.name, category=event.category.value)
                        for provider in self.providers:
                            group.spawn(self._process_product(event, provider, session_id, token, log))
                    elif isinstance(event, CompleteEvent):
                        log.info(
                            "stream_complete_event",
                            total_products=event.total_products,
                            processing_time=event.processing_time,
                        )
                        return SessionOutcome.COMPLETED
                    elif isinstance(event, ErrorEvent):
                        log.warning("stream_error_event", code=event.code, message=event.message)
                        self._emit(
                            Notification(
                                NotificationKind.ERROR,
                                session_id,
                                error=f"{event.code}: {event.message}",
                            )
                        )
                        return SessionOutcome.ERROR
        except BackendStreamError as exc:
            log.error("stream_connection_failed", error=str(exc))
            self._emit(Notification(NotificationKind.ERROR, session_id, error=str(exc)))
            return SessionOutcome.ERROR
        log.info("stream_ended")
        return SessionOutcome.COMPLETED

    async def _process_product(
        self,
        product: ProductEvent,
        provider: SearchProvider,
        session_id: str,
        token: CancellationToken,
        log: structlog.BoundLogger,
    ) -> list[ScrapedProduct]:
        unit_log = log.bind(product=product.name, provider=provider.name)
        try:
            token.raise_if_cancelled()
            query = provider.build_query(product)
            if query is None:
                unit_log.warning("query_construction_failed")
                return []
            for warning in query.warnings:
                unit_log.info("query_warning", warning=warning)

            token.raise_if_cancelled()
            body = await provider.dispatcher.dispatch(query, token)
            if body is None:
                unit_log.warning("search_returned_nothing", url=query.search_url)
                return []

            results = provider.extract(body, query.search_url, query.id)
            if not results:
                unit_log.info("search_no_products", url=query.search_url)
                return []
            if token.cancelled:
                return []
            self._emit(
                Notification(
                    NotificationKind.PRODUCT_GROUP_READY,
                    session_id,
                    product=product,
                    provider=provider.name,
                    results=results,
                )
            )
            return results
        except OperationCancelled:
            unit_log.debug("product_unit_cancelled")
            raise
        except Exception as exc:  # noqa: BLE001
            unit_log.error("product_unit_failed", error_type=type(exc).__name__, error=str(exc))
            return []

    async def _until_cancelled(self, work: Awaitable[T], token: CancellationToken) -> T:
        task = asyncio.ensure_future(work)
        waiter = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task in done:
            return task.result()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise OperationCancelled(token.reason or "cancelled")

    def _emit(self, notification: Notification) -> None:
        try:
            self.notifier.notify(notification)
        except Exception as exc:  # noqa: BLE001
            self.logger.error(
                "notifier_failed",
                kind=notification.kind.value,
                session_id=notification.session_id,
                error=str(exc),
            )


__all__ = [
    "AnalysisOrchestrator",
    "Notification",
    "NotificationKind",
    "Notifier",
    "SessionOutcome",
    "WorkGroup",
]

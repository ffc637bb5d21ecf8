"""Queued, rate-limited, retrying HTTP dispatch for one search provider."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass

import httpx
import structlog

from ..config import ProviderConfig
from ..infra import HeaderPool
from .antibot import strategies
from .antibot.chain import AntiBotChain, AntiBotContext, RequestDirective
from .cancellation import CancellationToken
from .errors import (
    BadStatusError,
    BotChallengeError,
    EmptyResponseError,
    OperationCancelled,
    RequestTimeout,
    TransientRequestError,
    TransportError,
)
from .query import SearchQuery


@dataclass(slots=True)
class QueuedRequest:
    """Input waiting in the dispatcher queue."""

    query: SearchQuery
    future: asyncio.Future
    token: CancellationToken | None = None
    retry_count: int = 0


@dataclass(slots=True)
class SearchResult:
    """Raw page body plus the query that produced it."""

    query: SearchQuery
    status_code: int
    text: str


class RequestDispatcher:
    """Serialise provider requests through a FIFO queue with a concurrency ceiling.

    ``dispatch`` resolves to the page body, to ``None`` once retries are spent,
    or raises :class:`OperationCancelled` when the caller's token fires.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        client: httpx.AsyncClient | None = None,
        header_pool: HeaderPool | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.provider = provider
        self.header_pool = header_pool or HeaderPool(
            provider.user_agents,
            rotate=provider.user_agent_rotation,
            accept_language=provider.accept_language,
        )
        self.logger = logger or structlog.get_logger("pauseshop.dispatcher").bind(
            provider=provider.name
        )
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True)
        self._queue: deque[QueuedRequest] = deque()
        self._active = 0
        self._last_started_at: float | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_requests(self) -> int:
        return self._active

    @property
    def queued_requests(self) -> int:
        return len(self._queue)

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._owns_client:
            await self._client.aclose()

    async def dispatch(
        self, query: SearchQuery, token: CancellationToken | None = None
    ) -> str | None:
        if token is not None:
            token.raise_if_cancelled()
        loop = asyncio.get_running_loop()
        entry = QueuedRequest(query=query, future=loop.create_future(), token=token)
        self._queue.append(entry)
        self._drain()
        if token is None:
            return await entry.future

        waiter = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {entry.future, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            self._discard(entry)
            raise
        finally:
            waiter.cancel()
        if entry.future in done:
            return entry.future.result()
        self._discard(entry)
        raise OperationCancelled(token.reason or "cancelled")

    # ------------------------------------------------------------------
    # Queue bookkeeping: the only places that touch _queue and _active
    # ------------------------------------------------------------------
    def _drain(self) -> None:
        while self._queue and self._active < self.provider.max_concurrent_requests:
            entry = self._queue.popleft()
            if entry.future.done():
                continue
            if entry.token is not None and entry.token.cancelled:
                entry.future.set_exception(OperationCancelled(entry.token.reason or "cancelled"))
                continue
            self._active += 1
            task = asyncio.ensure_future(self._run(entry))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def _discard(self, entry: QueuedRequest) -> None:
        try:
            self._queue.remove(entry)
        except ValueError:
            pass
        if not entry.future.done():
            entry.future.cancel()

    async def _run(self, entry: QueuedRequest) -> None:
        try:
            body = await self._execute(entry)
        except OperationCancelled as exc:
            if not entry.future.done():
                entry.future.set_exception(exc)
        except asyncio.CancelledError:
            if not entry.future.done():
                entry.future.cancel()
            raise
        except Exception as exc:  # noqa: BLE001
            self.logger.error("dispatch_crashed", url=entry.query.search_url, error=str(exc))
            if not entry.future.done():
                entry.future.set_exception(exc)
        else:
            if not entry.future.done():
                entry.future.set_result(body)
        finally:
            self._active -= 1
            self._drain()

    # ------------------------------------------------------------------
    async def _execute(self, entry: QueuedRequest) -> str | None:
        loop = asyncio.get_running_loop()
        context, chain = self._build_chain()
        context.others_active = self._active > 1
        if self._last_started_at is not None:
            context.since_last_request = loop.time() - self._last_started_at
        last_error: Exception | None = None

        while True:
            if entry.token is not None:
                entry.token.raise_if_cancelled()
            directive = chain.prepare(context)
            if directive.delay:
                await self._sleep(directive.delay, entry.token)

            self._last_started_at = loop.time()
            try:
                result = await self._attempt(entry, directive)
            except TransientRequestError as exc:
                self.logger.warning(
                    "dispatch_failed",
                    url=entry.query.search_url,
                    attempt=context.attempt,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                chain.notify_failure(context, exc)
                last_error = exc
            else:
                chain.notify_success(context, result.status_code)
                self.logger.info(
                    "dispatch_succeeded",
                    url=entry.query.search_url,
                    attempt=context.attempt,
                    length=len(result.text),
                )
                return result.text

            if not chain.should_retry(context):
                break
            entry.retry_count += 1

        self.logger.warning(
            "dispatch_exhausted",
            url=entry.query.search_url,
            attempts=context.max_attempts,
            error=str(last_error) if last_error else None,
        )
        return None

    async def _attempt(self, entry: QueuedRequest, directive: RequestDirective) -> SearchResult:
        timeout = directive.timeout or self.provider.timeout
        request = asyncio.ensure_future(
            self._client.get(entry.query.search_url, headers=directive.headers, timeout=timeout)
        )
        waiters: set[asyncio.Future] = {request}
        cancel_waiter: asyncio.Future | None = None
        if entry.token is not None:
            cancel_waiter = asyncio.ensure_future(entry.token.wait())
            waiters.add(cancel_waiter)
        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()
            if not request.done():
                request.cancel()

        if request in done:
            try:
                response = request.result()
            except httpx.HTTPError as exc:
                raise TransportError(f"{type(exc).__name__}: {exc}") from exc
            return SearchResult(entry.query, response.status_code, self._validate(response))

        await asyncio.gather(request, return_exceptions=True)
        if cancel_waiter is not None and cancel_waiter in done:
            raise OperationCancelled(entry.token.reason or "cancelled")
        raise RequestTimeout(timeout)

    def _validate(self, response: httpx.Response) -> str:
        if not response.is_success:
            raise BadStatusError(response.status_code)
        text = response.text
        if len(text) < self.provider.min_body_length:
            raise EmptyResponseError(len(text), self.provider.min_body_length)
        for fingerprint in self.provider.bot_fingerprints:
            if fingerprint in text:
                raise BotChallengeError(fingerprint)
        return text

    async def _sleep(self, delay: float, token: CancellationToken | None) -> None:
        if token is None:
            await asyncio.sleep(delay)
            return
        try:
            await asyncio.wait_for(token.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise OperationCancelled(token.reason or "cancelled")

    def _build_chain(self) -> tuple[AntiBotContext, AntiBotChain]:
        return strategies.build_chain(self.provider, self.header_pool)


__all__ = ["QueuedRequest", "RequestDispatcher", "SearchResult"]

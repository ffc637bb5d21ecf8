"""Cancellation tokens and the per-pause registry that owns them."""

from __future__ import annotations

import asyncio

import structlog

from .errors import OperationCancelled


class CancellationToken:
    """Cooperative cancellation flag that can be awaited next to network waits."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled(self.reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()

    def __repr__(self) -> str:
        state = f"cancelled:{self.reason}" if self.cancelled else "active"
        return f"<CancellationToken {state}>"


class CancellationRegistry:
    """Map pause ids to tokens; registering a known id supersedes its old token."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self._tokens: dict[str, CancellationToken] = {}
        self.logger = logger or structlog.get_logger("pauseshop.cancellation")

    def register(self, pause_id: str) -> CancellationToken:
        existing = self._tokens.pop(pause_id, None)
        if existing is not None:
            existing.cancel("superseded")
            self.logger.info("pause_superseded", pause_id=pause_id)
        token = CancellationToken()
        self._tokens[pause_id] = token
        self.logger.debug("pause_registered", pause_id=pause_id)
        return token

    def cancel(self, pause_id: str, reason: str = "cancelled") -> bool:
        token = self._tokens.pop(pause_id, None)
        if token is None:
            return False
        token.cancel(reason)
        self.logger.info("pause_cancelled", pause_id=pause_id, reason=reason)
        return True

    def cancel_all(self, reason: str = "shutdown") -> int:
        pause_ids = list(self._tokens)
        for pause_id in pause_ids:
            self.cancel(pause_id, reason)
        return len(pause_ids)

    def token_for(self, pause_id: str) -> CancellationToken | None:
        return self._tokens.get(pause_id)

    def is_registered(self, pause_id: str) -> bool:
        return pause_id in self._tokens

    def cleanup(self, pause_id: str, token: CancellationToken | None = None) -> None:
        """Forget a finished pause without cancelling it.

        When ``token`` is given the entry is only removed if it still belongs to
        that token, so a late cleanup never drops a newer registration.
        """

        current = self._tokens.get(pause_id)
        if current is None:
            return
        if token is not None and current is not token:
            return
        del self._tokens[pause_id]

    def active_ids(self) -> list[str]:
        return list(self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)


__all__ = ["CancellationRegistry", "CancellationToken"]

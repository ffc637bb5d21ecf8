"""Strategy chain orchestrating anti-bot adaptations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from ...config import ProviderConfig


@dataclass
class RequestDirective:
    """Mutable set of options to apply to an outgoing request."""

    headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    delay: float | None = None


@dataclass
class AntiBotContext:
    """Shared state for all strategies in the chain."""

    provider: ProviderConfig
    attempt: int = 1
    max_attempts: int = 1
    others_active: bool = False
    since_last_request: float | None = None
    backoff: float | None = None
    last_status: int | None = None
    last_exception: Exception | None = None


class Strategy(Protocol):
    """Strategy behaviour expected by the chain."""

    def before_request(self, context: AntiBotContext, directive: RequestDirective) -> None:
        """Mutate directive ahead of an HTTP request."""

    def after_success(self, context: AntiBotContext, status_code: int) -> None:
        """Allow strategy to observe successful response."""

    def after_failure(self, context: AntiBotContext, error: Exception) -> None:
        """Allow strategy to react when a request fails."""


class AntiBotChain:
    """Compose multiple strategies and expose a simple API for the dispatcher."""

    def __init__(self, strategies: Optional[List[Strategy]] = None) -> None:
        self.strategies = strategies or []

    # ------------------------------------------------------------------
    def prepare(self, context: AntiBotContext) -> RequestDirective:
        directive = RequestDirective()
        for strategy in self.strategies:
            strategy.before_request(context, directive)
        return directive

    def notify_success(self, context: AntiBotContext, status_code: int) -> None:
        context.last_status = status_code
        context.last_exception = None
        for strategy in self.strategies:
            strategy.after_success(context, status_code)

    def notify_failure(self, context: AntiBotContext, error: Exception) -> None:
        context.last_exception = error
        for strategy in self.strategies:
            strategy.after_failure(context, error)

    def should_retry(self, context: AntiBotContext) -> bool:
        return context.attempt <= context.max_attempts


__all__ = ["AntiBotChain", "AntiBotContext", "RequestDirective", "Strategy"]

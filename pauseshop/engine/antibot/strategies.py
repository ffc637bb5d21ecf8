"""Concrete anti-bot strategies used by the chain."""

from __future__ import annotations

import random

from ...config import ProviderConfig
from ...infra import HeaderPool
from .chain import AntiBotChain, AntiBotContext, RequestDirective, Strategy


class HeaderRotationStrategy(Strategy):
    """Attach the next browser header set from the pool."""

    def __init__(self, pool: HeaderPool) -> None:
        self.pool = pool

    def before_request(self, context: AntiBotContext, directive: RequestDirective) -> None:
        for key, value in self.pool.next_headers().items():
            directive.headers.setdefault(key, value)

    def after_success(self, context: AntiBotContext, status_code: int) -> None:
        return

    def after_failure(self, context: AntiBotContext, error: Exception) -> None:
        return


class PolitenessDelayStrategy(Strategy):
    """Space out requests to one provider with a jittered pause."""

    def before_request(self, context: AntiBotContext, directive: RequestDirective) -> None:
        if context.attempt > 1:
            return
        provider = context.provider
        recently_used = (
            context.since_last_request is not None
            and context.since_last_request < provider.request_delay
        )
        if not (context.others_active or recently_used):
            return
        delay = provider.request_delay + random.uniform(0, provider.request_jitter)
        if delay > 0:
            directive.delay = delay

    def after_success(self, context: AntiBotContext, status_code: int) -> None:
        return

    def after_failure(self, context: AntiBotContext, error: Exception) -> None:
        return


class TimeoutStrategy(Strategy):
    """Apply the provider's hard timeout."""

    def before_request(self, context: AntiBotContext, directive: RequestDirective) -> None:
        directive.timeout = context.provider.timeout

    def after_success(self, context: AntiBotContext, status_code: int) -> None:
        return

    def after_failure(self, context: AntiBotContext, error: Exception) -> None:
        return


class RetryStrategy(Strategy):
    """Expose retry budget and exponential backoff to the dispatch loop."""

    def before_request(self, context: AntiBotContext, directive: RequestDirective) -> None:
        context.max_attempts = max(1, context.provider.max_retries + 1)
        if context.attempt > 1 and context.backoff:
            directive.delay = context.backoff

    def after_success(self, context: AntiBotContext, status_code: int) -> None:
        context.backoff = None

    def after_failure(self, context: AntiBotContext, error: Exception) -> None:
        provider = context.provider
        retry_index = context.attempt - 1
        context.backoff = provider.backoff_base * (2**retry_index) + random.uniform(
            0, provider.backoff_jitter
        )
        context.attempt += 1


def build_chain(
    provider: ProviderConfig, header_pool: HeaderPool
) -> tuple[AntiBotContext, AntiBotChain]:
    """Utility to build a ready-to-use chain from config."""

    context = AntiBotContext(provider=provider)
    strategies: list[Strategy] = [
        RetryStrategy(),
        TimeoutStrategy(),
        HeaderRotationStrategy(header_pool),
        PolitenessDelayStrategy(),
    ]
    return context, AntiBotChain(strategies)


__all__ = [
    "HeaderRotationStrategy",
    "PolitenessDelayStrategy",
    "RetryStrategy",
    "TimeoutStrategy",
    "build_chain",
]

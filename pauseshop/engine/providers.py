"""Search providers: one dispatcher and one extraction engine per configured site."""

from __future__ import annotations

from typing import Iterable

import httpx
import structlog

from ..config import GlobalConfig, ProviderConfig
from .cancellation import CancellationToken
from .dispatcher import RequestDispatcher
from .events import ProductEvent
from .extraction import ExtractionEngine, ScrapedProduct
from .query import SearchQuery, build_search_query, query_for_terms


class SearchProvider:
    """Bundle a provider's query shaping, dispatcher and extraction patterns."""

    def __init__(
        self,
        config: ProviderConfig,
        dispatcher: RequestDispatcher | None = None,
        extractor: ExtractionEngine | None = None,
        client: httpx.AsyncClient | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or structlog.get_logger("pauseshop.provider").bind(provider=config.name)
        self.dispatcher = dispatcher or RequestDispatcher(config, client=client, logger=self.logger)
        self.extractor = extractor or ExtractionEngine(
            config.patterns, max_products=config.max_products_per_search, logger=self.logger
        )

    @property
    def name(self) -> str:
        return self.config.name

    def build_query(self, product: ProductEvent) -> SearchQuery | None:
        return build_search_query(product, self.config)

    def query_for_terms(self, terms: str) -> SearchQuery | None:
        return query_for_terms(terms, self.config)

    def extract(self, html: str, base_url: str, query_id: str = "") -> list[ScrapedProduct]:
        return self.extractor.extract(html, base_url, query_id)

    async def search(
        self, query: SearchQuery, token: CancellationToken | None = None
    ) -> list[ScrapedProduct]:
        body = await self.dispatcher.dispatch(query, token)
        if body is None:
            return []
        return self.extract(body, query.search_url, query.id)

    async def aclose(self) -> None:
        await self.dispatcher.aclose()


def build_providers(
    config: GlobalConfig,
    names: Iterable[str] | None = None,
    client: httpx.AsyncClient | None = None,
    logger_factory=None,
) -> list[SearchProvider]:
    """Instantiate providers by name, defaulting to ``config.search_providers``."""

    providers: list[SearchProvider] = []
    for name in names or config.search_providers:
        provider_config = config.provider(name)
        logger = logger_factory(name) if logger_factory else None
        providers.append(SearchProvider(provider_config, client=client, logger=logger))
    return providers


__all__ = ["SearchProvider", "build_providers"]

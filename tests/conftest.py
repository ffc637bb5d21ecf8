"""Shared fixtures: config builders, product payloads, fake pages and recorders."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from pauseshop.config import ConfigLocator, ConfigRepository, GlobalConfig, ProviderConfig, default_providers
from pauseshop.engine import ProductEvent
from pauseshop.orchestrator import Notification, NotificationKind
from pauseshop.scheduler import ManualScheduler

AMAZON_IMAGE = "https://m.media-amazon.com/images/I/71abc.jpg"


class RecordingNotifier:
    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def kinds(self) -> list[NotificationKind]:
        return [item.kind for item in self.notifications]

    def groups(self) -> list[Notification]:
        return [item for item in self.notifications if item.kind is NotificationKind.PRODUCT_GROUP_READY]


@pytest.fixture(autouse=True)
def pauseshop_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("PAUSESHOP_HOME", str(tmp_path))
    monkeypatch.delenv("PAUSESHOP_SERVER_ENV", raising=False)
    return tmp_path


@pytest.fixture
def provider_config() -> Callable[..., ProviderConfig]:
    """Provider settings with every delay zeroed so tests never sleep."""

    def _builder(name: str = "amazon", **overrides: Any) -> ProviderConfig:
        base = default_providers()[name].model_dump()
        base.update(
            request_delay=0.0,
            request_jitter=0.0,
            backoff_base=0.0,
            backoff_jitter=0.0,
            timeout=2.0,
        )
        base.update(overrides)
        return ProviderConfig.model_validate(base)

    return _builder


@pytest.fixture
def sample_global_config(provider_config) -> GlobalConfig:
    return GlobalConfig(
        providers={"amazon": provider_config("amazon"), "google": provider_config("google")},
        search_providers=["amazon"],
    )


@pytest.fixture
def temp_config_repository(tmp_path: Path) -> Iterable[ConfigRepository]:
    locator = ConfigLocator(project_root=tmp_path)
    yield ConfigRepository(locator)


@pytest.fixture
def make_product() -> Callable[..., ProductEvent]:
    def _builder(**overrides: Any) -> ProductEvent:
        payload: dict[str, Any] = {
            "name": "Denim Jacket",
            "category": "clothing",
            "iconCategory": "jacket",
            "brand": "Levi's",
            "primaryColor": "blue",
            "secondaryColors": ["white"],
            "features": ["button front", "cropped", "oversized"],
            "targetGender": "men",
            "confidence": 0.92,
        }
        payload.update(overrides)
        return ProductEvent.model_validate(payload)

    return _builder


def amazon_card(
    asin: str,
    image: str | None = AMAZON_IMAGE,
    offscreen: str | None = None,
    whole: str | None = None,
    fraction: str | None = None,
) -> str:
    price = ""
    if offscreen or whole:
        price = '<span class="a-price">'
        if offscreen:
            price += f'<span class="a-offscreen">{offscreen}</span>'
        if whole:
            price += f'<span class="a-price-whole">{whole}</span>'
            price += f'<span class="a-price-fraction">{fraction or ""}</span>'
        price += "</span>"
    img = f'<img class="s-image" src="{image}" alt="product">' if image else ""
    return (
        f'<div role="listitem" data-asin="{asin}" data-component-type="s-search-result">'
        f'<div class="s-card">{img}<h2>Item {asin}</h2>{price}</div></div>'
    )


def amazon_page(*cards: str) -> str:
    return (
        "<html><head><title>Amazon.com : search</title></head><body>"
        '<div class="s-main-slot s-result-list">' + "".join(cards) + "</div></body></html>"
    )


def sse(*payloads: dict[str, Any]) -> str:
    return "".join(f"data: {json.dumps(payload)}\n\n" for payload in payloads)


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()


class PageBuilder:
    card = staticmethod(amazon_card)
    page = staticmethod(amazon_page)
    sse = staticmethod(sse)
    image = AMAZON_IMAGE


@pytest.fixture
def pages() -> PageBuilder:
    return PageBuilder()

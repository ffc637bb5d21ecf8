"""Pydantic models used across PauseShop configuration flow."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_USER_AGENTS: list[str] = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0",
]

DEFAULT_BOT_FINGERPRINTS: list[str] = [
    "captcha",
    "Enter the characters you see below",
    "Robot Check",
]


class ServerEnvironment(str, Enum):
    """Which analysis backend deployment to talk to."""

    REMOTE = "remote"
    LOCAL = "local"


class ContainerPattern(BaseModel):
    """CSS selector for one result container plus the attribute holding its item id."""

    name: str
    selector: str
    id_attribute: str


class ExtractionPatterns(BaseModel):
    """Ordered selector chains the extraction engine walks for one provider.

    Field selectors use the ``css::attr:name`` / ``css::text`` syntax; the first
    pattern producing a valid value wins.
    """

    containers: list[ContainerPattern] = Field(default_factory=list)
    image: list[str] = Field(default_factory=list)
    offscreen_price: list[str] = Field(default_factory=list)
    price_whole: list[str] = Field(default_factory=list)
    price_fraction: list[str] = Field(default_factory=list)
    image_cdn_fragments: list[str] = Field(default_factory=list)
    image_extensions: list[str] = Field(
        default_factory=lambda: [".jpg", ".jpeg", ".png", ".webp"]
    )
    product_path: str = "/dp/{item_id}"

    @model_validator(mode="after")
    def _validate_patterns(self) -> "ExtractionPatterns":
        if not self.containers:
            raise ValueError("At least one container pattern is required")
        if not self.image:
            raise ValueError("At least one image pattern is required")
        if "{item_id}" not in self.product_path:
            raise ValueError("product_path must contain an {item_id} placeholder")
        return self


def amazon_patterns() -> ExtractionPatterns:
    return ExtractionPatterns(
        containers=[
            ContainerPattern(
                name="current",
                selector='div[role="listitem"][data-asin][data-component-type="s-search-result"]',
                id_attribute="data-asin",
            ),
            ContainerPattern(
                name="legacy",
                selector='div[data-component-type="s-search-result"][data-asin]',
                id_attribute="data-asin",
            ),
            ContainerPattern(name="permissive", selector="[data-asin]", id_attribute="data-asin"),
        ],
        image=[
            "img.s-image::attr:src",
            'img[data-image-latency="s-product-image"]::attr:src',
            "img[data-image-index]::attr:src",
            'img[src*="images-amazon"]::attr:src',
            'img[src*="media-amazon"]::attr:src',
            "img[data-src]::attr:data-src",
        ],
        offscreen_price=["span.a-price span.a-offscreen", "span.a-offscreen"],
        price_whole=["span.a-price-whole"],
        price_fraction=["span.a-price-fraction"],
        image_cdn_fragments=["images-amazon.com", "ssl-images-amazon.com", "media-amazon.com"],
        product_path="/dp/{item_id}",
    )


def google_patterns() -> ExtractionPatterns:
    return ExtractionPatterns(
        containers=[
            ContainerPattern(
                name="current", selector="div[data-docid][data-lpage]", id_attribute="data-docid"
            ),
            ContainerPattern(name="legacy", selector="div.isv-r[data-id]", id_attribute="data-id"),
            ContainerPattern(name="permissive", selector="[data-docid]", id_attribute="data-docid"),
        ],
        image=[
            'img[src^="https://encrypted-tbn"]::attr:src',
            "img[data-src]::attr:data-src",
            "img[data-iurl]::attr:data-iurl",
            "img::attr:src",
        ],
        image_cdn_fragments=["encrypted-tbn", "gstatic.com", "googleusercontent.com"],
        product_path="/imgres?docid={item_id}",
    )


class ProviderConfig(BaseModel):
    """Per-provider dispatcher thresholds, URL style and extraction patterns."""

    name: str
    domain: str
    url_style: Literal["amazon", "google"]
    max_search_term_length: int = 200
    max_products_per_search: int = 50
    display_limit: int = 5
    max_concurrent_requests: int = 1
    request_delay: float = 0.5
    request_jitter: float = 0.5
    timeout: float = 10.0
    max_retries: int = 1
    backoff_base: float = 1.0
    backoff_jitter: float = 1.0
    user_agent_rotation: bool = True
    user_agents: list[str] = Field(default_factory=lambda: list(DEFAULT_USER_AGENTS))
    accept_language: str = "en-US,en;q=0.9"
    min_body_length: int = 100
    bot_fingerprints: list[str] = Field(default_factory=lambda: list(DEFAULT_BOT_FINGERPRINTS))
    patterns: ExtractionPatterns

    @field_validator("max_concurrent_requests", "max_search_term_length", "max_products_per_search")
    @classmethod
    def _require_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Value must be >= 1")
        return value

    @field_validator(
        "request_delay", "request_jitter", "backoff_base", "backoff_jitter", "max_retries"
    )
    @classmethod
    def _require_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Value must be non-negative")
        return value

    @field_validator("timeout")
    @classmethod
    def _require_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be > 0")
        return value

    @field_validator("user_agents", mode="before")
    @classmethod
    def _coerce_user_agents(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return list(DEFAULT_USER_AGENTS)
        if isinstance(value, str):
            value = [value]
        return [ua.strip() for ua in value if ua and ua.strip()]


def default_providers() -> dict[str, ProviderConfig]:
    return {
        "amazon": ProviderConfig(
            name="amazon", domain="amazon.com", url_style="amazon", patterns=amazon_patterns()
        ),
        "google": ProviderConfig(
            name="google", domain="google.com", url_style="google", patterns=google_patterns()
        ),
    }


class BackendConfig(BaseModel):
    """Where the streaming analysis backend lives."""

    environment: ServerEnvironment = ServerEnvironment.REMOTE
    server_urls: dict[str, str] = Field(
        default_factory=lambda: {
            "remote": "https://pauseshop-server-rfrxaro25a-uc.a.run.app",
            "local": "http://localhost:3000",
        }
    )
    stream_path: str = "/analyze/stream"
    end_session_path: str = "/session/{session_id}/end"
    connect_timeout: float = 10.0

    @model_validator(mode="after")
    def _validate_urls(self) -> "BackendConfig":
        if self.environment.value not in self.server_urls:
            raise ValueError(f"No server URL configured for environment {self.environment.value!r}")
        if "{session_id}" not in self.end_session_path:
            raise ValueError("end_session_path must contain a {session_id} placeholder")
        return self

    @property
    def base_url(self) -> str:
        return self.server_urls[self.environment.value].rstrip("/")

    def stream_url(self) -> str:
        return f"{self.base_url}{self.stream_path}"

    def end_session_url(self, session_id: str) -> str:
        return f"{self.base_url}{self.end_session_path.format(session_id=session_id)}"


class DetectorConfig(BaseModel):
    """Timing knobs for the pause/seek state machine, in seconds."""

    seeking_debounce: float = 0.5
    time_jump_threshold: float = 1.0
    reconfirm_delay: float = 1.5
    end_epsilon: float = 0.25

    @field_validator("*")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Detector timings must be non-negative")
        return value


class GlobalConfig(BaseModel):
    """Top level settings shared by the CLI, the service and the detector."""

    backend: BackendConfig = Field(default_factory=BackendConfig)
    providers: dict[str, ProviderConfig] = Field(default_factory=default_providers)
    search_providers: list[str] = Field(default_factory=lambda: ["amazon"])
    detector: DetectorConfig = Field(default_factory=DetectorConfig)

    @model_validator(mode="after")
    def _validate_search_providers(self) -> "GlobalConfig":
        if not self.search_providers:
            raise ValueError("search_providers cannot be empty")
        unknown = [name for name in self.search_providers if name not in self.providers]
        if unknown:
            raise ValueError(f"Unknown search providers: {', '.join(unknown)}")
        return self

    def provider(self, name: str) -> ProviderConfig:
        try:
            return self.providers[name]
        except KeyError as exc:
            raise KeyError(f"Provider not configured: {name}") from exc


__all__ = [
    "BackendConfig",
    "ContainerPattern",
    "DEFAULT_BOT_FINGERPRINTS",
    "DEFAULT_USER_AGENTS",
    "DetectorConfig",
    "ExtractionPatterns",
    "GlobalConfig",
    "ProviderConfig",
    "ServerEnvironment",
    "amazon_patterns",
    "default_providers",
    "google_patterns",
]
